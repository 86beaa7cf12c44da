"""Advisory wake-lock that keeps the device awake during a pipeline run."""

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class WakeLock(Protocol):
    """Platform wake-lock. Acquire/release may be called repeatedly; last release wins."""

    async def acquire(self) -> None:
        ...

    async def release(self) -> None:
        ...


class NullWakeLock:
    """Stand-in for platforms without a wake-lock; tracks state only."""

    def __init__(self):
        self.held = False

    async def acquire(self) -> None:
        self.held = True

    async def release(self) -> None:
        self.held = False


class WakeLockGuard:
    """Best-effort acquire, unconditional release. Never raises."""

    def __init__(self, wake_lock: Optional[WakeLock]):
        self.wake_lock = wake_lock
        self.acquired = False

    async def __aenter__(self) -> "WakeLockGuard":
        if self.wake_lock is None:
            return self
        try:
            await self.wake_lock.acquire()
            self.acquired = True
        except Exception as e:
            logger.info(f"Wake lock unavailable, continuing without it: {e}")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.wake_lock is None:
            return
        try:
            await self.wake_lock.release()
        except Exception as e:
            logger.info(f"Wake lock release failed: {e}")
        finally:
            self.acquired = False
