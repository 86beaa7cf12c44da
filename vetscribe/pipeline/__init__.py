"""Pipeline orchestration."""

from .orchestrator import PipelineOrchestrator
from .wake_lock import NullWakeLock, WakeLock, WakeLockGuard

__all__ = [
    "PipelineOrchestrator",
    "NullWakeLock",
    "WakeLock",
    "WakeLockGuard",
]
