"""User-visible transient notifications, published over pypubsub."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from pubsub import pub

logger = logging.getLogger(__name__)

NOTIFY_TOPIC = "vetscribe.notify"

INFO = "info"
SUCCESS = "success"
WARNING = "warning"
ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """A short message meant for the person operating the app."""
    level: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


class Notifier:
    """Publishes notifications using pubsub.pub."""

    def __init__(self, topic: str = NOTIFY_TOPIC):
        self.topic = topic

    def notify(self, level: str, message: str) -> None:
        pub.sendMessage(self.topic, notification=Notification(level=level, message=message))
        logger.log(logging.WARNING if level in (WARNING, ERROR) else logging.INFO,
                   f"[{level}] {message}")

    def info(self, message: str) -> None:
        self.notify(INFO, message)

    def success(self, message: str) -> None:
        self.notify(SUCCESS, message)

    def warning(self, message: str) -> None:
        self.notify(WARNING, message)

    def error(self, message: str) -> None:
        self.notify(ERROR, message)


def subscribe(listener: Callable[[Notification], None], topic: str = NOTIFY_TOPIC) -> None:
    """Register a listener. pypubsub keeps only a weak reference to it."""
    pub.subscribe(listener, topic)


def unsubscribe(listener: Callable[[Notification], None], topic: str = NOTIFY_TOPIC) -> None:
    pub.unsubscribe(listener, topic)
