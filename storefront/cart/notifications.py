"""Notification sinks (toast side channel).

Fire-and-forget: the cart never depends on the outcome of a notification.
"""
from dataclasses import dataclass
from typing import List

from storefront.logging import get_logger

logger = get_logger(__name__)


class NotificationLevel:
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass
class Notification:
    level: str
    message: str

    def to_dict(self) -> dict:
        return {"level": self.level, "message": self.message}


class NotificationSink:
    """Base sink. Subclasses override notify()."""

    def notify(self, level: str, message: str) -> None:
        raise NotImplementedError

    def success(self, message: str) -> None:
        self.notify(NotificationLevel.SUCCESS, message)

    def info(self, message: str) -> None:
        self.notify(NotificationLevel.INFO, message)

    def error(self, message: str) -> None:
        self.notify(NotificationLevel.ERROR, message)


class LogNotificationSink(NotificationSink):
    """Writes notifications to the application log."""

    def notify(self, level: str, message: str) -> None:
        if level == NotificationLevel.ERROR:
            logger.warning(f"[toast:{level}] {message}")
        else:
            logger.info(f"[toast:{level}] {message}")


class RecordingNotificationSink(NotificationSink):
    """Keeps notifications in memory so the HTTP layer can return them."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level=level, message=message))

    def drain(self) -> List[Notification]:
        drained, self.notifications = self.notifications, []
        return drained


def send_notification(sink: NotificationSink, level: str, message: str) -> None:
    """Deliver a notification, logging and swallowing sink failures."""
    try:
        sink.notify(level, message)
    except Exception as e:
        logger.warning(f"Notification sink failed: {type(e).__name__}: {e}")
