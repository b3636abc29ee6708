"""Transient user-facing notifications raised while onboarding."""

import logging
from dataclasses import dataclass
from enum import Enum

from ..exceptions import ErrorSeverity

logger = logging.getLogger(__name__)


class NotificationAction(str, Enum):
    """Follow-up offered next to a notification."""

    NONE = "none"
    RETRY = "retry"
    RECONNECT = "reconnect"


@dataclass(frozen=True)
class Notification:
    title: str
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    action: NotificationAction = NotificationAction.NONE
    action_url: str | None = None


class Notifier:
    """Collects notifications for the front end to show and dismiss."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(
        self,
        title: str,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        action: NotificationAction = NotificationAction.NONE,
        action_url: str | None = None,
    ) -> Notification:
        notification = Notification(title, message, severity, action, action_url)
        self.notifications.append(notification)
        level = logging.ERROR if severity == ErrorSeverity.ERROR else logging.WARNING
        logger.log(level, f"[Notifier] {title}: {message}")
        return notification

    @property
    def latest(self) -> Notification | None:
        return self.notifications[-1] if self.notifications else None

    def clear(self) -> None:
        self.notifications.clear()
