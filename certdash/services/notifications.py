"""
Toast notifications and error reporting.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..errors import as_app_error, toast_level, user_message
from ..models import Notification, ToastLevel

logger = logging.getLogger(__name__)

Listener = Callable[[Notification], None]

LOG_LEVELS = {
    ToastLevel.SUCCESS: logging.INFO,
    ToastLevel.INFO: logging.INFO,
    ToastLevel.WARNING: logging.WARNING,
    ToastLevel.RETRYABLE: logging.WARNING,
    ToastLevel.AUTH: logging.WARNING,
    ToastLevel.ERROR: logging.ERROR,
}


class NotificationCenter:
    """Holds toasts and fans them out to listeners."""

    def __init__(self, max_items: int = 50):
        self.max_items = max_items
        self.notifications: List[Notification] = []
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def notify(self, level: ToastLevel, message: str, title: str = '', code: Optional[str] = None) -> Notification:
        notification = Notification(
            id=f"notification-{uuid.uuid4().hex[:12]}",
            level=level,
            title=title or level.value.capitalize(),
            message=message,
            code=code,
            timestamp=datetime.now(timezone.utc).isoformat()
        )
        self.notifications.append(notification)
        del self.notifications[:-self.max_items]

        logger.log(LOG_LEVELS[level], f"[{notification.title}] {message}")
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def success(self, message: str, title: str = 'Success') -> Notification:
        return self.notify(ToastLevel.SUCCESS, message, title)

    def error_toast(self, error: BaseException, title: str = 'Error') -> Notification:
        app_error = as_app_error(error)
        return self.notify(toast_level(app_error), user_message(app_error), title, code=app_error.code)

    def mark_read(self, notification_id: str) -> None:
        self.notifications = [
            n.model_copy(update={'read': True}) if n.id == notification_id else n
            for n in self.notifications
        ]

    def unread(self) -> List[Notification]:
        return [n for n in self.notifications if not n.read]

    def clear(self) -> None:
        self.notifications = []


class ErrorReporter:
    """Surfaces a failed action as a toast and returns the store error string."""

    def __init__(self, center: NotificationCenter):
        self.center = center

    def report(self, error: BaseException, context: Optional[str] = None) -> str:
        app_error = as_app_error(error)
        where = f" in {context}" if context else ""
        logger.error(f"Error{where}: [{app_error.code}] {app_error.message}")

        self.center.error_toast(app_error, title=context or 'Error')
        return user_message(app_error)
