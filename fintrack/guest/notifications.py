"""
User-facing notifications (toasts) raised by the guest ledger.
"""

from dataclasses import dataclass
from typing import Callable, Literal

from loguru import logger

NotificationType = Literal["info", "success", "warning", "error"]

GUEST_STORAGE_WARNING = (
    "You are not signed in. Transactions are only kept for this session "
    "and will be lost when it ends."
)
STORAGE_FULL = "Local storage is full. Sign in to keep adding transactions."


@dataclass(frozen=True)
class Notification:
    """A single notification for the UI layer."""

    type: NotificationType
    message: str
    duration: float  # Seconds the UI should display it


class Notifier:
    """
    Fan-out of notifications to subscribed handlers.

    Usage:
        notifier = Notifier()
        unsubscribe = notifier.subscribe(toasts.append)
        notifier.notify("info", "Saved")
    """

    def __init__(self):
        self._handlers: list[Callable[[Notification], None]] = []

    def subscribe(
        self, handler: Callable[[Notification], None]
    ) -> Callable[[], None]:
        """Register a handler; returns a function that removes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def notify(
        self, type: NotificationType, message: str, duration: float = 5.0
    ) -> Notification:
        notification = Notification(type=type, message=message, duration=duration)
        logger.info(f"[Notifier] {type}: {message}")
        for handler in list(self._handlers):
            handler(notification)
        return notification
