"""User-facing notifications (the toast messages of the UI)."""
from datetime import datetime, UTC
from enum import Enum
from typing import Callable, List, Optional
from pydantic import BaseModel, Field

from weekshop.domain.errors import ShopError
from weekshop.utils.logger import get_logger


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Notification(BaseModel):
    """A message for the user, with optional follow-up suggestions."""
    level: NotificationLevel
    message: str
    kind: str = ""
    suggestions: List[str] = []
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


Listener = Callable[[Notification], None]


class Notifier:
    """Collects notifications and forwards them to an optional listener.

    The presentation layer registers a listener to show toasts; tests read
    ``history`` directly.
    """

    def __init__(self, listener: Optional[Listener] = None, keep: int = 50):
        self.listener = listener
        self.keep = keep
        self.history: List[Notification] = []
        self.logger = get_logger(self.__class__.__name__)

    def _push(self, notification: Notification) -> Notification:
        self.history.append(notification)
        del self.history[:-self.keep]
        self.logger.debug(
            "Notification",
            level=notification.level.value,
            notice=notification.message,
            kind=notification.kind
        )
        if self.listener is not None:
            self.listener(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self._push(Notification(level=NotificationLevel.SUCCESS, message=message))

    def info(self, message: str) -> Notification:
        return self._push(Notification(level=NotificationLevel.INFO, message=message))

    def error(
        self,
        message: str,
        kind: str = "error",
        suggestions: Optional[List[str]] = None
    ) -> Notification:
        return self._push(Notification(
            level=NotificationLevel.ERROR,
            message=message,
            kind=kind,
            suggestions=suggestions or []
        ))

    def report(self, error: ShopError, context: Optional[str] = None) -> Notification:
        """Turn a shop error into an error notification.

        Constraint-type errors keep their specific message; transient errors
        are shown with the operation's generic message when one is given.
        """
        message = error.message
        if context and error.kind in ("remote", "error"):
            message = context
        return self.error(message, kind=error.kind, suggestions=error.suggestions)

    @property
    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def errors(self) -> List[Notification]:
        return [n for n in self.history if n.level is NotificationLevel.ERROR]

    def clear(self) -> None:
        self.history.clear()
