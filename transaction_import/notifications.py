"""
Transient User Notifications

The pipeline reports per-record failures (and successes) here instead of
raising them; the UI drains the queue into snackbars.
"""

from collections import deque
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from transaction_import.models.transaction import utcnow


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """One transient message for the user."""

    level: NotificationLevel
    message: str
    action: Optional[str] = Field(
        default=None,
        description="Originating action name"
    )
    guid: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class NotificationCenter:
    """Bounded FIFO of notifications."""

    def __init__(self, max_size: int = 100):
        self._queue: deque[Notification] = deque(maxlen=max_size)

    def push(
        self,
        level: NotificationLevel,
        message: str,
        action: Optional[str] = None,
        guid: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            level=level,
            message=message,
            action=action,
            guid=guid,
        )
        self._queue.append(notification)
        return notification

    def success(self, message: str, **kwargs) -> Notification:
        return self.push(NotificationLevel.SUCCESS, message, **kwargs)

    def info(self, message: str, **kwargs) -> Notification:
        return self.push(NotificationLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> Notification:
        return self.push(NotificationLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> Notification:
        return self.push(NotificationLevel.ERROR, message, **kwargs)

    def failure(
        self,
        action: str,
        error: BaseException,
        guid: Optional[str] = None,
    ) -> Notification:
        """Error notification in the form "<action>: <message>"."""
        return self.error(f"{action}: {error}", action=action, guid=guid)

    @property
    def pending(self) -> list[Notification]:
        return list(self._queue)

    def latest(self) -> Optional[Notification]:
        return self._queue[-1] if self._queue else None

    def drain(self) -> list[Notification]:
        items = list(self._queue)
        self._queue.clear()
        return items

    def __len__(self) -> int:
        return len(self._queue)
