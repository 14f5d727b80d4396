from __future__ import annotations
from datetime import datetime
from typing import Callable, List, Optional, Protocol
import logging

from .domain import Notification, NotificationKind

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, recipient: str, message: str, kind: NotificationKind) -> None:
        ...


class NotificationCenter:
    """
    In-memory notification sink. Delivery is fire-and-forget: ``notify`` only
    records the message, readers poll with ``unread_for``.
    """

    def __init__(self, now: Optional[Callable[[], datetime]] = None) -> None:
        self._notifications: List[Notification] = []
        self._next_id = 1
        self._now = now or datetime.now

    def notify(self, recipient: str, message: str, kind: NotificationKind) -> None:
        note = Notification(
            notification_id=self._next_id,
            recipient=recipient,
            message=message,
            kind=kind,
            created_at=self._now(),
        )
        self._next_id += 1
        self._notifications.append(note)
        logger.info("[notify] %s -> %s: %s", kind.value, recipient, message)

    def mark_as_read(self, notification_id: int) -> bool:
        for note in self._notifications:
            if note.notification_id == notification_id:
                note.read = True
                return True
        return False

    def all_for(self, recipient: str) -> List[Notification]:
        return [n for n in self._notifications if n.recipient == recipient]

    def unread_for(self, recipient: str) -> List[Notification]:
        return [n for n in self.all_for(recipient) if not n.read]

    def list_all(self) -> List[Notification]:
        return list(self._notifications)
