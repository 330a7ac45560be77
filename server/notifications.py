"""Notification sink: an outbox the engine appends to, plus optional subscribers."""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional
from shared.constants import MessageType
from shared.protocol import create_message

logger = logging.getLogger(__name__)

Handler = Callable[[MessageType, dict], None]


@dataclass
class Notification:
    event_type: MessageType
    payload: dict = field(default_factory=dict)

    def to_message(self, match_id: Optional[str] = None) -> str:
        return create_message(self.event_type, self.payload, match_id=match_id)


class NotificationSink:
    """Fire-and-forget publishing for one match.

    Every notification lands in the outbox for a consumer to drain; handlers
    registered with subscribe() are also called synchronously. A failing
    handler is logged and skipped, and never reaches the publisher.
    """

    def __init__(self, outbox_limit: Optional[int] = 500):
        self._outbox: deque[Notification] = deque(maxlen=outbox_limit)
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Handler:
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, event_type: MessageType, payload: dict = None):
        notification = Notification(event_type, payload or {})
        self._outbox.append(notification)
        for handler in list(self._handlers):
            try:
                handler(notification.event_type, notification.payload)
            except Exception:
                logger.exception("Notification handler failed for %s", event_type.value)

    def drain(self) -> list[Notification]:
        drained = list(self._outbox)
        self._outbox.clear()
        return drained

    def __len__(self) -> int:
        return len(self._outbox)
