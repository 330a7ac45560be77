"""Phase deadlines: at most one pending single-shot timer per key."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """Arms deadlines on an asyncio event loop with loop.call_later.

    Arming a key cancels whatever was pending for it, so there is never more
    than one outstanding deadline per match.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: dict[str, asyncio.TimerHandle] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def arm(self, key: str, seconds: float, callback: Callable[[], None]):
        self.cancel(key)

        def fire():
            # Drop our handle first so the callback may re-arm the same key.
            if self._handles.get(key) is handle:
                del self._handles[key]
            try:
                callback()
            except Exception:
                logger.exception("Deadline callback for %s failed", key)

        handle = self._get_loop().call_later(max(0.0, seconds), fire)
        self._handles[key] = handle
        logger.debug("Armed deadline for %s in %ss", key, seconds)

    def cancel(self, key: str):
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def pending(self, key: str) -> bool:
        return key in self._handles

    def cancel_all(self):
        for key in list(self._handles):
            self.cancel(key)
