from __future__ import annotations

"""Tiny pub/sub event bus.

Read-only surfaces (results view, gamification notifications, history sink)
subscribe here instead of holding a reference to the session.
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

SESSION_STARTED = "session_started"
SESSION_PAUSED = "session_paused"
SESSION_RESUMED = "session_resumed"
CLOCK_EXPIRED = "clock_expired"
SESSION_COMPLETED = "session_completed"
SESSION_ABANDONED = "session_abandoned"


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        self._subs.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        handlers = self._subs.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any) -> None:
        for h in list(self._subs.get(event, [])):
            try:
                h(payload)
            except Exception:
                # A broken subscriber must not break the session.
                logger.exception("handler for %r failed", event)
