"""Event bus connecting the tracking engine to whatever UI is attached."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

WINDOW_TRACKED = "window-tracked"
AUTO_PAUSED = "auto-paused"
AUTO_RESUMED = "auto-resumed"
NOTIFY = "notify"
GET_SESSION_INFO = "get-session-info"
TRACKING_STATE = "tracking-state"


@dataclass(slots=True, frozen=True)
class UIEvent:
    seq: int
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=datetime.now)


Listener = Callable[[UIEvent], None]


class EventBus:
    """Fan events out to subscribers and keep a short history for polling clients."""

    def __init__(self, history: int = 200) -> None:
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._recent: deque[UIEvent] = deque(maxlen=history)
        self._seq = itertools.count(1)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, name: str, **payload: Any) -> UIEvent:
        with self._lock:
            event = UIEvent(seq=next(self._seq), name=name, payload=payload)
            self._recent.append(event)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", name)
        return event

    def notify(self, message: str, duration_ms: int = 5000) -> UIEvent:
        return self.emit(NOTIFY, message=message, duration_ms=duration_ms)

    def recent(self, after: Optional[int] = None) -> list[UIEvent]:
        with self._lock:
            events = list(self._recent)
        if after is None:
            return events
        return [event for event in events if event.seq > after]
