"""In-memory event bus — the live channel for tests and processes without the WebSocket hub.

Only the most recent broadcasts are kept, so a process that publishes with
nobody listening does not grow without bound.
"""

import threading
from collections import deque

from marketplace.notification.channel.live_port import EventBus


class InMemoryEventBus(EventBus):
    """Event bus that keeps recent broadcasts in memory for test assertions."""

    def __init__(self, maxlen: int = 1000):
        self._lock = threading.Lock()
        self.broadcasts: deque[dict] = deque(maxlen=maxlen)
        self.should_succeed = True
        self.failure_reason = "Live channel unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Live channel unavailable"):
        """Configure the fake bus behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def broadcast(self, room: str, event: str, payload: dict) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        with self._lock:
            self.broadcasts.append({"room": room, "event": event, "payload": dict(payload)})

    def for_room(self, room: str) -> list[dict]:
        with self._lock:
            return [b for b in self.broadcasts if b["room"] == room]

    def events(self, event: str) -> list[dict]:
        with self._lock:
            return [b for b in self.broadcasts if b["event"] == event]

    def reset(self):
        """Clear recorded broadcasts (useful between tests)."""
        with self._lock:
            self.broadcasts.clear()
        self.should_succeed = True
        self.failure_reason = "Live channel unavailable"
