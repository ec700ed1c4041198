"""Delivery log — a bounded, in-memory record of notification attempts.

Purely observational: nothing reads it to decide behavior, and entries are
lost on restart. Oldest entries fall off once the log is full.
"""

import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from marketplace.config import get_settings


@dataclass(frozen=True)
class NotificationEvent:
    target_channel: str
    recipient_key: str
    payload: dict
    delivered: bool
    order_id: str | None = None
    status: str | None = None
    event_name: str | None = None
    error: str | None = None
    attempted_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["attempted_at"] = self.attempted_at.isoformat()
        return data


class DeliveryLog:
    def __init__(self, maxlen: int = 1000) -> None:
        self._lock = threading.Lock()
        self._entries: deque[NotificationEvent] = deque(maxlen=maxlen)

    def record(self, entry: NotificationEvent) -> NotificationEvent:
        with self._lock:
            self._entries.append(entry)
        return entry

    def entries(
        self,
        order_id: str | None = None,
        channel: str | None = None,
        delivered: bool | None = None,
    ) -> list[NotificationEvent]:
        with self._lock:
            snapshot = list(self._entries)
        return [
            e
            for e in snapshot
            if (order_id is None or e.order_id == order_id)
            and (channel is None or e.target_channel == channel)
            and (delivered is None or e.delivered == delivered)
        ]

    def prune(self, older_than: datetime) -> int:
        """Drop entries attempted before ``older_than``; returns how many were removed."""
        with self._lock:
            kept = [e for e in self._entries if e.attempted_at >= older_than]
            removed = len(self._entries) - len(kept)
            self._entries.clear()
            self._entries.extend(kept)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_current_log: DeliveryLog | None = None


def get_delivery_log() -> DeliveryLog:
    global _current_log
    if _current_log is None:
        _current_log = DeliveryLog(maxlen=get_settings().DELIVERY_LOG_SIZE)
    return _current_log


def reset_delivery_log() -> None:
    global _current_log
    _current_log = None
