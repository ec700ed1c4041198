"""Per-key mutual exclusion for order updates.

Two concurrent transitions on the same order must not both read the old state
and both append to the timeline, and two deliveries of the same gateway
callback must not both create an order. Each key (``order:<internal id>`` or
``payment:pay_…``) gets its own lock; unrelated keys never contend.

An order can be addressed by its public ``ORD…`` id or its internal id, so
order keys are always built from the internal id with ``order_lock_key``.
These locks serialize writers within one process only; across processes the
aggregate version check rejects a stale write with ``ExpectedVersionError``.

Locks are reference counted and dropped once nobody holds or waits on them,
so the table only ever contains keys that are in use.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from marketplace.errors import OrderBusy

logger = structlog.get_logger(__name__)


class KeyedLock:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: float) -> Iterator[None]:
        """Hold the lock for ``key``, raising OrderBusy if it is not free within ``timeout`` seconds."""
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=timeout):
                logger.warning("Lock acquisition timed out", key=key, timeout=timeout)
                raise OrderBusy(key, timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


def order_lock_key(order) -> str:
    return f"order:{order.id}"


order_locks = KeyedLock()
