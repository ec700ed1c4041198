"""Notification dispatcher — runs the fan-out off the request path.

Notices are queued per order ("lanes") and each lane is drained by one worker
at a time, so a customer sees ``preparing`` before ``ready`` even though
different orders are delivered concurrently on a bounded thread pool.

``wait_idle`` lets tests and graceful shutdown wait for queued notices.
"""

import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor

import structlog

from marketplace.config import get_settings
from marketplace.notification.fanout import NotificationFanout
from marketplace.notification.notice import StatusNotice

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, fanout: NotificationFanout | None = None, max_workers: int = 4) -> None:
        self._fanout = fanout or NotificationFanout()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._lanes: dict[str, deque[StatusNotice]] = {}
        self._pending = 0
        self._closed = False

    @property
    def pending(self) -> int:
        with self._lock:
            return self._pending

    def submit(self, notice: StatusNotice) -> None:
        """Queue ``notice`` behind any earlier notices for the same order. Never blocks on delivery."""
        key = notice.lane_key
        with self._lock:
            if self._closed:
                logger.warning("Dispatcher closed, dropping notice", order_id=notice.order_id, status=notice.status)
                return
            self._pending += 1
            lane = self._lanes.get(key)
            if lane is not None:
                lane.append(notice)
                return
            self._lanes[key] = deque([notice])
        self._executor.submit(self._drain, key)

    def _drain(self, key: str) -> None:
        while True:
            with self._lock:
                lane = self._lanes[key]
                if not lane:
                    del self._lanes[key]
                    return
                notice = lane.popleft()

            try:
                self._fanout.dispatch(notice)
            except Exception:
                logger.exception("Notification fan-out crashed", order_id=notice.order_id, status=notice.status)
            finally:
                with self._lock:
                    self._pending -= 1
                    if self._pending == 0:
                        self._idle.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every queued notice has been processed. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
        self._fanout.close()


_current_dispatcher: NotificationDispatcher | None = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> NotificationDispatcher:
    """Return the process-wide dispatcher, creating it on first use."""
    global _current_dispatcher
    with _dispatcher_lock:
        if _current_dispatcher is None:
            _current_dispatcher = NotificationDispatcher(max_workers=get_settings().NOTIFICATION_WORKERS)
        return _current_dispatcher


def reset_dispatcher(wait: bool = True) -> None:
    """Shut down the current dispatcher (draining queued notices) and forget it."""
    global _current_dispatcher
    with _dispatcher_lock:
        dispatcher, _current_dispatcher = _current_dispatcher, None
    if dispatcher is not None:
        dispatcher.shutdown(wait=wait)
