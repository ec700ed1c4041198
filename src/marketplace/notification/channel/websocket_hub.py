"""WebSocket live hub — the production EventBus behind ``/live/ws``.

Clients connect with the rooms they want (``user-…``, ``order-…``,
``seller-…``). Broadcasts arrive from fan-out worker threads, so sends are
scheduled onto the server's event loop with ``run_coroutine_threadsafe`` and
never awaited by the caller.
"""

import asyncio
import threading
from collections import defaultdict

import structlog
from fastapi import WebSocket

from marketplace.notification.channel.live_port import EventBus

logger = structlog.get_logger(__name__)


class LiveConnectionHub(EventBus):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._loop: asyncio.AbstractEventLoop | None = None

    async def connect(self, websocket: WebSocket, rooms: list[str]) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        with self._lock:
            for room in rooms:
                self._rooms[room].add(websocket)
        logger.debug("Live client connected", rooms=rooms)

    def join(self, websocket: WebSocket, room: str) -> None:
        with self._lock:
            self._rooms[room].add(websocket)

    def leave(self, websocket: WebSocket, room: str) -> None:
        with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    def disconnect(self, websocket: WebSocket) -> None:
        with self._lock:
            for room in list(self._rooms):
                self._rooms[room].discard(websocket)
                if not self._rooms[room]:
                    del self._rooms[room]

    def members(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def broadcast(self, room: str, event: str, payload: dict) -> None:
        with self._lock:
            members = list(self._rooms.get(room, ()))
        if not members or self._loop is None or self._loop.is_closed():
            return

        message = {"event": event, "room": room, "data": payload}
        for websocket in members:
            asyncio.run_coroutine_threadsafe(self._send(websocket, message), self._loop)

    async def _send(self, websocket: WebSocket, message: dict) -> None:
        try:
            await websocket.send_json(message)
        except Exception as exc:  # client went away mid-send
            logger.debug("Dropping live client", room=message["room"], error=str(exc))
            self.disconnect(websocket)
