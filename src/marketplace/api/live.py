"""WebSocket endpoint for live order updates.

Clients pass the rooms to subscribe to as ``?rooms=user-42,order-abc`` and may
later send ``{"action": "join" | "leave", "room": "..."}`` to change them.
"""

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from marketplace.notification.channel import LIVE, get_channel, set_channel
from marketplace.notification.channel.websocket_hub import LiveConnectionHub

logger = structlog.get_logger(__name__)

live_router = APIRouter(prefix="/live", tags=["live"])


def get_hub() -> LiveConnectionHub:
    """Return the live hub, installing one as the live channel if another bus is active."""
    channel = get_channel(LIVE)
    if not isinstance(channel, LiveConnectionHub):
        channel = LiveConnectionHub()
        set_channel(LIVE, channel)
    return channel


def _parse_rooms(raw: str | None) -> list[str]:
    return [room.strip() for room in (raw or "").split(",") if room.strip()]


@live_router.websocket("/ws")
async def live_updates(websocket: WebSocket, rooms: str | None = None) -> None:
    hub = get_hub()
    subscribed = _parse_rooms(rooms)
    await hub.connect(websocket, subscribed)
    await websocket.send_json({"event": "subscribed", "rooms": subscribed})

    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None
            room = message.get("room") if isinstance(message, dict) else None
            if not room or action not in ("join", "leave"):
                await websocket.send_json({"event": "error", "message": "Expected {action: join|leave, room}"})
                continue

            if action == "join":
                hub.join(websocket, room)
                subscribed.append(room)
            else:
                hub.leave(websocket, room)
                subscribed = [r for r in subscribed if r != room]
            await websocket.send_json({"event": "subscribed", "rooms": subscribed})
    except WebSocketDisconnect:
        logger.debug("Live client disconnected", rooms=subscribed)
    finally:
        hub.disconnect(websocket)
