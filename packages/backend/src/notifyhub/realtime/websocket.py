"""WebSocket endpoint — live notification delivery to a user's clients.

Learn: Each client connects to /ws/users/{user_id}. The handler:
1. Sends the current unread count, so a reconnecting client knows
   whether it missed anything while offline
2. Subscribes to the user's Redis pub/sub channel
3. Forwards every published notification to the socket
4. Answers {"type": "ping"} with {"type": "pong"}

Every open tab of the same user subscribes separately, so one publish
reaches all of them. Missed pushes are never replayed here — the client
refetches /notifications instead.
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from notifyhub.realtime.pubsub import get_redis, user_channel

logger = structlog.get_logger()
router = APIRouter()


async def _unread_count(websocket: WebSocket, user_id: str):
    pipeline = getattr(websocket.app.state, "pipeline", None)
    if pipeline is None:
        return None
    try:
        return await pipeline.store.count_unread(user_id)
    except Exception as e:
        logger.warning("websocket.unread_count_failed", user_id=user_id, error=str(e))
        return None


@router.websocket("/ws/users/{user_id}")
async def user_websocket(websocket: WebSocket, user_id: str):
    """Stream a user's notifications as they are created."""
    try:
        r = get_redis()
    except RuntimeError:
        await websocket.close(code=1013, reason="Realtime delivery unavailable")
        return

    await websocket.accept()

    count = await _unread_count(websocket, user_id)
    if count is not None:
        await websocket.send_text(json.dumps({"type": "unread_count", "count": count}))

    pubsub = r.pubsub()
    channel = user_channel(user_id)
    await pubsub.subscribe(channel)
    logger.info("websocket.connected", user_id=user_id)

    async def forward_notifications():
        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await websocket.send_text(message["data"])
        except asyncio.CancelledError:
            pass

    async def answer_pings():
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass

    tasks = [
        asyncio.create_task(forward_notifications()),
        asyncio.create_task(answer_pings()),
    ]
    try:
        # Usually ends on client disconnect
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
        logger.info("websocket.disconnected", user_id=user_id)
