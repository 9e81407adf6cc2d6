"""WebSocket route for real-time match events."""

import asyncio
import json
import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from matchday.services import auth_service
from matchday.services.errors import MatchdayError
from matchday.services.websocket_manager import WEBSOCKET_TIMEOUT_SECONDS, get_websocket_manager
from matchday.utils.constants import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)
router = APIRouter()


async def handle_client_message(websocket: WebSocket, data: str):
    """
    Act on one text frame from a client.

    "ping" is answered with "pong"; JSON frames of the form
    {"action": "join-room" | "leave-room", "room": "<name>"} manage room
    membership. Anything else is ignored.
    """
    manager = get_websocket_manager()
    if data == "ping":
        await websocket.send_text("pong")
        return

    try:
        message = json.loads(data)
    except ValueError:
        logger.debug("Ignoring non-JSON WebSocket message")
        return
    if not isinstance(message, dict):
        return

    action = message.get("action")
    room = message.get("room")
    if action == "join-room" and isinstance(room, str):
        await manager.join_room(websocket, room)
    elif action == "leave-room" and isinstance(room, str):
        await manager.leave_room(websocket, room)


@router.websocket("/api/ws")
async def websocket_events(websocket: WebSocket):
    """
    WebSocket endpoint for real-time match events.

    Authenticated by the session cookie, or by ?token=<jwt_token> for clients
    that cannot send cookies.
    """
    await websocket.accept()

    token = websocket.cookies.get(SESSION_COOKIE_NAME) or websocket.query_params.get("token")
    try:
        identity = auth_service.verify(token)
    except MatchdayError as e:
        await websocket.close(code=1008, reason=e.message)
        return

    player_id = identity["player_id"]
    manager = get_websocket_manager()
    await manager.connect(player_id, websocket)

    try:
        last_activity = datetime.utcnow()
        timeout_seconds = WEBSOCKET_TIMEOUT_SECONDS

        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=timeout_seconds)

                last_activity = datetime.utcnow()
                await manager.update_activity(websocket)
                await handle_client_message(websocket, data)
            except asyncio.TimeoutError:
                if datetime.utcnow() - last_activity > timedelta(seconds=timeout_seconds):
                    logger.info(f"WebSocket timeout for player {player_id}, closing connection")
                    await websocket.close(code=1000, reason="Connection timeout")
                    break
                # Probe the connection; a dead socket ends the loop
                try:
                    await websocket.send_text("ping")
                except Exception:
                    break
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for player {player_id}")
    except Exception as e:
        logger.error(f"WebSocket error for player {player_id}: {e}")
    finally:
        await manager.disconnect(websocket)
