"""
WebSocket connection manager for real-time match events.

Tracks open connections and the rooms each one has joined, and broadcasts
events to everyone or to a single room. Delivery is best effort: nothing is
queued for clients that are offline or join later.
"""

import asyncio
import json
import logging
from typing import Dict, Set, Optional
from datetime import datetime, timedelta
from fastapi import WebSocket

logger = logging.getLogger(__name__)

# Connections without any activity for this long are dropped
WEBSOCKET_TIMEOUT_SECONDS = 60


class WebSocketManager:
    """Manages WebSocket connections and room membership."""

    def __init__(self):
        """Initialize the WebSocket manager."""
        # WebSocket -> player_id of the authenticated client
        self.active_connections: Dict[WebSocket, int] = {}
        # Room name -> set of member connections
        self.rooms: Dict[str, Set[WebSocket]] = {}
        # WebSocket -> last activity timestamp
        self.connection_timestamps: Dict[WebSocket, datetime] = {}
        self._lock = asyncio.Lock()

    async def connect(self, player_id: int, websocket: WebSocket):
        """
        Register an accepted WebSocket connection.

        Args:
            player_id: ID of the authenticated player
            websocket: WebSocket connection object
        """
        async with self._lock:
            self.active_connections[websocket] = player_id
            self.connection_timestamps[websocket] = datetime.utcnow()
            logger.info(f"WebSocket connected for player {player_id} (total connections: {len(self.active_connections)})")

    async def disconnect(self, websocket: WebSocket):
        """
        Forget a connection and remove it from every room.

        Args:
            websocket: WebSocket connection object
        """
        async with self._lock:
            self._remove(websocket)

    def _remove(self, websocket: WebSocket):
        # Caller holds the lock
        player_id = self.active_connections.pop(websocket, None)
        self.connection_timestamps.pop(websocket, None)
        for room in list(self.rooms):
            self.rooms[room].discard(websocket)
            if not self.rooms[room]:
                del self.rooms[room]
        if player_id is not None:
            logger.info(f"WebSocket disconnected for player {player_id}")

    async def join_room(self, websocket: WebSocket, room: str) -> bool:
        """
        Add a connection to a room.

        Returns:
            False if the connection is not registered or the room name is empty
        """
        if not room:
            return False
        async with self._lock:
            if websocket not in self.active_connections:
                return False
            self.rooms.setdefault(room, set()).add(websocket)
            self.connection_timestamps[websocket] = datetime.utcnow()
        logger.debug(f"Player {self.active_connections.get(websocket)} joined room {room!r}")
        return True

    async def leave_room(self, websocket: WebSocket, room: str):
        async with self._lock:
            members = self.rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self.rooms[room]

    async def broadcast(self, event: str, payload: dict, room: Optional[str] = None) -> int:
        """
        Send an event to every open connection, or only to a room's members.

        Args:
            event: Event name (e.g. "attendance-update")
            payload: JSON-serialisable event data
            room: Optional room to scope delivery to

        Returns:
            Number of connections the event was written to
        """
        async with self._lock:
            if room is None:
                connections = list(self.active_connections)
            else:
                connections = list(self.rooms.get(room, ()))

        if not connections:
            return 0

        message_json = json.dumps({"event": event, "data": payload}, default=str)

        # Send outside the lock so one slow client cannot block the others
        delivered = 0
        disconnected_connections = []
        for websocket in connections:
            try:
                await websocket.send_text(message_json)
                delivered += 1
            except Exception as e:
                logger.warning(f"Error sending {event!r} over WebSocket: {e}")
                disconnected_connections.append(websocket)

        if disconnected_connections:
            async with self._lock:
                for websocket in disconnected_connections:
                    self._remove(websocket)

        return delivered

    async def get_connection_count(self, room: Optional[str] = None) -> int:
        """
        Number of open connections, overall or in one room.
        """
        async with self._lock:
            if room is None:
                return len(self.active_connections)
            return len(self.rooms.get(room, ()))

    async def update_activity(self, websocket: WebSocket):
        """
        Update the last activity timestamp for a WebSocket connection.
        Called when receiving ping or other messages from client.
        """
        async with self._lock:
            if websocket in self.connection_timestamps:
                self.connection_timestamps[websocket] = datetime.utcnow()

    async def cleanup_stale_connections(self) -> int:
        """
        Close and forget connections idle for longer than the timeout.

        Returns:
            Number of connections removed
        """
        timeout_threshold = datetime.utcnow() - timedelta(seconds=WEBSOCKET_TIMEOUT_SECONDS)

        async with self._lock:
            stale_connections = [
                websocket
                for websocket, last_activity in self.connection_timestamps.items()
                if last_activity < timeout_threshold
            ]
            for websocket in stale_connections:
                self._remove(websocket)

        for websocket in stale_connections:
            try:
                await websocket.close(code=1000, reason="Connection timeout")
            except Exception as e:
                logger.debug(f"Error closing stale connection: {e}")

        if stale_connections:
            logger.info(f"Cleaned up {len(stale_connections)} stale WebSocket connection(s)")
        return len(stale_connections)


# Global WebSocket manager instance
_websocket_manager: Optional[WebSocketManager] = None


def get_websocket_manager() -> WebSocketManager:
    """
    Get the global WebSocket manager instance.

    Returns:
        WebSocketManager instance
    """
    global _websocket_manager
    if _websocket_manager is None:
        _websocket_manager = WebSocketManager()
    return _websocket_manager


async def broadcast_event(event: str, payload: dict, room: Optional[str] = None) -> int:
    """
    Broadcast through the global manager without ever raising.

    A failed broadcast is only a missed live update; callers must not fail
    because of it.
    """
    try:
        return await get_websocket_manager().broadcast(event, payload, room=room)
    except Exception as e:
        logger.warning(f"Failed to broadcast {event!r}: {e}")
        return 0
