"""Live delivery to connected WebSocket sessions."""

from typing import Any

import structlog
from fastapi import WebSocket

logger = structlog.get_logger()


class ConnectionManager:
    """Tracks open WebSocket sessions per user."""

    def __init__(self) -> None:
        # Map of user_id -> open sessions (one per tab/device)
        self.user_connections: dict[str, set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Accept and register a websocket connection."""
        await websocket.accept()
        self.user_connections.setdefault(user_id, set()).add(websocket)
        logger.debug("websocket_connected", user_id=user_id)

    def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        """Unregister a websocket connection."""
        sessions = self.user_connections.get(user_id)
        if not sessions:
            return
        sessions.discard(websocket)
        if not sessions:
            del self.user_connections[user_id]
        logger.debug("websocket_disconnected", user_id=user_id)

    def is_connected(self, user_id: str) -> bool:
        return bool(self.user_connections.get(user_id))

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send message to every session of a user; returns how many received it."""
        delivered = 0
        for connection in list(self.user_connections.get(user_id, ())):
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as exc:
                # Connection might be closed
                logger.debug("websocket_send_failed", user_id=user_id, error=str(exc))
                self.disconnect(connection, user_id)
        return delivered


# Global connection manager instance
manager = ConnectionManager()


async def notify_user(user_id: str, notification_data: dict[str, Any]) -> None:
    """Send notification to a specific user."""
    await manager.send_to_user(
        user_id,
        {
            "type": "notification",
            "payload": notification_data,
        },
    )
