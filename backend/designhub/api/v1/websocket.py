"""WebSocket endpoint for live notifications."""

import json

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from designhub.db.session import SessionFactory
from designhub.exceptions import AuthenticationMissing
from designhub.models.user import User
from designhub.services.live import manager
from designhub.services.security import decode_access_token

router = APIRouter(prefix="/ws")
logger = structlog.get_logger()


@router.websocket("/connect")
async def websocket_endpoint(
    websocket: WebSocket,
    session_factory: SessionFactory,
    token: str = Query(...),
):
    """
    Live channel for the authenticated user.

    Query parameters:
    - token: Required. An access token, as browsers cannot set headers on WebSocket requests.

    Server frames are ``{"type": "notification", "payload": {...}}``; a
    ``{"type": "ping"}`` frame is answered with ``{"type": "pong"}``.
    """
    try:
        user_id = decode_access_token(token)
    except AuthenticationMissing:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    async with session_factory() as session:
        user = await session.get(User, user_id)
    if user is None or not user.is_active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    key = str(user_id)
    await manager.connect(websocket, key)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        manager.disconnect(websocket, key)
