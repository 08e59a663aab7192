from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ckflow.db.engine import async_session_factory
from ckflow.schemas.ws_messages import WSMessage
from ckflow.services.auth import authenticate_token
from ckflow.services.capabilities import can_broadcast
from ckflow.services.ws_manager import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/api/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(default=""),
):
    # Auth via query param token
    async with async_session_factory() as db:
        auth = await authenticate_token(token, db)
    if auth is None:
        await websocket.close(code=4001, reason="Unauthorized")
        return

    channel = auth.shop_id
    await ws_manager.connect(channel, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = WSMessage.model_validate(json.loads(raw))
            except (ValueError, ValidationError):
                continue
            if msg.type not in ("BROADCAST", "CLEAR_BROADCAST"):
                continue
            if not can_broadcast(auth.role):
                logger.warning("[capabilities] broadcast: not allowed for role %s", auth.role)
                continue
            if msg.type == "BROADCAST" and msg.payload:
                await ws_manager.announce(channel, msg.payload)
            elif msg.type == "CLEAR_BROADCAST":
                await ws_manager.clear_announcement(channel)
    except WebSocketDisconnect:
        ws_manager.disconnect(channel, websocket)
