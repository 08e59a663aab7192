"""WebSocket connection manager for shop broadcasts and live board updates."""

from __future__ import annotations

import json
from fastapi import WebSocket

from ckflow.schemas.ws_messages import WSMessage


class ConnectionManager:
    def __init__(self):
        self._connections: dict[str, list[WebSocket]] = {}
        self._broadcasts: dict[str, str] = {}

    async def connect(self, channel: str, websocket: WebSocket):
        await websocket.accept()
        self._connections.setdefault(channel, []).append(websocket)
        current = self._broadcasts.get(channel)
        if current is not None:
            await websocket.send_text(WSMessage(type="BROADCAST", payload=current).model_dump_json())

    def disconnect(self, channel: str, websocket: WebSocket):
        conns = self._connections.get(channel, [])
        if websocket in conns:
            conns.remove(websocket)

    def connection_count(self, channel: str) -> int:
        return len(self._connections.get(channel, []))

    async def broadcast(self, channel: str, message: dict):
        """Send a JSON message to all clients connected to a channel."""
        conns = self._connections.get(channel, [])
        dead = []
        for ws in conns:
            try:
                await ws.send_text(json.dumps(message, default=str))
            except Exception:
                dead.append(ws)
        for ws in dead:
            conns.remove(ws)

    # ── Shop announcements ────────────────────────────────

    def current_broadcast(self, channel: str) -> str | None:
        return self._broadcasts.get(channel)

    async def announce(self, channel: str, text: str):
        self._broadcasts[channel] = text
        await self.broadcast(channel, WSMessage(type="BROADCAST", payload=text).model_dump())

    async def clear_announcement(self, channel: str):
        self._broadcasts.pop(channel, None)
        await self.broadcast(channel, WSMessage(type="CLEAR_BROADCAST").model_dump())


ws_manager = ConnectionManager()
