import json
from unittest.mock import AsyncMock

from ckflow.services.ws_manager import ConnectionManager


def _socket():
    ws = AsyncMock()
    ws.sent = []
    ws.send_text.side_effect = ws.sent.append
    return ws


async def test_broadcast_reaches_channel_only():
    mgr = ConnectionManager()
    a, b = _socket(), _socket()
    await mgr.connect("shop-a", a)
    await mgr.connect("shop-b", b)
    await mgr.broadcast("shop-a", {"type": "board_changed", "data": {"table": "repair_orders"}})
    assert json.loads(a.sent[0])["type"] == "board_changed"
    assert b.sent == []


async def test_dead_socket_removed():
    mgr = ConnectionManager()
    dead = _socket()
    dead.send_text.side_effect = RuntimeError("closed")
    await mgr.connect("shop", dead)
    await mgr.broadcast("shop", {"type": "bay_tick"})
    assert mgr.connection_count("shop") == 0


async def test_announcement_replayed_to_late_joiners():
    mgr = ConnectionManager()
    await mgr.announce("shop", "Lunch at noon")
    late = _socket()
    await mgr.connect("shop", late)
    msg = json.loads(late.sent[0])
    assert msg["type"] == "BROADCAST"
    assert msg["payload"] == "Lunch at noon"

    await mgr.clear_announcement("shop")
    assert mgr.current_broadcast("shop") is None
    assert json.loads(late.sent[-1])["type"] == "CLEAR_BROADCAST"


async def test_disconnect():
    mgr = ConnectionManager()
    ws = _socket()
    await mgr.connect("shop", ws)
    mgr.disconnect("shop", ws)
    mgr.disconnect("shop", ws)
    assert mgr.connection_count("shop") == 0
