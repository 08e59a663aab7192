import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest_asyncio
from ulid import ULID

from ckflow.agents.prompts import DIAGNOSTIC_ERROR_TEXT
from ckflow.schemas.order import (
    CalendarEvent, LogEntry, LogType, PaymentMethod, RepairOrder, Role, ROStatus, WorkType,
)
from ckflow.services.backend import BayRecord, ChangeEvent, ChangeFeed, OrderBackend
from ckflow.services.bay_tracker import DEFAULT_BAYS
from ckflow.services.lifecycle import BayConflict
from ckflow.services.local_store import LocalSnapshotStore
from ckflow.services.reconciler import ShopBoard

NOW = 1_760_000_000_000
TODAY = date(2026, 10, 18)


class FakeBackend(OrderBackend):
    """In-memory system of record that behaves like the SQL backend."""

    def __init__(self, orders=(), events=()):
        self.orders = {ro.id: ro for ro in orders}
        self.events = {e.id: e for e in events}
        self.feed = ChangeFeed()
        self.list_orders_calls = 0
        self.records = [
            BayRecord(key=f"bay-{b.id:02d}", name=b.name, work_type=b.work_type, sort_order=b.id)
            for b in DEFAULT_BAYS
        ]

    async def list_bays(self):
        return list(self.records)

    async def list_orders(self, bay_keys):
        self.list_orders_calls += 1
        return list(self.orders.values())

    async def create_order(self, order, bay_keys):
        self.orders[order.id] = order
        self.feed.publish(ChangeEvent("repair_orders", "INSERT", order.id))
        return order

    async def update_order(self, order_id, fields):
        ro = self.orders.pop(order_id)
        updated = ro.model_copy(update=fields)
        self.orders[updated.id] = updated
        self.feed.publish(ChangeEvent("repair_orders", "UPDATE", updated.id))

    async def assign_bay(self, order_id, bay_key, total_time_in_bay_ms, last_entered_bay_at):
        number = int(bay_key.split("-")[1]) if bay_key else None
        self.orders[order_id] = self.orders[order_id].model_copy(update={
            "bay_id": number,
            "total_time_in_bay": total_time_in_bay_ms,
            "last_entered_bay_at": last_entered_bay_at,
        })

    async def append_log_entry(self, order_id, entry, author_role, author_label):
        log = LogEntry(
            id=str(ULID()),
            timestamp=datetime.now(timezone.utc),
            user="SYSTEM" if entry.type == LogType.SYSTEM else author_label,
            text=entry.text,
            type=entry.type,
        )
        ro = self.orders[order_id]
        target = "ai_chat" if entry.kind == "diagnostic" else "logs"
        self.orders[order_id] = ro.model_copy(update={target: [*getattr(ro, target), log]})
        return log

    async def list_calendar_events(self):
        return list(self.events.values())

    async def save_calendar_event(self, event):
        self.events[event.id] = event
        return event

    async def delete_calendar_event(self, event_id):
        self.events.pop(event_id, None)

    def subscribe(self, listener):
        return self.feed.subscribe(listener)


def _board(backend=None, role=Role.OWNER, **kw):
    kw.setdefault("tz", timezone.utc)
    return ShopBoard(role, backend=backend, clock=lambda: NOW, today=lambda: TODAY, **kw)


@pytest_asyncio.fixture
async def backend():
    return FakeBackend(orders=[
        RepairOrder(id="RO-1001", model="Civic", status=ROStatus.TODO),
        RepairOrder(id="RO-1002", model="Golf", status=ROStatus.IN_PROGRESS, bay_id=1, last_entered_bay_at=NOW - 60_000),
    ])


async def test_start_loads_orders_and_bays(backend):
    board = _board(backend)
    await board.start()
    assert {ro.id for ro in board.orders} == {"RO-1001", "RO-1002"}
    assert [b.id for b in board.bays] == list(range(1, 10))
    assert board.bay_keys.key_for(7) == "bay-07"
    await board.close()


async def test_writes_are_optimistic_then_persisted(backend):
    board = _board(backend)
    await board.start()
    assert board.change_status("RO-1001", ROStatus.PENDING)
    assert board.get_order("RO-1001").status == ROStatus.PENDING
    assert board.get_order("RO-1001").logs[-1].text == "Workflow updated: To-do → Pending"

    await board.drain()
    stored = backend.orders["RO-1001"]
    assert stored.status == ROStatus.PENDING
    assert [e.text for e in stored.logs] == ["Workflow updated: To-do → Pending"]
    await board.close()


async def test_failed_write_keeps_optimistic_state(backend, caplog):
    board = _board(backend)
    await board.start()
    backend.update_order = AsyncMock(side_effect=RuntimeError("backend down"))
    with caplog.at_level(logging.ERROR):
        assert board.change_status("RO-1001", ROStatus.DONE)
        await board.drain()
    assert board.get_order("RO-1001").status == ROStatus.DONE
    assert backend.orders["RO-1001"].status == ROStatus.TODO
    assert "Remote write failed" in caplog.text
    await board.close()


async def test_remote_changes_are_debounced(backend):
    board = _board(backend, debounce_ms=30)
    await board.start()
    calls = backend.list_orders_calls
    for _ in range(5):
        backend.feed.publish(ChangeEvent("repair_orders", "UPDATE", "RO-1001"))
    backend.feed.publish(ChangeEvent("profiles", "UPDATE"))
    await asyncio.sleep(0.1)
    await board.drain()
    assert backend.list_orders_calls == calls + 1
    await board.close()


async def test_refetch_picks_up_other_writers(backend):
    board = _board(backend, debounce_ms=10)
    await board.start()
    await backend.update_order("RO-1001", {"model": "Civic Si"})
    await asyncio.sleep(0.05)
    await board.drain()
    assert board.get_order("RO-1001").model == "Civic Si"
    await board.close()


async def test_bay_conflict_flow(backend):
    board = _board(backend, role=Role.FOREMAN)
    await board.start()
    conflict = board.move_to_bay("RO-1001", 1)
    assert conflict == BayConflict(order_id="RO-1001", bay_id=1, occupant_id="RO-1002")
    assert board.pending_conflicts[1] == conflict

    assert board.resolve_bay_conflict(1, ROStatus.DONE)
    assert 1 not in board.pending_conflicts
    await board.drain()

    assert backend.orders["RO-1001"].bay_id == 1
    assert backend.orders["RO-1001"].status == ROStatus.IN_PROGRESS
    assert backend.orders["RO-1002"].bay_id is None
    assert backend.orders["RO-1002"].status == ROStatus.DONE
    assert board.bay_occupancy()[0].order.id == "RO-1001"
    await board.close()


async def test_cancel_conflict(backend):
    board = _board(backend)
    await board.start()
    board.move_to_bay("RO-1001", 1)
    assert board.cancel_bay_conflict(1)
    assert not board.cancel_bay_conflict(1)
    assert board.get_order("RO-1001").bay_id is None
    await board.close()


async def test_zero_touch_sync_creates_order_once():
    event = CalendarEvent(
        id="aaaaevt0", title="Brake job - Kim", description="",
        start=datetime(2026, 10, 18, 14, 0, tzinfo=timezone.utc),
        end=datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc),
    )
    backend = FakeBackend(events=[event])
    board = _board(backend)
    await board.start()
    await board.drain()

    created = [ro for ro in backend.orders.values() if ro.calendar_event_id == "aaaaevt0"]
    assert len(created) == 1
    assert created[0].id == "CAL-EVT0"
    assert created[0].logs[0].text == "Zero-Touch: Auto-synced from Calendar for today."

    await board.refetch()
    await board.drain()
    assert len([ro for ro in backend.orders.values() if ro.calendar_event_id]) == 1
    await board.close()


async def test_zero_touch_sync_uses_shop_zone():
    eastern = timezone(timedelta(hours=-4))
    start = datetime(2026, 10, 18, 21, 30, tzinfo=eastern)
    backend = FakeBackend(events=[CalendarEvent(id="bbbbeve1", title="Tow-in", start=start, end=start)])
    board = _board(backend, tz=eastern)
    assert board.tz is eastern
    await board.start()
    await board.drain()
    assert [ro.id for ro in backend.orders.values() if ro.calendar_event_id] == ["CAL-EVE1"]
    await board.close()


def test_default_today_follows_board_zone():
    eastern = timezone(timedelta(hours=-4))
    board = ShopBoard(Role.OWNER, tz=eastern)
    assert board.today() == datetime.now(eastern).date()


async def test_settle_and_history(backend):
    board = _board(backend)
    await board.start()
    board.change_status("RO-1001", ROStatus.DONE)
    assert board.settle("RO-1001", PaymentMethod.CHEQUE, 420.5)
    assert [ro.id for ro in board.history()] == ["RO-1001"]
    assert "RO-1001" not in {s.id for col in board.layout() for s in col.slots if s}
    assert board.restore("RO-1001")
    assert board.history() == []
    await board.drain()
    await board.close()


async def test_local_mode_persists_to_store(tmp_path):
    store = LocalSnapshotStore(tmp_path)
    board = _board(store=store, role=Role.ADVISOR)
    await board.start()
    ro = board.create_order(model="Corolla", info="Noise at idle")
    assert ro is not None
    board.reorder_columns(ROStatus.PENDING, ROStatus.DONE)
    board.toggle_section(ROStatus.DONE)

    again = _board(store=LocalSnapshotStore(tmp_path), role=Role.ADVISOR)
    await again.start()
    assert again.get_order(ro.id).model == "Corolla"
    assert again.visible_columns()[0] == ROStatus.PENDING
    assert again.collapsed == {ROStatus.DONE}


async def test_set_module_switches_visible_orders(tmp_path):
    board = _board(store=LocalSnapshotStore(tmp_path))
    await board.start()
    board.create_order(model="Mech car")
    board.set_module(WorkType.BODY)
    board.create_order(model="Body car")
    assert [ro.model for ro in board.visible_orders()] == ["Body car"]
    assert board.visible_columns()[-1] == ROStatus.MECHANIC_WORK


async def test_decode_vin_renames_model(backend):
    board = _board(backend)
    await board.start()
    board.edit_fields("RO-1001", vin="WBA8B3C5XJK000001")
    provider = AsyncMock()
    provider.chat.return_value = '{"year": "2018", "make": "BMW", "model": "340i", "engine": "3.0L I6"}'
    decoded = await board.decode_vin("RO-1001", provider)
    assert decoded.engine == "3.0L I6"
    ro = board.get_order("RO-1001")
    assert ro.model == "2018 BMW 340i"
    assert ro.decoded_data.decoded_at is not None
    await board.drain()
    await board.close()


async def test_decode_vin_skips_calendar_placeholder(backend):
    board = _board(backend)
    await board.start()
    board.edit_fields("RO-1001", vin="CALENDAR_SYNC")
    provider = AsyncMock()
    assert await board.decode_vin("RO-1001", provider) is None
    provider.chat.assert_not_called()
    await board.drain()
    await board.close()


async def test_diagnostic_failure_is_recorded(backend):
    board = _board(backend)
    await board.start()
    provider = AsyncMock()
    provider.chat.side_effect = RuntimeError("rate limited")
    advice = await board.ask_diagnostic("RO-1001", "Grinding when braking", provider)
    assert advice == DIAGNOSTIC_ERROR_TEXT
    chat = board.get_order("RO-1001").ai_chat
    assert [(e.type, e.text) for e in chat] == [
        (LogType.USER, "Grinding when braking"),
        (LogType.AI, DIAGNOSTIC_ERROR_TEXT),
    ]
    await board.drain()
    await board.close()
