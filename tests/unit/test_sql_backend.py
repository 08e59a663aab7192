from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ckflow.db import crud
from ckflow.db.sql_backend import SqlOrderBackend
from ckflow.models import Base
from ckflow.schemas.order import (
    CalendarEvent, LogType, PaymentMethod, RepairOrder, Role, ROStatus, WorkType,
)
from ckflow.services.backend import BayKeyMap, ChangeFeed
from ckflow.services.lifecycle import PendingLog
from ckflow.services.status_codec import is_archived

SETTLED = datetime(2026, 10, 18, 16, 30, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def backend(factory):
    return SqlOrderBackend(factory, user_id="user-1")


async def _keys(backend):
    return BayKeyMap(await backend.list_bays())


async def test_list_bays_seeds_defaults(backend):
    records = await backend.list_bays()
    assert len(records) == 9
    keys = BayKeyMap(records)
    assert keys.number_for(records[6].key) == 7
    assert records[6].work_type == WorkType.BODY
    assert len(await backend.list_bays()) == 9


async def test_create_and_list_order(backend):
    keys = await _keys(backend)
    ro = RepairOrder(
        id="RO-1001", model="Civic", phone="555-0100", info="Brakes", urgent=True,
        mileage=84000, unread_by=[Role.FOREMAN, Role.OWNER], last_read_info={"ADVISOR": "Brakes"},
    )
    await backend.create_order(ro, keys)
    [loaded] = await backend.list_orders(keys)
    assert loaded.id == "RO-1001"
    assert loaded.phone == "555-0100"
    assert loaded.status == ROStatus.TODO
    assert loaded.unread_by == [Role.FOREMAN, Role.OWNER]
    assert loaded.last_read_info == {"ADVISOR": "Brakes"}
    assert loaded.mileage == 84000


async def test_append_log_entry_flags_other_roles(backend):
    keys = await _keys(backend)
    await backend.create_order(RepairOrder(id="RO-1"), keys)
    await backend.append_log_entry("RO-1", PendingLog("RO-1", "Workflow updated: To-do → Pending"), Role.ADVISOR, "Dana")
    await backend.append_log_entry("RO-1", PendingLog("RO-1", "Called customer", type=LogType.USER), Role.ADVISOR, "Dana")
    await backend.append_log_entry(
        "RO-1", PendingLog("RO-1", "Check rotors", type=LogType.AI, kind="diagnostic"), Role.ADVISOR, "Dana",
    )

    [loaded] = await backend.list_orders(keys)
    assert [(e.user, e.text) for e in loaded.logs] == [
        ("SYSTEM", "Workflow updated: To-do → Pending"),
        ("Dana", "Called customer"),
    ]
    assert [e.text for e in loaded.ai_chat] == ["Check rotors"]
    assert loaded.unread_by == [Role.FOREMAN, Role.OWNER]


async def test_settlement_round_trips_as_archived(backend, factory):
    keys = await _keys(backend)
    await backend.create_order(RepairOrder(id="RO-1", status=ROStatus.DONE), keys)
    await backend.update_order("RO-1", {
        "payment_method": PaymentMethod.CASH, "payment_amount": 150.0, "settled_at": SETTLED,
    })
    [loaded] = await backend.list_orders(keys)
    assert is_archived(loaded)
    assert loaded.settled_at == SETTLED

    async with factory() as db:
        row = await crud.get_order_row(db, "RO-1")
    assert row.status == "DONE"
    assert row.payment_status == "paid"


async def test_legacy_insurance_row(backend, factory):
    keys = await _keys(backend)
    async with factory() as db:
        await crud.create_order_row(db, ro_number="RO-9", status="INSURANCE", is_insurance_case=True, work_type="BODY")
    [loaded] = await backend.list_orders(keys)
    assert loaded.status == ROStatus.BODY_WORK
    assert loaded.is_insurance_case


async def test_assign_bay_translates_keys(backend):
    keys = await _keys(backend)
    await backend.create_order(RepairOrder(id="RO-1"), keys)
    entered = 1_760_000_000_000
    await backend.assign_bay("RO-1", keys.key_for(3), 5000, entered)
    [loaded] = await backend.list_orders(keys)
    assert loaded.bay_id == 3
    assert loaded.last_entered_bay_at == entered
    assert loaded.total_time_in_bay == 5000

    await backend.assign_bay("RO-1", None, 9000, None)
    [loaded] = await backend.list_orders(keys)
    assert loaded.bay_id is None
    assert loaded.last_entered_bay_at is None


async def test_rename_keeps_history(backend):
    keys = await _keys(backend)
    await backend.create_order(RepairOrder(id="RO-1"), keys)
    await backend.append_log_entry("RO-1", PendingLog("RO-1", "note", type=LogType.USER), Role.OWNER, "Owner")
    await backend.update_order("RO-1", {"id": "RO-2"})
    [loaded] = await backend.list_orders(keys)
    assert loaded.id == "RO-2"
    assert [e.text for e in loaded.logs] == ["note"]


async def test_update_missing_order_raises(backend):
    with pytest.raises(LookupError):
        await backend.update_order("RO-404", {"model": "x"})


async def test_update_rejects_unknown_field(backend):
    keys = await _keys(backend)
    await backend.create_order(RepairOrder(id="RO-1"), keys)
    with pytest.raises(ValueError):
        await backend.update_order("RO-1", {"logs": []})


async def test_changes_are_published(backend):
    seen = []
    unsubscribe = backend.for_user("user-2").subscribe(seen.append)
    keys = await _keys(backend)
    await backend.create_order(RepairOrder(id="RO-1"), keys)
    await backend.update_order("RO-1", {"urgent": True})
    unsubscribe()
    await backend.update_order("RO-1", {"urgent": False})
    assert [(c.table, c.event) for c in seen] == [
        ("repair_orders", "INSERT"),
        ("repair_orders", "UPDATE"),
    ]


async def test_empty_feed_is_shared(factory):
    feed = ChangeFeed()
    assert feed.listener_count() == 0
    writer = SqlOrderBackend(factory, feed, "user-1")
    assert writer.feed is feed
    seen = []
    feed.subscribe(seen.append)
    keys = await _keys(writer)
    await writer.for_user("user-2").create_order(RepairOrder(id="RO-1"), keys)
    assert feed.listener_count() == 1
    assert [(c.table, c.event) for c in seen] == [("repair_orders", "INSERT")]


async def test_calendar_events(backend):
    start = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)
    event = CalendarEvent(id="evt-1", title="Oil change", start=start, end=start)
    saved = await backend.save_calendar_event(event)
    assert saved.start == start
    assert [e.id for e in await backend.list_calendar_events()] == ["evt-1"]
    await backend.delete_calendar_event("evt-1")
    assert await backend.list_calendar_events() == []
