from datetime import datetime, timezone

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ckflow.models import Base
from ckflow.db import crud
from ckflow.services.bay_tracker import DEFAULT_BAYS


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


async def test_create_and_find_profile(db):
    profile = await crud.create_profile(db, "hash-1", "foreman", "Sam", "shop-a")
    assert profile.id is not None
    assert profile.is_active

    fetched = await crud.get_profile_by_token_hash(db, "hash-1")
    assert fetched.id == profile.id
    assert fetched.role == "foreman"
    assert await crud.get_profile_by_token_hash(db, "nope") is None


async def test_seed_bays_only_when_empty(db):
    rows = await crud.seed_bays(db, DEFAULT_BAYS)
    assert [r.name for r in rows] == [b.name for b in DEFAULT_BAYS]
    again = await crud.seed_bays(db, DEFAULT_BAYS[:2])
    assert len(again) == 9


async def test_create_and_update_order_row(db):
    row = await crud.create_order_row(db, ro_number="RO-1001", model="Civic", status="TO_DO")
    assert row.id is not None
    assert row.unread_by == []

    updated = await crud.update_order_row(db, row, status="PENDING", unread_by=["OWNER"])
    assert updated.status == "PENDING"

    fetched = await crud.get_order_row(db, "RO-1001")
    assert fetched.unread_by == ["OWNER"]
    assert await crud.get_order_row(db, "RO-404") is None


async def test_events_listed_in_insert_order(db):
    row = await crud.create_order_row(db, ro_number="RO-1")
    await crud.add_event(db, row.id, "first", type="SYSTEM")
    await crud.add_event(db, row.id, "second", user_id="u1", user_label="Dana")
    events = await crud.list_events(db)
    assert [e.text for e in events] == ["first", "second"]
    assert events[1].user_label == "Dana"


async def test_calendar_upsert_and_delete(db):
    start = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)
    row = await crud.upsert_calendar_event(db, "evt-1", title="Brakes", description="", start=start, end=start)
    assert row.id == "evt-1"

    await crud.upsert_calendar_event(db, "evt-1", title="Brakes and rotors")
    rows = await crud.list_calendar_events(db)
    assert len(rows) == 1
    assert rows[0].title == "Brakes and rotors"

    assert await crud.delete_calendar_event(db, "evt-1") is True
    assert await crud.delete_calendar_event(db, "evt-1") is False
