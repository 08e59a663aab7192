"""CRUD operations for shop models."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ckflow.models import BayRow, CalendarEventRow, EventLogRow, Profile, RepairOrderRow
from ckflow.schemas.order import Bay


# ── Profile ───────────────────────────────────────────────

async def create_profile(
    db: AsyncSession, token_hash: str, role: str | None,
    display_name: str = "", shop_id: str = "default",
) -> Profile:
    profile = Profile(token_hash=token_hash, role=role, display_name=display_name, shop_id=shop_id)
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


async def get_profile_by_token_hash(db: AsyncSession, token_hash: str) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.token_hash == token_hash))
    return result.scalars().first()


async def list_profiles(db: AsyncSession) -> list[Profile]:
    result = await db.execute(select(Profile).order_by(Profile.created_at))
    return list(result.scalars().all())


# ── Bay ───────────────────────────────────────────────────

async def list_bays(db: AsyncSession) -> list[BayRow]:
    result = await db.execute(select(BayRow).order_by(BayRow.sort_order, BayRow.id))
    return list(result.scalars().all())


async def seed_bays(db: AsyncSession, bays: Sequence[Bay]) -> list[BayRow]:
    """Insert the given bays when the table is empty; returns the rows present afterwards."""
    existing = await list_bays(db)
    if existing:
        return existing
    for bay in bays:
        db.add(BayRow(name=bay.name, work_type=bay.work_type.value, sort_order=bay.id))
    await db.commit()
    return await list_bays(db)


# ── RepairOrder ───────────────────────────────────────────

async def list_order_rows(db: AsyncSession) -> list[RepairOrderRow]:
    result = await db.execute(select(RepairOrderRow).order_by(RepairOrderRow.order_index, RepairOrderRow.id))
    return list(result.scalars().all())


async def get_order_row(db: AsyncSession, ro_number: str) -> RepairOrderRow | None:
    result = await db.execute(select(RepairOrderRow).where(RepairOrderRow.ro_number == ro_number))
    return result.scalars().first()


async def create_order_row(db: AsyncSession, **values) -> RepairOrderRow:
    row = RepairOrderRow(**values)
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return row


async def update_order_row(db: AsyncSession, row: RepairOrderRow, **values) -> RepairOrderRow:
    for k, v in values.items():
        setattr(row, k, v)
    await db.commit()
    await db.refresh(row)
    return row


# ── EventLog ──────────────────────────────────────────────

async def add_event(
    db: AsyncSession, repair_order_id: str, text: str, type: str = "USER",
    entry_type: str = "activity", image_storage_path: str | None = None,
    user_id: str | None = None, user_label: str = "SYSTEM", commit: bool = True,
) -> EventLogRow:
    event = EventLogRow(
        repair_order_id=repair_order_id, text=text, type=type, entry_type=entry_type,
        image_storage_path=image_storage_path, user_id=user_id, user_label=user_label,
    )
    db.add(event)
    if commit:
        await db.commit()
        await db.refresh(event)
    return event


async def list_events(db: AsyncSession) -> list[EventLogRow]:
    result = await db.execute(select(EventLogRow).order_by(EventLogRow.created_at, EventLogRow.id))
    return list(result.scalars().all())


# ── CalendarEvent ─────────────────────────────────────────

async def list_calendar_events(db: AsyncSession) -> list[CalendarEventRow]:
    result = await db.execute(select(CalendarEventRow).order_by(CalendarEventRow.start))
    return list(result.scalars().all())


async def get_calendar_event(db: AsyncSession, event_id: str) -> CalendarEventRow | None:
    return await db.get(CalendarEventRow, event_id)


async def upsert_calendar_event(db: AsyncSession, event_id: str | None, **values) -> CalendarEventRow:
    row = await db.get(CalendarEventRow, event_id) if event_id else None
    if row is None:
        row = CalendarEventRow(**values) if not event_id else CalendarEventRow(id=event_id, **values)
        db.add(row)
    else:
        for k, v in values.items():
            setattr(row, k, v)
    await db.commit()
    await db.refresh(row)
    return row


async def delete_calendar_event(db: AsyncSession, event_id: str) -> bool:
    row = await db.get(CalendarEventRow, event_id)
    if row is None:
        return False
    await db.delete(row)
    await db.commit()
    return True
