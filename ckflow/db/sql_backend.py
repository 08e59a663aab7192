"""SQLAlchemy-backed system of record with an in-process change feed."""

from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ckflow.db import crud
from ckflow.db.serialization import deserialize_order, row_to_log, serialize_order, serialize_update
from ckflow.models import CalendarEventRow
from ckflow.schemas.order import ALL_ROLES, CalendarEvent, LogEntry, RepairOrder, Role, WorkType
from ckflow.services.backend import BayKeyMap, BayRecord, ChangeEvent, ChangeFeed, Listener, OrderBackend
from ckflow.services.bay_tracker import DEFAULT_BAYS
from ckflow.services.lifecycle import PendingLog
from ckflow.services.timefmt import as_utc, ms_to_datetime

logger = logging.getLogger(__name__)


def _calendar_event(row: CalendarEventRow) -> CalendarEvent:
    return CalendarEvent(
        id=row.id,
        title=row.title,
        description=row.description,
        start=as_utc(row.start),
        end=as_utc(row.end),
    )


class SqlOrderBackend(OrderBackend):
    """Every committed write is published on ``feed`` so all attached boards refetch."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed | None = None,
        user_id: str | None = None,
    ):
        self._session_factory = session_factory
        self.feed = feed if feed is not None else ChangeFeed()
        self.user_id = user_id

    def for_user(self, user_id: str | None) -> SqlOrderBackend:
        """Same database and feed, attributing log entries to ``user_id``."""
        return SqlOrderBackend(self._session_factory, self.feed, user_id)

    def _publish(self, table: str, event: str, row_id: str | None = None) -> None:
        self.feed.publish(ChangeEvent(table=table, event=event, row_id=row_id))

    # ── Bays ──────────────────────────────────────────────

    async def list_bays(self) -> list[BayRecord]:
        async with self._session_factory() as db:
            rows = await crud.list_bays(db)
            if not rows:
                logger.info("No bays found, seeding %d default bays", len(DEFAULT_BAYS))
                rows = await crud.seed_bays(db, DEFAULT_BAYS)
        return [
            BayRecord(key=r.id, name=r.name, work_type=WorkType(r.work_type), sort_order=r.sort_order)
            for r in rows
        ]

    # ── Orders ────────────────────────────────────────────

    async def list_orders(self, bay_keys: BayKeyMap) -> list[RepairOrder]:
        async with self._session_factory() as db:
            rows = await crud.list_order_rows(db)
            events = await crud.list_events(db)

        activity: dict[str, list[LogEntry]] = {}
        diagnostic: dict[str, list[LogEntry]] = {}
        for ev in events:
            target = diagnostic if ev.entry_type == "diagnostic" else activity
            target.setdefault(ev.repair_order_id, []).append(row_to_log(ev))

        return [
            deserialize_order(
                row,
                activity.get(row.id, []),
                diagnostic.get(row.id, []),
                bay_keys.number_for(row.bay_id),
            )
            for row in rows
        ]

    async def create_order(self, order: RepairOrder, bay_keys: BayKeyMap) -> RepairOrder:
        async with self._session_factory() as db:
            row = await crud.create_order_row(db, **serialize_order(order, bay_keys.key_for(order.bay_id)))
            for entry, entry_type in [(e, "activity") for e in order.logs] + [(e, "diagnostic") for e in order.ai_chat]:
                await crud.add_event(
                    db, row.id, entry.text, type=entry.type.value, entry_type=entry_type,
                    image_storage_path=entry.image_url, user_label=entry.user, commit=False,
                )
            await db.commit()
        self._publish("repair_orders", "INSERT", order.id)
        return order

    async def update_order(self, order_id: str, fields: dict[str, Any]) -> None:
        values = serialize_update(fields)
        if not values:
            return
        async with self._session_factory() as db:
            row = await crud.get_order_row(db, order_id)
            if row is None:
                raise LookupError(f"Repair order {order_id} not found")
            await crud.update_order_row(db, row, **values)
        self._publish("repair_orders", "UPDATE", values.get("ro_number", order_id))

    async def assign_bay(
        self,
        order_id: str,
        bay_key: str | None,
        total_time_in_bay_ms: int,
        last_entered_bay_at: int | None,
    ) -> None:
        async with self._session_factory() as db:
            row = await crud.get_order_row(db, order_id)
            if row is None:
                raise LookupError(f"Repair order {order_id} not found")
            await crud.update_order_row(
                db, row,
                bay_id=bay_key,
                total_time_in_bay_ms=total_time_in_bay_ms,
                last_entered_bay_at=ms_to_datetime(last_entered_bay_at) if last_entered_bay_at is not None else None,
            )
        self._publish("repair_orders", "UPDATE", order_id)

    async def append_log_entry(
        self,
        order_id: str,
        entry: PendingLog,
        author_role: Role,
        author_label: str,
    ) -> LogEntry:
        """Insert the entry and flag every other role unread in one commit."""
        async with self._session_factory() as db:
            row = await crud.get_order_row(db, order_id)
            if row is None:
                raise LookupError(f"Repair order {order_id} not found")
            unread = set(row.unread_by or []) | {r.value for r in ALL_ROLES if r != author_role}
            row.unread_by = [r.value for r in ALL_ROLES if r.value in unread]
            system = entry.type.value == "SYSTEM"
            event = await crud.add_event(
                db, row.id, entry.text, type=entry.type.value, entry_type=entry.kind,
                image_storage_path=entry.image_url,
                user_id=None if system else self.user_id or author_role.value,
                user_label=entry.user or ("SYSTEM" if system else author_label),
            )
        self._publish("event_log", "INSERT", event.id)
        return row_to_log(event)

    # ── Calendar ──────────────────────────────────────────

    async def list_calendar_events(self) -> list[CalendarEvent]:
        async with self._session_factory() as db:
            rows = await crud.list_calendar_events(db)
        return [_calendar_event(r) for r in rows]

    async def save_calendar_event(self, event: CalendarEvent) -> CalendarEvent:
        async with self._session_factory() as db:
            row = await crud.upsert_calendar_event(
                db, event.id or None,
                title=event.title, description=event.description, start=event.start, end=event.end,
            )
        saved = _calendar_event(row)
        self._publish("calendar_events", "UPDATE", saved.id)
        return saved

    async def delete_calendar_event(self, event_id: str) -> None:
        async with self._session_factory() as db:
            deleted = await crud.delete_calendar_event(db, event_id)
        if deleted:
            self._publish("calendar_events", "DELETE", event_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.feed.subscribe(listener)
