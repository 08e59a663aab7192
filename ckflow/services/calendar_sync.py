"""Zero-touch materialization of same-day calendar events into repair orders."""

from __future__ import annotations

import logging
from datetime import date, timezone, tzinfo
from typing import Sequence

from ckflow.schemas.order import ALL_ROLES, CalendarEvent, RepairOrder, ROStatus, WorkType
from ckflow.services.lifecycle import Mutation, NewOrder, OrderPatch, PendingLog, replace_order

logger = logging.getLogger(__name__)

CALENDAR_VIN = "CALENDAR_SYNC"
FALLBACK_INFO = "Synced from Calendar"
ZERO_TOUCH_LOG = "Zero-Touch: Auto-synced from Calendar for today."


def event_day(event: CalendarEvent, tz: tzinfo = timezone.utc) -> date:
    start = event.start
    if start.tzinfo is not None:
        start = start.astimezone(tz)
    return start.date()


def event_info(event: CalendarEvent) -> str:
    return event.description or FALLBACK_INFO


def calendar_order_id(event: CalendarEvent, taken: set[str]) -> str:
    base = f"CAL-{event.id[-4:].upper()}"
    candidate, n = base, 2
    while candidate in taken:
        candidate = f"{base}-{n}"
        n += 1
    return candidate


def materialize_calendar(
    orders: Sequence[RepairOrder],
    events: Sequence[CalendarEvent],
    today: date,
    work_type: WorkType = WorkType.MECHANIC,
    tz: tzinfo = timezone.utc,
) -> Mutation | None:
    """Create or heal one order per event starting on ``today`` in the shop zone ``tz``.

    Returns ``None`` when every same-day event already has an order matching
    its title and description, so running twice in a row is a no-op.
    """
    current = list(orders)
    logs: list[PendingLog] = []
    writes = []
    linked = {ro.calendar_event_id: ro for ro in current if ro.calendar_event_id}
    taken = {ro.id for ro in current}

    for event in events:
        if event_day(event, tz) != today:
            continue
        info = event_info(event)
        existing = linked.get(event.id)
        if existing is None:
            ro = RepairOrder(
                id=calendar_order_id(event, taken),
                model=event.title,
                vin=CALENDAR_VIN,
                customer_name="Schedule Entry",
                phone="N/A",
                info=info,
                status=ROStatus.TODO,
                order=len(current),
                unread_by=list(ALL_ROLES),
                calendar_event_id=event.id,
                work_type=work_type,
            )
            taken.add(ro.id)
            current.append(ro)
            linked[event.id] = ro
            logs.append(PendingLog(ro.id, ZERO_TOUCH_LOG))
            writes.append(NewOrder(ro))
            logger.info("Zero-touch: created %s from calendar event %s", ro.id, event.id)
        elif existing.model != event.title or existing.info != info:
            fields = {"model": event.title, "info": info}
            current = replace_order(current, existing.id, **fields)
            writes.append(OrderPatch(existing.id, fields))
            logger.info("Zero-touch: re-synced %s from calendar event %s", existing.id, event.id)

    if not writes:
        return None
    return Mutation(orders=current, logs=logs, writes=writes)
