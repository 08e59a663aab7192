"""Read-side projection of which order occupies each work bay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ckflow.schemas.order import Bay, RepairOrder, WorkType

DEFAULT_BAYS: tuple[Bay, ...] = (
    Bay(id=1, name="Bay 1", work_type=WorkType.MECHANIC),
    Bay(id=2, name="Bay 2", work_type=WorkType.MECHANIC),
    Bay(id=3, name="Bay 3", work_type=WorkType.MECHANIC),
    Bay(id=4, name="Bay 4", work_type=WorkType.MECHANIC),
    Bay(id=5, name="Bay 5", work_type=WorkType.MECHANIC),
    Bay(id=6, name="Oil Changer", work_type=WorkType.MECHANIC),
    Bay(id=7, name="Body Work", work_type=WorkType.BODY),
    Bay(id=8, name="Painting and Prep", work_type=WorkType.BODY),
    Bay(id=9, name="Mechanic Shop To-do", work_type=WorkType.BODY),
)


@dataclass(frozen=True)
class BayOccupancy:
    bay: Bay
    order: RepairOrder | None
    session_elapsed_ms: int
    lifetime_total_ms: int


def session_elapsed(order: RepairOrder, now: int) -> int:
    if order.last_entered_bay_at is None:
        return 0
    return max(0, now - order.last_entered_bay_at)


def lifetime_total(order: RepairOrder, now: int) -> int:
    return order.total_time_in_bay + session_elapsed(order, now)


def occupant(bay_id: int, orders: Sequence[RepairOrder]) -> RepairOrder | None:
    """The order referencing the bay; the latest entrant wins a transient double booking."""
    candidates = [ro for ro in orders if ro.bay_id == bay_id]
    if not candidates:
        return None
    return max(candidates, key=lambda ro: ro.last_entered_bay_at or 0)


def project_bays(bays: Sequence[Bay], orders: Sequence[RepairOrder]) -> list[Bay]:
    result = []
    for bay in bays:
        ro = occupant(bay.id, orders)
        result.append(bay.model_copy(update={"current_ro_id": ro.id if ro else None}))
    return result


def occupancy(bays: Sequence[Bay], orders: Sequence[RepairOrder], now: int) -> list[BayOccupancy]:
    result = []
    for bay in project_bays(bays, orders):
        ro = occupant(bay.id, orders)
        result.append(BayOccupancy(
            bay=bay,
            order=ro,
            session_elapsed_ms=session_elapsed(ro, now) if ro else 0,
            lifetime_total_ms=lifetime_total(ro, now) if ro else 0,
        ))
    return result
