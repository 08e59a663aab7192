"""Read-side board projections: module filter, search, history and column layout."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ckflow.schemas.order import PaymentMethod, RepairOrder, ROStatus, WorkType
from ckflow.services.slotting import GRID_ROW_SIZE, assign_slots, grid_capacity
from ckflow.services.status_codec import display_status, is_archived
from ckflow.services.timefmt import slot_sort_key


@dataclass(frozen=True)
class ColumnLayout:
    status: ROStatus
    label: str
    slots: list[RepairOrder | None]
    collapsed: bool = False

    @property
    def count(self) -> int:
        return sum(1 for s in self.slots if s is not None)


def _digits(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())


def matches_query(order: RepairOrder, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    haystack = (order.customer_name, order.model, order.id, order.vin)
    if any(q in field.lower() for field in haystack):
        return True
    q_digits = _digits(q)
    return bool(q_digits) and q_digits in _digits(order.phone)


def filter_orders(orders: Sequence[RepairOrder], work_type: WorkType, query: str = "") -> list[RepairOrder]:
    return [ro for ro in orders if ro.work_type == work_type and matches_query(ro, query)]


def history(orders: Sequence[RepairOrder], work_type: WorkType, query: str = "") -> list[RepairOrder]:
    """Settled orders of the module, most recent settlement first."""
    settled = [
        ro for ro in filter_orders(orders, work_type, query)
        if is_archived(ro) and ro.payment_method in tuple(PaymentMethod)
    ]
    return sorted(settled, key=lambda ro: ro.settled_at, reverse=True)


def column_orders(orders: Sequence[RepairOrder], status: ROStatus) -> list[RepairOrder]:
    return sorted(
        (ro for ro in orders if display_status(ro) == status),
        key=slot_sort_key,
    )


def layout_columns(
    orders: Sequence[RepairOrder],
    columns: Sequence[ROStatus],
    labels: dict[ROStatus, str],
    collapsed: set[ROStatus] | None = None,
    row_size: int = GRID_ROW_SIZE,
) -> list[ColumnLayout]:
    collapsed = collapsed or set()
    result = []
    for status in columns:
        members = column_orders(orders, status)
        result.append(ColumnLayout(
            status=status,
            label=labels[status],
            slots=assign_slots(members, grid_capacity(len(members), row_size)),
            collapsed=status in collapsed,
        ))
    return result
