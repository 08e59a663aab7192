"""Order lifecycle state machine.

Every transition is a pure function of the previous order collection: it
returns a ``Mutation`` holding the next collection, the activity entries to
append and the remote writes that persist the change. A denied capability or
an unknown id returns ``None`` and leaves everything untouched.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from ckflow.schemas.order import (
    ALL_ROLES, STORED_STATUSES,
    Bay, LogType, PaymentMethod, RepairOrder, Role, ROStatus, WorkType,
)
from ckflow.services.bay_tracker import occupant, session_elapsed
from ckflow.services.capabilities import (
    can_assign_bay, can_change_payment, can_change_status, can_create_order,
)
from ckflow.services.status_codec import is_archived, status_labels
from ckflow.services.timefmt import format_ms, ms_to_datetime, now_ms

logger = logging.getLogger(__name__)

CONFLICT_RESOLUTIONS = (ROStatus.DONE, ROStatus.PENDING)

DEFAULT_BODY_BAY_STATUSES: dict[int, ROStatus] = {
    7: ROStatus.BODY_WORK,
    8: ROStatus.PAINTING,
    9: ROStatus.MECHANIC_WORK,
}

# Field edits that emit an activity line, in the order the lines are written.
_LOGGED_FIELDS: tuple[tuple[str, Callable[[RepairOrder, Any], str]], ...] = (
    ("id", lambda ro, v: f"RO changed: {ro.id} → {v}"),
    ("model", lambda ro, v: f"Model updated: {v}"),
    ("vin", lambda ro, v: f"VIN updated: {v}"),
    ("customer_name", lambda ro, v: f"Customer: {v}"),
    ("phone", lambda ro, v: f"Phone: {v}"),
    ("urgent", lambda ro, v: f"Priority: {'URGENT' if v else 'NORMAL'}"),
    ("mileage", lambda ro, v: f"Odometer updated: {v} km"),
)

EDITABLE_FIELDS = frozenset({
    "id", "model", "vin", "customer_name", "phone", "urgent", "mileage",
    "info", "delivery_date", "is_insurance_case", "attachments", "decoded_data",
})


@dataclass(frozen=True)
class PendingLog:
    order_id: str
    text: str
    type: LogType = LogType.SYSTEM
    kind: str = "activity"  # activity | diagnostic
    image_url: str | None = None
    user: str | None = None  # display label override


@dataclass(frozen=True)
class OrderPatch:
    order_id: str
    fields: dict[str, Any]


@dataclass(frozen=True)
class BayWrite:
    order_id: str
    bay_id: int | None
    total_time_in_bay_ms: int
    last_entered_bay_at: int | None


@dataclass(frozen=True)
class NewOrder:
    order: RepairOrder


Write = OrderPatch | BayWrite | NewOrder


@dataclass
class Mutation:
    orders: list[RepairOrder]
    logs: list[PendingLog] = field(default_factory=list)
    writes: list[Write] = field(default_factory=list)

    def then(self, other: Mutation) -> Mutation:
        """Chain a mutation computed from this one's resulting collection."""
        return Mutation(
            orders=other.orders,
            logs=self.logs + other.logs,
            writes=self.writes + other.writes,
        )


@dataclass(frozen=True)
class BayConflict:
    order_id: str
    bay_id: int
    occupant_id: str


def find_order(orders: Sequence[RepairOrder], order_id: str) -> RepairOrder | None:
    return next((ro for ro in orders if ro.id == order_id), None)


def replace_order(orders: Sequence[RepairOrder], order_id: str, **changes: Any) -> list[RepairOrder]:
    return [ro.model_copy(update=changes) if ro.id == order_id else ro for ro in orders]


class OrderLifecycle:
    """Transitions for one acting role viewing one module."""

    def __init__(
        self,
        role: Role,
        work_type: WorkType = WorkType.MECHANIC,
        clock: Callable[[], int] = now_ms,
        body_bay_statuses: dict[int, ROStatus] | None = None,
    ):
        self.role = role
        self.work_type = work_type
        self.clock = clock
        self.body_bay_statuses = body_bay_statuses or DEFAULT_BODY_BAY_STATUSES

    def _denied(self, op: str, allowed: bool) -> bool:
        if not allowed:
            logger.warning("[capabilities] %s: not allowed for role %s", op, self.role.value)
        return not allowed

    @staticmethod
    def _check_stored(status: ROStatus) -> None:
        if status not in STORED_STATUSES:
            raise ValueError(f"{status.value} is not a workflow status")

    def _status_log(self, ro: RepairOrder, new_status: ROStatus) -> str:
        labels = status_labels(ro.work_type)
        return f"Workflow updated: {labels[ro.status]} → {labels[new_status]}"

    # ── Creation ───────────────────────────────────────────

    def create_order(
        self,
        orders: Sequence[RepairOrder],
        model: str = "",
        vin: str = "",
        customer_name: str = "",
        phone: str = "",
        info: str = "",
        urgent: bool = False,
        mileage: int | None = None,
        delivery_date: str | None = None,
        is_insurance_case: bool = False,
        work_type: WorkType | None = None,
        order_id: str | None = None,
    ) -> Mutation | None:
        if self._denied("create_order", can_create_order(self.role)):
            return None
        taken = {ro.id for ro in orders}
        if order_id is None:
            order_id = f"RO-{random.randint(1000, 9999)}"
            while order_id in taken:
                order_id = f"RO-{random.randint(1000, 9999)}"
        elif order_id in taken:
            logger.warning("create_order: id %s already exists", order_id)
            return None

        ro = RepairOrder(
            id=order_id,
            model=model,
            vin=vin,
            customer_name=customer_name,
            phone=phone,
            info=info,
            status=ROStatus.TODO,
            urgent=urgent,
            order=len(orders),
            last_read_info={self.role.value: info},
            unread_by=[r for r in ALL_ROLES if r != self.role],
            mileage=mileage,
            delivery_date=delivery_date,
            is_insurance_case=is_insurance_case,
            work_type=work_type or self.work_type,
        )
        logs = [PendingLog(ro.id, f"Vehicle registered. {'[URGENT]' if urgent else '[NORMAL]'}")]
        logs += [PendingLog(ro.id, f"Initial Info: {line}") for line in info.split("\n") if line.strip()]
        return Mutation(orders=[*orders, ro], logs=logs, writes=[NewOrder(ro)])

    # ── Workflow status ────────────────────────────────────

    def change_status(self, orders: Sequence[RepairOrder], order_id: str, new_status: ROStatus) -> Mutation | None:
        if self._denied("change_status", can_change_status(self.role)):
            return None
        self._check_stored(new_status)
        ro = find_order(orders, order_id)
        if ro is None:
            return None
        if is_archived(ro):
            logger.warning("change_status: %s is archived, restore it first", order_id)
            return None
        if new_status == ro.status:
            return None
        if ro.bay_id is not None:
            # Leaving the bay is the status change.
            return self.exit_bay(orders, order_id, new_status)
        return Mutation(
            orders=replace_order(orders, order_id, status=new_status),
            logs=[PendingLog(order_id, self._status_log(ro, new_status))],
            writes=[OrderPatch(order_id, {"status": new_status})],
        )

    def drop_to_slot(
        self,
        orders: Sequence[RepairOrder],
        order_id: str,
        status: ROStatus,
        grid_position: int | None = None,
    ) -> Mutation | None:
        """Drop a card into a column, optionally onto an explicit slot.

        Whoever already holds that exact slot in the column is demoted to
        automatic placement rather than the drop being refused.
        """
        if self._denied("drop_to_slot", can_change_status(self.role)):
            return None
        self._check_stored(status)
        ro = find_order(orders, order_id)
        if ro is None or is_archived(ro):
            return None
        if ro.bay_id is not None and status != ro.status:
            return self.exit_bay(orders, order_id, status)
        if status == ro.status and grid_position == ro.grid_position:
            return None

        evicted = None
        if grid_position is not None:
            evicted = next(
                (
                    other for other in orders
                    if other.id != order_id
                    and other.work_type == ro.work_type
                    and other.status == status
                    and other.grid_position == grid_position
                    and not is_archived(other)
                ),
                None,
            )

        next_orders = replace_order(orders, order_id, status=status, grid_position=grid_position)
        writes: list[Write] = [OrderPatch(order_id, {"status": status, "grid_position": grid_position})]
        if evicted is not None:
            next_orders = replace_order(next_orders, evicted.id, grid_position=None)
            writes.append(OrderPatch(evicted.id, {"grid_position": None}))

        logs = []
        if status != ro.status:
            logs.append(PendingLog(order_id, self._status_log(ro, status)))
        return Mutation(orders=next_orders, logs=logs, writes=writes)

    # ── Bays ───────────────────────────────────────────────

    def _status_for_bay(self, bay: Bay, current: ROStatus) -> ROStatus:
        if bay.work_type == WorkType.MECHANIC:
            return ROStatus.IN_PROGRESS
        return self.body_bay_statuses.get(bay.id, current)

    def move_to_bay(
        self,
        orders: Sequence[RepairOrder],
        bays: Sequence[Bay],
        order_id: str,
        bay_id: int,
    ) -> Mutation | BayConflict | None:
        """Put an order into a bay, or report the occupant that must be resolved first."""
        if self._denied("move_to_bay", can_assign_bay(self.role)):
            return None
        ro = find_order(orders, order_id)
        bay = next((b for b in bays if b.id == bay_id), None)
        if ro is None or bay is None or is_archived(ro):
            return None
        if bay.work_type != ro.work_type:
            logger.warning("move_to_bay: %s bay %s cannot take %s order %s",
                           bay.work_type.value, bay_id, ro.work_type.value, order_id)
            return None

        holder = occupant(bay_id, orders)
        if holder is not None and holder.id != order_id:
            return BayConflict(order_id=order_id, bay_id=bay_id, occupant_id=holder.id)

        now = self.clock()
        total = ro.total_time_in_bay + session_elapsed(ro, now)
        next_status = self._status_for_bay(bay, ro.status)
        return Mutation(
            orders=replace_order(
                orders, order_id,
                status=next_status,
                bay_id=bay_id,
                last_entered_bay_at=now,
                total_time_in_bay=total,
                grid_position=None,
            ),
            logs=[PendingLog(order_id, f"Vehicle moved into {bay.name}")],
            writes=[
                BayWrite(order_id, bay_id, total, now),
                OrderPatch(order_id, {"status": next_status, "grid_position": None}),
            ],
        )

    def exit_bay(self, orders: Sequence[RepairOrder], order_id: str, next_status: ROStatus) -> Mutation | None:
        if self._denied("exit_bay", can_assign_bay(self.role)):
            return None
        self._check_stored(next_status)
        ro = find_order(orders, order_id)
        if ro is None:
            return None
        if ro.bay_id is None:
            logger.warning("exit_bay: %s is not in a bay", order_id)
            return None

        elapsed = session_elapsed(ro, self.clock())
        total = ro.total_time_in_bay + elapsed
        labels = status_labels(ro.work_type)
        text = (
            f"Vehicle exited Bay ({labels[ro.status]} → {labels[next_status]}). "
            f"Session Time: {format_ms(elapsed)} | Total Bay Time: {format_ms(total)}"
        )
        return Mutation(
            orders=replace_order(
                orders, order_id,
                status=next_status,
                bay_id=None,
                last_entered_bay_at=None,
                total_time_in_bay=total,
            ),
            logs=[PendingLog(order_id, text)],
            writes=[
                BayWrite(order_id, None, total, None),
                OrderPatch(order_id, {"status": next_status}),
            ],
        )

    def resolve_bay_conflict(
        self,
        orders: Sequence[RepairOrder],
        bays: Sequence[Bay],
        conflict: BayConflict,
        resolution: ROStatus,
    ) -> Mutation | None:
        """Send the occupant out under ``resolution``, then move the new order in."""
        if resolution not in CONFLICT_RESOLUTIONS:
            raise ValueError("A bay occupant can only be resolved to DONE or PENDING")
        holder = occupant(conflict.bay_id, orders)
        if holder is None or holder.id != conflict.occupant_id:
            # occupant already left; enter directly or surface the new holder
            entry = self.move_to_bay(orders, bays, conflict.order_id, conflict.bay_id)
            return entry if isinstance(entry, Mutation) else None
        exit_mutation = self.exit_bay(orders, conflict.occupant_id, resolution)
        if exit_mutation is None:
            return None
        entry = self.move_to_bay(exit_mutation.orders, bays, conflict.order_id, conflict.bay_id)
        if not isinstance(entry, Mutation):
            return None
        return exit_mutation.then(entry)

    # ── Settlement ─────────────────────────────────────────

    def settle(
        self,
        orders: Sequence[RepairOrder],
        order_id: str,
        method: PaymentMethod,
        amount: float,
    ) -> Mutation | None:
        if self._denied("settle", can_change_payment(self.role)):
            return None
        if amount < 0:
            raise ValueError("Payment amount cannot be negative")
        ro = find_order(orders, order_id)
        if ro is None:
            return None
        if ro.status != ROStatus.DONE or is_archived(ro):
            logger.warning("settle: %s must be Done and unsettled", order_id)
            return None

        settled_at = ms_to_datetime(self.clock())
        if method == PaymentMethod.ABANDONED:
            text = "Settle: NO REPAIR (Abandoned)"
        else:
            text = f"Payment Processed: {method.value} (${amount:.2f})"
        fields = {"payment_method": method, "payment_amount": amount, "settled_at": settled_at}
        return Mutation(
            orders=replace_order(orders, order_id, **fields),
            logs=[PendingLog(order_id, text)],
            writes=[OrderPatch(order_id, fields)],
        )

    def void_no_repair(self, orders: Sequence[RepairOrder], order_id: str) -> Mutation | None:
        return self.settle(orders, order_id, PaymentMethod.ABANDONED, 0)

    def restore(self, orders: Sequence[RepairOrder], order_id: str) -> Mutation | None:
        if self._denied("restore", can_change_status(self.role) and can_change_payment(self.role)):
            return None
        ro = find_order(orders, order_id)
        if ro is None or not is_archived(ro):
            return None
        fields = {
            "status": ROStatus.TODO,
            "payment_method": None,
            "payment_amount": None,
            "settled_at": None,
        }
        return Mutation(
            orders=replace_order(orders, order_id, **fields),
            logs=[PendingLog(order_id, "Vehicle restored to workflow from History.")],
            writes=[OrderPatch(order_id, fields)],
        )

    # ── Field edits ────────────────────────────────────────

    def edit_fields(self, orders: Sequence[RepairOrder], order_id: str, **updates: Any) -> Mutation | None:
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not editable here: {', '.join(sorted(unknown))}")
        ro = find_order(orders, order_id)
        if ro is None:
            return None
        changes = {k: v for k, v in updates.items() if getattr(ro, k) != v}
        if not changes:
            return None
        new_id = changes.get("id", order_id)
        if new_id != order_id and find_order(orders, new_id) is not None:
            logger.warning("edit_fields: cannot rename %s to existing %s", order_id, new_id)
            return None

        logs = [
            PendingLog(new_id, render(ro, changes[name]))
            for name, render in _LOGGED_FIELDS
            if name in changes
        ]
        return Mutation(
            orders=replace_order(orders, order_id, **changes),
            logs=logs,
            writes=[OrderPatch(order_id, changes)],
        )
