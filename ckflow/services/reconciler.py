"""Shop board: optimistic in-memory state reconciled against the system of record.

Every operation computes its mutation from the current collection, applies it
locally at once and then, when a backend is attached, persists it in the
background followed by a full refetch-and-replace. A failed write is logged
and the optimistic state is kept until the next refetch corrects it. Without
a backend the whole board is rewritten to the local snapshot store instead.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, tzinfo
from typing import Any, Callable

from ckflow.agents import vehicle as vehicle_ai
from ckflow.agents.llm_provider import LLMProvider
from ckflow.schemas.order import (
    ROLE_LABELS, Bay, CalendarEvent, DecodedVehicle, LogType, PaymentMethod,
    RepairOrder, Role, ROStatus, WorkType,
)
from ckflow.services import activity
from ckflow.services.backend import BayKeyMap, ChangeEvent, OrderBackend
from ckflow.services.bay_tracker import DEFAULT_BAYS, BayOccupancy, occupancy, project_bays
from ckflow.services.board_view import ColumnLayout, filter_orders, history, layout_columns
from ckflow.services.calendar_sync import CALENDAR_VIN, materialize_calendar
from ckflow.services.column_order import ColumnOrderManager
from ckflow.services.lifecycle import (
    BayConflict, BayWrite, Mutation, NewOrder, OrderLifecycle, OrderPatch, find_order,
)
from ckflow.services.local_store import LocalSnapshot, LocalSnapshotStore
from ckflow.services.slotting import GRID_ROW_SIZE
from ckflow.services.status_codec import status_labels
from ckflow.services.timefmt import ms_to_datetime, now_ms, shop_zone

logger = logging.getLogger(__name__)

REFETCH_TABLES = frozenset({"repair_orders", "event_log", "calendar_events", "bays"})


class ShopBoard:
    """One client's view of the shop: a role looking at one module."""

    def __init__(
        self,
        role: Role,
        backend: OrderBackend | None = None,
        store: LocalSnapshotStore | None = None,
        work_type: WorkType = WorkType.MECHANIC,
        debounce_ms: int = 600,
        grid_row_size: int = GRID_ROW_SIZE,
        body_bay_statuses: dict[int, ROStatus] | None = None,
        clock: Callable[[], int] = now_ms,
        today: Callable[[], date] | None = None,
        tz: tzinfo | None = None,
        display_name: str | None = None,
    ):
        self.role = role
        self.backend = backend
        self.store = store
        self.work_type = work_type
        self.debounce_ms = debounce_ms
        self.grid_row_size = grid_row_size
        self.body_bay_statuses = body_bay_statuses
        self.clock = clock
        self.tz = tz or shop_zone()
        self.today = today or (lambda: datetime.now(self.tz).date())
        self.display_name = display_name or ROLE_LABELS[role]

        self.orders: list[RepairOrder] = []
        self.bays: list[Bay] = list(DEFAULT_BAYS)
        self.calendar_events: list[CalendarEvent] = []
        self.bay_keys = BayKeyMap()
        self.columns = ColumnOrderManager()
        self.collapsed: set[ROStatus] = set()
        self.pending_conflicts: dict[int, BayConflict] = {}

        self._tasks: set[asyncio.Task] = set()
        self._pushes_in_flight = 0
        self._push_lock = asyncio.Lock()
        self._refetch_handle: asyncio.TimerHandle | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._listeners: list[Callable[[str], None]] = []

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self) -> None:
        if self.backend is not None:
            self._unsubscribe = self.backend.subscribe(self._on_remote_change)
            await self.refetch()
        elif self.store is not None:
            snap = self.store.load()
            self.orders = snap.orders
            self.bays = snap.bays
            self.calendar_events = snap.calendar_events
            self.columns = ColumnOrderManager(snap.column_orders)
            self.collapsed = set(snap.collapsed)
            self.work_type = snap.work_type
            self.sync_calendar()
        logger.info("Board started for %s (%s, %s)", self.display_name, self.role.value, self.work_type.value)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._refetch_handle is not None:
            self._refetch_handle.cancel()
            self._refetch_handle = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def drain(self) -> None:
        """Wait until every background write and refetch has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def add_listener(self, listener: Callable[[str], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, reason: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception:
                logger.exception("Board listener failed on %s", reason)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ── Write path ─────────────────────────────────────────

    def _lifecycle(self) -> OrderLifecycle:
        return OrderLifecycle(self.role, self.work_type, self.clock, self.body_bay_statuses)

    def _apply(self, mutation: Mutation | None) -> bool:
        if mutation is None:
            return False
        self.orders = activity.land_logs(
            mutation.orders,
            mutation.logs,
            self.role,
            self.display_name,
            ms_to_datetime(self.clock()),
        )
        if self.backend is not None:
            self._pushes_in_flight += 1
            self._spawn(self._push(mutation))
        else:
            self._persist_local()
        self._notify("orders")
        return True

    async def _push(self, mutation: Mutation) -> None:
        try:
            async with self._push_lock:
                for write in mutation.writes:
                    await self._write(write)
                for entry in mutation.logs:
                    await self.backend.append_log_entry(entry.order_id, entry, self.role, self.display_name)
        except Exception:
            logger.exception("Remote write failed; keeping optimistic state until next refetch")
            self._pushes_in_flight -= 1
            return
        self._pushes_in_flight -= 1
        if self._pushes_in_flight:
            # A later push will refetch once it lands.
            return
        try:
            await self.refetch()
        except Exception:
            logger.exception("Refetch after write failed")

    async def _write(self, write) -> None:
        if isinstance(write, NewOrder):
            await self.backend.create_order(write.order, self.bay_keys)
        elif isinstance(write, BayWrite):
            await self.backend.assign_bay(
                write.order_id,
                self.bay_keys.key_for(write.bay_id),
                write.total_time_in_bay_ms,
                write.last_entered_bay_at,
            )
        elif isinstance(write, OrderPatch):
            await self.backend.update_order(write.order_id, write.fields)

    def _persist_local(self) -> None:
        if self.store is None:
            return
        self.store.save(LocalSnapshot(
            orders=self.orders,
            bays=self.bays,
            calendar_events=self.calendar_events,
            column_orders=self.columns.snapshot(),
            collapsed=sorted(self.collapsed, key=lambda s: s.value),
            role=self.role,
            work_type=self.work_type,
        ))

    # ── Read path ──────────────────────────────────────────

    async def refetch(self) -> None:
        """Replace the whole in-memory collection with the backend's view."""
        if self.backend is None:
            return
        records = await self.backend.list_bays()
        self.bay_keys.rebuild(records)
        self.bays = sorted(
            (
                Bay(id=self.bay_keys.number_for(r.key), name=r.name, work_type=r.work_type)
                for r in records
            ),
            key=lambda b: b.id,
        )
        self.orders = await self.backend.list_orders(self.bay_keys)
        self.calendar_events = await self.backend.list_calendar_events()
        self._notify("refetch")
        if self._pushes_in_flight == 0:
            self.sync_calendar()

    def _on_remote_change(self, change: ChangeEvent) -> None:
        if change.table not in REFETCH_TABLES:
            return
        loop = asyncio.get_running_loop()
        if self._refetch_handle is not None:
            self._refetch_handle.cancel()
        self._refetch_handle = loop.call_later(self.debounce_ms / 1000, self._debounced_refetch)

    def _debounced_refetch(self) -> None:
        self._refetch_handle = None
        self._spawn(self._safe_refetch())

    async def _safe_refetch(self) -> None:
        try:
            await self.refetch()
        except Exception:
            logger.exception("Debounced refetch failed")

    # ── Orders ─────────────────────────────────────────────

    def create_order(self, **fields: Any) -> RepairOrder | None:
        mutation = self._lifecycle().create_order(self.orders, **fields)
        if not self._apply(mutation):
            return None
        return self.orders[-1]

    def change_status(self, order_id: str, status: ROStatus) -> bool:
        return self._apply(self._lifecycle().change_status(self.orders, order_id, status))

    def drop_to_slot(self, order_id: str, status: ROStatus, grid_position: int | None = None) -> bool:
        return self._apply(self._lifecycle().drop_to_slot(self.orders, order_id, status, grid_position))

    def edit_fields(self, order_id: str, **updates: Any) -> bool:
        return self._apply(self._lifecycle().edit_fields(self.orders, order_id, **updates))

    def add_note(self, order_id: str, text: str, log_type: LogType = LogType.USER, image_url: str | None = None) -> bool:
        return self._apply(activity.append_log(self.orders, order_id, self.role, text, log_type, image_url))

    def add_ai_message(
        self, order_id: str, text: str, log_type: LogType = LogType.USER, image_url: str | None = None,
    ) -> bool:
        return self._apply(
            activity.append_log(self.orders, order_id, self.role, text, log_type, image_url, kind="diagnostic")
        )

    def mark_read(self, order_id: str) -> bool:
        return self._apply(activity.mark_read(self.orders, order_id, self.role))

    def get_order(self, order_id: str) -> RepairOrder | None:
        return find_order(self.orders, order_id)

    # ── Bays ───────────────────────────────────────────────

    def move_to_bay(self, order_id: str, bay_id: int) -> bool | BayConflict:
        result = self._lifecycle().move_to_bay(self.orders, self.bays, order_id, bay_id)
        if isinstance(result, BayConflict):
            self.pending_conflicts[bay_id] = result
            logger.info("Bay %s holds %s; %s waits for a resolution", bay_id, result.occupant_id, order_id)
            return result
        if result is not None:
            self.pending_conflicts.pop(bay_id, None)
        return self._apply(result)

    def resolve_bay_conflict(self, bay_id: int, resolution: ROStatus) -> bool:
        conflict = self.pending_conflicts.get(bay_id)
        if conflict is None:
            return False
        mutation = self._lifecycle().resolve_bay_conflict(self.orders, self.bays, conflict, resolution)
        if mutation is None:
            return False
        del self.pending_conflicts[bay_id]
        return self._apply(mutation)

    def cancel_bay_conflict(self, bay_id: int) -> bool:
        return self.pending_conflicts.pop(bay_id, None) is not None

    def exit_bay(self, order_id: str, next_status: ROStatus) -> bool:
        return self._apply(self._lifecycle().exit_bay(self.orders, order_id, next_status))

    def bay_occupancy(self) -> list[BayOccupancy]:
        return occupancy(self.bays, self.orders, self.clock())

    def projected_bays(self) -> list[Bay]:
        return project_bays(self.bays, self.orders)

    # ── Settlement ─────────────────────────────────────────

    def settle(self, order_id: str, method: PaymentMethod, amount: float) -> bool:
        return self._apply(self._lifecycle().settle(self.orders, order_id, method, amount))

    def void_no_repair(self, order_id: str) -> bool:
        return self._apply(self._lifecycle().void_no_repair(self.orders, order_id))

    def restore(self, order_id: str) -> bool:
        return self._apply(self._lifecycle().restore(self.orders, order_id))

    # ── Board layout ───────────────────────────────────────

    def visible_orders(self, query: str = "") -> list[RepairOrder]:
        return filter_orders(self.orders, self.work_type, query)

    def visible_columns(self) -> list[ROStatus]:
        return self.columns.visible_columns(self.role, self.work_type)

    def layout(self, query: str = "") -> list[ColumnLayout]:
        return layout_columns(
            self.visible_orders(query),
            self.visible_columns(),
            status_labels(self.work_type),
            self.collapsed,
            self.grid_row_size,
        )

    def history(self, query: str = "") -> list[RepairOrder]:
        return history(self.orders, self.work_type, query)

    def reorder_columns(self, dragged: ROStatus, target: ROStatus) -> bool:
        changed = self.columns.reorder(self.role, self.work_type, dragged, target)
        if changed:
            self._persist_local()
            self._notify("columns")
        return changed

    def toggle_section(self, status: ROStatus) -> bool:
        """Collapse or expand a column; returns the new collapsed state."""
        collapsed = status not in self.collapsed
        if collapsed:
            self.collapsed.add(status)
        else:
            self.collapsed.discard(status)
        self._persist_local()
        return collapsed

    def set_module(self, work_type: WorkType) -> None:
        if work_type == self.work_type:
            return
        self.work_type = work_type
        self._persist_local()
        self.sync_calendar()
        self._notify("module")

    # ── Calendar ───────────────────────────────────────────

    def sync_calendar(self) -> bool:
        return self._apply(materialize_calendar(
            self.orders, self.calendar_events, self.today(), self.work_type, self.tz,
        ))

    async def save_calendar_event(self, event: CalendarEvent) -> CalendarEvent:
        if self.backend is not None:
            event = await self.backend.save_calendar_event(event)
        self.calendar_events = [e for e in self.calendar_events if e.id != event.id] + [event]
        if not self.sync_calendar():
            self._persist_local()
        return event

    async def delete_calendar_event(self, event_id: str) -> bool:
        if not any(e.id == event_id for e in self.calendar_events):
            return False
        if self.backend is not None:
            await self.backend.delete_calendar_event(event_id)
        self.calendar_events = [e for e in self.calendar_events if e.id != event_id]
        self._persist_local()
        return True

    # ── AI ─────────────────────────────────────────────────

    async def decode_vin(self, order_id: str, provider: LLMProvider) -> DecodedVehicle | None:
        ro = self.get_order(order_id)
        if ro is None or not ro.vin or ro.vin == CALENDAR_VIN:
            return None
        decoded = await vehicle_ai.decode_vin(ro.vin, provider)
        if decoded is None:
            return None
        decoded = decoded.model_copy(update={"decoded_at": ms_to_datetime(self.clock())})
        updates: dict[str, Any] = {"decoded_data": decoded}
        if decoded.year and decoded.make and decoded.model:
            updates["model"] = f"{decoded.year} {decoded.make} {decoded.model}"
        self.edit_fields(order_id, **updates)
        return decoded

    async def ask_diagnostic(self, order_id: str, message: str, provider: LLMProvider) -> str | None:
        ro = self.get_order(order_id)
        if ro is None or not message.strip():
            return None
        self.add_ai_message(order_id, message.strip())
        context = vehicle_ai.DiagnosticContext.for_order(ro, message.strip())
        advice = await vehicle_ai.get_diagnostic_advice(context, provider)
        self.add_ai_message(order_id, advice, LogType.AI)
        return advice
