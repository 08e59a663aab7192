"""System-of-record interface consumed by the board reconciler."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ckflow.schemas.order import CalendarEvent, LogEntry, RepairOrder, Role, WorkType
from ckflow.services.lifecycle import PendingLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str  # repair_orders | event_log | calendar_events | bays
    event: str  # INSERT | UPDATE | DELETE
    row_id: str | None = None


Listener = Callable[[ChangeEvent], None]


class ChangeFeed:
    """Fan-out of committed row changes to every attached listener."""

    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, change: ChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Change listener failed for %s", change)

    def listener_count(self) -> int:
        return len(self._listeners)


@dataclass(frozen=True)
class BayRecord:
    key: str  # opaque backend row key
    name: str
    work_type: WorkType
    sort_order: int = 0


class BayKeyMap:
    """Numeric bay ids (1-based by sort order) to backend row keys and back.

    Rebuilt from every bay listing; whoever translates bay ids is handed
    the map explicitly.
    """

    def __init__(self, records: Sequence[BayRecord] = ()):
        self._by_number: dict[int, str] = {}
        self._by_key: dict[str, int] = {}
        self.rebuild(records)

    def rebuild(self, records: Sequence[BayRecord]) -> None:
        ordered = sorted(records, key=lambda r: (r.sort_order, r.key))
        self._by_number = {n: r.key for n, r in enumerate(ordered, start=1)}
        self._by_key = {key: n for n, key in self._by_number.items()}

    def key_for(self, number: int | None) -> str | None:
        if number is None:
            return None
        return self._by_number.get(number)

    def number_for(self, key: str | None) -> int | None:
        if key is None:
            return None
        return self._by_key.get(key)

    def __len__(self) -> int:
        return len(self._by_number)


class OrderBackend(ABC):
    """Remote system of record for orders, bays, activity and calendar events."""

    @abstractmethod
    async def list_bays(self) -> list[BayRecord]: ...

    @abstractmethod
    async def list_orders(self, bay_keys: BayKeyMap) -> list[RepairOrder]: ...

    @abstractmethod
    async def create_order(self, order: RepairOrder, bay_keys: BayKeyMap) -> RepairOrder: ...

    @abstractmethod
    async def update_order(self, order_id: str, fields: dict[str, Any]) -> None: ...

    @abstractmethod
    async def assign_bay(
        self,
        order_id: str,
        bay_key: str | None,
        total_time_in_bay_ms: int,
        last_entered_bay_at: int | None,
    ) -> None: ...

    @abstractmethod
    async def append_log_entry(
        self,
        order_id: str,
        entry: PendingLog,
        author_role: Role,
        author_label: str,
    ) -> LogEntry: ...

    @abstractmethod
    async def list_calendar_events(self) -> list[CalendarEvent]: ...

    @abstractmethod
    async def save_calendar_event(self, event: CalendarEvent) -> CalendarEvent: ...

    @abstractmethod
    async def delete_calendar_event(self, event_id: str) -> None: ...

    @abstractmethod
    def subscribe(self, listener: Listener) -> Callable[[], None]: ...
