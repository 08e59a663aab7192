"""Per-audience ordering of kanban columns."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from ckflow.schemas.order import STORED_STATUSES, Role, ROStatus, WorkType
from ckflow.services.status_codec import MODULE_COLUMNS


class ColumnKey(str, Enum):
    ADVISOR = "advisor"
    FOREMAN = "foreman"
    OWNER = "owner"
    BODY = "body"


DEFAULT_COLUMN_ORDERS: dict[ColumnKey, tuple[ROStatus, ...]] = {
    ColumnKey.ADVISOR: (ROStatus.DONE, ROStatus.TODO, ROStatus.PENDING, ROStatus.IN_PROGRESS, ROStatus.BODY_WORK),
    ColumnKey.FOREMAN: (ROStatus.DONE, ROStatus.TODO, ROStatus.IN_PROGRESS, ROStatus.PENDING, ROStatus.BODY_WORK),
    ColumnKey.OWNER: (ROStatus.DONE, ROStatus.TODO, ROStatus.PENDING, ROStatus.IN_PROGRESS, ROStatus.BODY_WORK),
    ColumnKey.BODY: (
        ROStatus.DONE, ROStatus.TODO, ROStatus.BODY_WORK, ROStatus.PAINTING,
        ROStatus.FINISHING_UP, ROStatus.MECHANIC_WORK,
    ),
}


def column_key(role: Role, work_type: WorkType) -> ColumnKey:
    """The body shop shares one ordering; the mechanic shop keeps one per role."""
    if work_type == WorkType.BODY:
        return ColumnKey.BODY
    return ColumnKey(role.value.lower())


def sanitize_column_order(loaded: Iterable[str], default: Iterable[ROStatus]) -> list[ROStatus]:
    """Keep stored statuses only, rewrite legacy INSURANCE, drop duplicates."""
    result: list[ROStatus] = []
    for raw in loaded:
        try:
            status = ROStatus(raw)
        except ValueError:
            continue
        if status == ROStatus.INSURANCE:
            status = ROStatus.BODY_WORK
        if status not in STORED_STATUSES or status in result:
            continue
        result.append(status)
    return result or list(default)


def reorder(columns: list[ROStatus], dragged: ROStatus, target: ROStatus) -> list[ROStatus]:
    """Move ``dragged`` to the index ``target`` occupied before the move."""
    if dragged == target or dragged not in columns or target not in columns:
        return columns
    result = list(columns)
    target_idx = result.index(target)
    result.remove(dragged)
    result.insert(target_idx, dragged)
    return result


class ColumnOrderManager:
    """Holds the four column orderings and applies drag reorders to them."""

    def __init__(self, saved: dict[str, list[str]] | None = None):
        saved = saved or {}
        self._orders: dict[ColumnKey, list[ROStatus]] = {
            key: sanitize_column_order(saved.get(key.value, default), default)
            for key, default in DEFAULT_COLUMN_ORDERS.items()
        }

    def columns_for(self, role: Role, work_type: WorkType) -> list[ROStatus]:
        return list(self._orders[column_key(role, work_type)])

    def visible_columns(self, role: Role, work_type: WorkType) -> list[ROStatus]:
        allowed = MODULE_COLUMNS[work_type]
        return [s for s in self._orders[column_key(role, work_type)] if s in allowed]

    def reorder(self, role: Role, work_type: WorkType, dragged: ROStatus, target: ROStatus) -> bool:
        key = column_key(role, work_type)
        updated = reorder(self._orders[key], dragged, target)
        if updated == self._orders[key]:
            return False
        self._orders[key] = updated
        return True

    def snapshot(self) -> dict[str, list[str]]:
        return {key.value: [s.value for s in statuses] for key, statuses in self._orders.items()}
