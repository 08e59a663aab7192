"""Durable JSON snapshots of the whole board for runs without a remote backend."""

from __future__ import annotations

import errno
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ckflow.schemas.order import Bay, CalendarEvent, RepairOrder, Role, ROStatus, WorkType
from ckflow.services.bay_tracker import DEFAULT_BAYS

logger = logging.getLogger(__name__)

ORDERS_KEY = "ck_flow_ros_v14"
BAYS_KEY = "ck_flow_bays_v14"
CALENDAR_KEY = "ck_flow_calendar_v3"
COLUMN_ORDERS_KEY = "ck_flow_column_orders_v5"
COLLAPSED_KEY = "ck_flow_collapsed_v2"
ROLE_KEY = "ck_flow_role"
WORK_TYPE_KEY = "ck_flow_work_type"

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}

QUOTA_MESSAGE = (
    "CRITICAL: local storage quota exceeded. The board cannot save new data. "
    "Reset the local data or delete old orders and history to free up space."
)


@dataclass
class LocalSnapshot:
    orders: list[RepairOrder] = field(default_factory=list)
    bays: list[Bay] = field(default_factory=lambda: list(DEFAULT_BAYS))
    calendar_events: list[CalendarEvent] = field(default_factory=list)
    column_orders: dict[str, list[str]] = field(default_factory=dict)
    collapsed: list[ROStatus] = field(default_factory=list)
    role: Role | None = None
    work_type: WorkType = WorkType.MECHANIC


def migrate_order(raw: dict[str, Any]) -> dict[str, Any]:
    """Bring a stored order up to the current shape."""
    data = dict(raw)
    data["work_type"] = data.get("work_type") or WorkType.MECHANIC.value
    if data.get("status") == ROStatus.INSURANCE.value:
        data["status"] = ROStatus.BODY_WORK.value
        data["is_insurance_case"] = True
    return data


def merge_default_bays(saved: list[Bay]) -> list[Bay]:
    """Add missing default bays and re-sync names and work types of known ones."""
    defaults = {b.id: b for b in DEFAULT_BAYS}
    present = {b.id for b in saved}
    merged = [
        b.model_copy(update={"name": defaults[b.id].name, "work_type": defaults[b.id].work_type})
        if b.id in defaults else b
        for b in saved
    ]
    merged.extend(b for b in DEFAULT_BAYS if b.id not in present)
    return merged


class LocalSnapshotStore:
    """One JSON file per key under ``root``, rewritten after every change."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.quota_exceeded = False

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def _read(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable local snapshot %s: %s", path, e)
            return None

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, default=str), encoding="utf-8")
        os.replace(tmp, path)

    def load(self) -> LocalSnapshot:
        snap = LocalSnapshot()

        raw_orders = self._read(ORDERS_KEY)
        if isinstance(raw_orders, list):
            try:
                snap.orders = [RepairOrder.model_validate(migrate_order(r)) for r in raw_orders]
            except (ValidationError, TypeError) as e:
                logger.warning("Local orders snapshot is corrupt, starting empty: %s", e)

        raw_bays = self._read(BAYS_KEY)
        if isinstance(raw_bays, list):
            try:
                snap.bays = merge_default_bays([Bay.model_validate(b) for b in raw_bays])
            except (ValidationError, TypeError) as e:
                logger.warning("Local bays snapshot is corrupt, using defaults: %s", e)

        raw_events = self._read(CALENDAR_KEY)
        if isinstance(raw_events, list):
            try:
                snap.calendar_events = [CalendarEvent.model_validate(e) for e in raw_events]
            except (ValidationError, TypeError) as e:
                logger.warning("Local calendar snapshot is corrupt, starting empty: %s", e)

        raw_columns = self._read(COLUMN_ORDERS_KEY)
        if isinstance(raw_columns, dict):
            snap.column_orders = {
                k: [str(s) for s in v] for k, v in raw_columns.items() if isinstance(v, list)
            }

        raw_collapsed = self._read(COLLAPSED_KEY)
        if isinstance(raw_collapsed, list):
            snap.collapsed = [ROStatus(s) for s in raw_collapsed if s in ROStatus._value2member_map_]

        raw_role = self._read(ROLE_KEY)
        if raw_role in Role._value2member_map_:
            snap.role = Role(raw_role)
        raw_work_type = self._read(WORK_TYPE_KEY)
        if raw_work_type in WorkType._value2member_map_:
            snap.work_type = WorkType(raw_work_type)

        return snap

    def save(self, snap: LocalSnapshot) -> bool:
        """Rewrite every key. Returns False when the write did not land."""
        payload = {
            ORDERS_KEY: [ro.model_dump(mode="json") for ro in snap.orders],
            BAYS_KEY: [b.model_dump(mode="json", exclude={"current_ro_id"}) for b in snap.bays],
            CALENDAR_KEY: [e.model_dump(mode="json") for e in snap.calendar_events],
            COLUMN_ORDERS_KEY: snap.column_orders,
            COLLAPSED_KEY: [s.value for s in snap.collapsed],
            ROLE_KEY: snap.role.value if snap.role else None,
            WORK_TYPE_KEY: snap.work_type.value,
        }
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            for key, value in payload.items():
                self._write(key, value)
        except OSError as e:
            if e.errno in _QUOTA_ERRNOS:
                self.quota_exceeded = True
                logger.critical(QUOTA_MESSAGE)
            else:
                logger.error("Failed to save local snapshot to %s: %s", self.root, e)
            return False
        self.quota_exceeded = False
        return True

    def reset(self) -> None:
        """Delete every stored key; the next load starts from defaults."""
        for path in self.root.glob("*.json"):
            path.unlink(missing_ok=True)
        self.quota_exceeded = False
        logger.info("Local snapshot at %s reset", self.root)
