"""Clock, duration formatting and slot ordering helpers."""

from __future__ import annotations

import math
import time
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from ckflow.schemas.order import RepairOrder


def now_ms() -> int:
    return int(time.time() * 1000)


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def datetime_to_ms(dt: datetime) -> int:
    # SQLite hands back naive datetimes; they were written as UTC.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def format_ms(ms: int) -> str:
    """Format a duration as HH:MM:SS (hours are not capped at 24)."""
    ms = max(0, int(ms))
    hours = ms // 3_600_000
    minutes = (ms % 3_600_000) // 60_000
    seconds = (ms % 60_000) // 1000
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def slot_sort_key(order: RepairOrder) -> tuple[float, int, str]:
    """Explicit position first (absent sorts last), then creation order, then id."""
    position = order.grid_position if order.grid_position is not None else math.inf
    return (position, order.order, order.id)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def shop_zone(name: str | None = None) -> tzinfo:
    """Zone that defines the shop's calendar day; the server's local zone when unnamed."""
    if name:
        return ZoneInfo(name)
    return datetime.now().astimezone().tzinfo
