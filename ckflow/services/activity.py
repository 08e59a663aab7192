"""Activity timeline, AI chat and per-role read tracking."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from ulid import ULID

from ckflow.schemas.order import ALL_ROLES, LogEntry, LogType, RepairOrder, Role
from ckflow.services.lifecycle import Mutation, OrderPatch, PendingLog, find_order, replace_order


def unread_after_write(author: Role) -> list[Role]:
    """Every role except the author has something new to look at."""
    return [r for r in ALL_ROLES if r != author]


def append_log(
    orders: Sequence[RepairOrder],
    order_id: str,
    author: Role,
    text: str,
    log_type: LogType = LogType.USER,
    image_url: str | None = None,
    kind: str = "activity",
) -> Mutation | None:
    """Queue a note on the order; the unread flags are raised when the entry lands."""
    ro = find_order(orders, order_id)
    if ro is None or not text.strip() and image_url is None:
        return None
    return Mutation(
        orders=list(orders),
        logs=[PendingLog(order_id, text, type=log_type, kind=kind, image_url=image_url)],
    )


def land_logs(
    orders: Sequence[RepairOrder],
    logs: Sequence[PendingLog],
    author: Role,
    author_label: str,
    timestamp: datetime,
) -> list[RepairOrder]:
    """Append queued entries to each order's timeline and flag the other roles unread."""
    by_order: dict[str, list[PendingLog]] = {}
    for entry in logs:
        by_order.setdefault(entry.order_id, []).append(entry)
    if not by_order:
        return list(orders)

    unread = unread_after_write(author)
    result = []
    for ro in orders:
        pending = by_order.get(ro.id)
        if not pending:
            result.append(ro)
            continue
        activity = list(ro.logs)
        chat = list(ro.ai_chat)
        for entry in pending:
            landed = LogEntry(
                id=str(ULID()),
                timestamp=timestamp,
                user=entry.user or ("SYSTEM" if entry.type == LogType.SYSTEM else author_label),
                text=entry.text,
                type=entry.type,
                image_url=entry.image_url,
            )
            (chat if entry.kind == "diagnostic" else activity).append(landed)
        merged = sorted(set(ro.unread_by) | set(unread), key=ALL_ROLES.index)
        result.append(ro.model_copy(update={"logs": activity, "ai_chat": chat, "unread_by": merged}))
    return result


def mark_read(orders: Sequence[RepairOrder], order_id: str, role: Role) -> Mutation | None:
    ro = find_order(orders, order_id)
    if ro is None:
        return None
    if role not in ro.unread_by and ro.last_read_info.get(role.value) == ro.info:
        return None
    unread = [r for r in ro.unread_by if r != role]
    last_read = {**ro.last_read_info, role.value: ro.info}
    return Mutation(
        orders=replace_order(orders, order_id, unread_by=unread, last_read_info=last_read),
        writes=[OrderPatch(order_id, {"unread_by": unread, "last_read_info": last_read})],
    )


def unread_lines(order: RepairOrder, role: Role) -> list[str]:
    """Info bullet lines added since ``role`` last opened the order."""
    seen = {
        line.strip()
        for line in order.last_read_info.get(role.value, "").split("\n")
        if line.strip()
    }
    return [
        line.strip()
        for line in order.info.split("\n")
        if line.strip() and line.strip() not in seen
    ]
