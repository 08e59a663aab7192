"""Board slot assignment: place a column's orders onto a fixed-size grid."""

from __future__ import annotations

import math
from typing import Sequence

from ckflow.schemas.order import RepairOrder
from ckflow.services.timefmt import slot_sort_key

GRID_ROW_SIZE = 8


def grid_capacity(count: int, row_size: int = GRID_ROW_SIZE) -> int:
    """Smallest multiple of ``row_size`` holding ``count`` cards, at least one row."""
    return max(row_size, math.ceil(count / row_size) * row_size)


def assign_slots(orders: Sequence[RepairOrder], capacity: int) -> list[RepairOrder | None]:
    """Assign every order to exactly one slot.

    Explicit ``grid_position`` claims inside the grid are honoured first, in
    sort order; a later claim on a taken slot loses and falls through. Every
    other order fills the lowest empty slots in sort order. Pure and
    deterministic for a given input set.
    """
    if capacity < len(orders):
        raise ValueError(f"Grid of {capacity} slots cannot hold {len(orders)} orders")

    ranked = sorted(orders, key=slot_sort_key)
    slots: list[RepairOrder | None] = [None] * capacity
    placed: set[int] = set()

    for idx, ro in enumerate(ranked):
        pos = ro.grid_position
        if pos is not None and 0 <= pos < capacity and slots[pos] is None:
            slots[pos] = ro
            placed.add(idx)

    cursor = 0
    for idx, ro in enumerate(ranked):
        if idx in placed:
            continue
        while slots[cursor] is not None:
            cursor += 1
        slots[cursor] = ro
        cursor += 1

    return slots
