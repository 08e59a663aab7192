"""Bay API: occupancy, assignment, conflict resolution and exit."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ckflow.api.orders import order_out
from ckflow.dependencies import get_board, require_capability
from ckflow.schemas.requests import BayAssign, BayExit, ConflictResolution
from ckflow.services.bay_tracker import BayOccupancy
from ckflow.services.capabilities import can_assign_bay, can_see_active_bays
from ckflow.services.lifecycle import BayConflict
from ckflow.services.reconciler import ShopBoard
from ckflow.services.timefmt import format_ms

router = APIRouter(prefix="/api/bays", tags=["bays"])


def occupancy_out(item: BayOccupancy) -> dict:
    return {
        "id": item.bay.id,
        "name": item.bay.name,
        "work_type": item.bay.work_type.value,
        "current_ro_id": item.bay.current_ro_id,
        "session_elapsed_ms": item.session_elapsed_ms,
        "lifetime_total_ms": item.lifetime_total_ms,
        "session_elapsed": format_ms(item.session_elapsed_ms),
        "lifetime_total": format_ms(item.lifetime_total_ms),
    }


def conflict_out(conflict: BayConflict) -> dict:
    return {
        "order_id": conflict.order_id,
        "bay_id": conflict.bay_id,
        "occupant_id": conflict.occupant_id,
        "resolutions": ["DONE", "PENDING"],
    }


@router.get("")
async def list_bays(
    auth=Depends(require_capability(can_see_active_bays)),
    board: ShopBoard = Depends(get_board),
):
    return {
        "bays": [
            occupancy_out(item) for item in board.bay_occupancy()
            if item.bay.work_type == board.work_type
        ],
        "pending_conflicts": [conflict_out(c) for c in board.pending_conflicts.values()],
    }


@router.post("/{bay_id}/assign")
async def assign_bay(
    bay_id: int,
    body: BayAssign,
    auth=Depends(require_capability(can_assign_bay)),
    board: ShopBoard = Depends(get_board),
):
    if not board.get_order(body.order_id):
        raise HTTPException(404, "Repair order not found")
    if not any(b.id == bay_id for b in board.bays):
        raise HTTPException(404, "Bay not found")
    result = board.move_to_bay(body.order_id, bay_id)
    if isinstance(result, BayConflict):
        return JSONResponse(status_code=409, content={"detail": "Bay is occupied", "conflict": conflict_out(result)})
    if not result:
        raise HTTPException(400, "Order cannot enter this bay")
    return order_out(board.get_order(body.order_id))


@router.post("/{bay_id}/resolve")
async def resolve_conflict(
    bay_id: int,
    body: ConflictResolution,
    auth=Depends(require_capability(can_assign_bay)),
    board: ShopBoard = Depends(get_board),
):
    conflict = board.pending_conflicts.get(bay_id)
    if conflict is None:
        raise HTTPException(404, "No pending conflict for this bay")
    try:
        ok = board.resolve_bay_conflict(bay_id, body.resolution)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not ok:
        raise HTTPException(409, "Conflict could not be resolved")
    return {
        "order": order_out(board.get_order(conflict.order_id)),
        "previous_occupant": order_out(board.get_order(conflict.occupant_id)),
    }


@router.delete("/{bay_id}/conflict", status_code=204)
async def cancel_conflict(
    bay_id: int,
    auth=Depends(require_capability(can_assign_bay)),
    board: ShopBoard = Depends(get_board),
):
    if not board.cancel_bay_conflict(bay_id):
        raise HTTPException(404, "No pending conflict for this bay")


@router.post("/exit")
async def exit_bay(
    body: BayExit,
    auth=Depends(require_capability(can_assign_bay)),
    board: ShopBoard = Depends(get_board),
):
    ro = board.get_order(body.order_id)
    if not ro:
        raise HTTPException(404, "Repair order not found")
    if ro.bay_id is None:
        raise HTTPException(409, "Order is not in a bay")
    try:
        board.exit_bay(body.order_id, body.next_status)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return order_out(board.get_order(body.order_id))
