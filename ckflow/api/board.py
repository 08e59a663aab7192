"""Board API: column layout, column ordering, sections, module and history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ckflow.api.orders import order_out
from ckflow.dependencies import get_board, require_capability
from ckflow.schemas.order import ROStatus
from ckflow.schemas.requests import BroadcastCreate, ColumnReorder, ModuleSwitch
from ckflow.services.capabilities import can_broadcast
from ckflow.services.reconciler import ShopBoard
from ckflow.services.ws_manager import ws_manager

router = APIRouter(prefix="/api/board", tags=["board"])


@router.get("")
async def get_layout(q: str = "", board: ShopBoard = Depends(get_board)):
    return {
        "role": board.role.value,
        "work_type": board.work_type.value,
        "columns": [
            {
                "status": col.status.value,
                "label": col.label,
                "collapsed": col.collapsed,
                "count": col.count,
                "slots": [ro.id if ro else None for ro in col.slots],
            }
            for col in board.layout(q)
        ],
        "orders": {ro.id: order_out(ro) for ro in board.visible_orders(q)},
    }


@router.post("/columns/reorder")
async def reorder_columns(body: ColumnReorder, board: ShopBoard = Depends(get_board)):
    changed = board.reorder_columns(body.dragged, body.target)
    return {"changed": changed, "columns": [s.value for s in board.visible_columns()]}


@router.post("/sections/{status}/toggle")
async def toggle_section(status: ROStatus, board: ShopBoard = Depends(get_board)):
    return {"status": status.value, "collapsed": board.toggle_section(status)}


@router.post("/module")
async def switch_module(body: ModuleSwitch, board: ShopBoard = Depends(get_board)):
    board.set_module(body.work_type)
    return {"work_type": board.work_type.value}


@router.get("/history")
async def get_history(q: str = "", board: ShopBoard = Depends(get_board)):
    return {"orders": [order_out(ro) for ro in board.history(q)]}


@router.post("/broadcast")
async def send_broadcast(body: BroadcastCreate, auth=Depends(require_capability(can_broadcast))):
    text = body.message.strip()
    if not text:
        raise HTTPException(400, "message is required")
    await ws_manager.announce(auth.shop_id, text)
    return {"message": text}


@router.delete("/broadcast", status_code=204)
async def clear_broadcast(auth=Depends(require_capability(can_broadcast))):
    await ws_manager.clear_announcement(auth.shop_id)
