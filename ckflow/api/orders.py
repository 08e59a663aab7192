"""Repair order API: create, edit, workflow, settlement, notes and AI."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ckflow.agents.llm_provider import LLMProvider
from ckflow.dependencies import get_board, get_llm, require_capability
from ckflow.schemas.order import RepairOrder
from ckflow.schemas.requests import (
    DiagnosticRequest, NoteCreate, OrderCreate, OrderUpdate, Settlement, SlotDrop, StatusChange,
)
from ckflow.services.activity import unread_lines
from ckflow.services.capabilities import can_change_payment, can_change_status, can_create_order
from ckflow.services.reconciler import ShopBoard
from ckflow.services.status_codec import display_status, is_archived

router = APIRouter(prefix="/api/orders", tags=["orders"])


def order_out(ro: RepairOrder) -> dict:
    return {
        **ro.model_dump(mode="json"),
        "display_status": display_status(ro).value,
        "archived": is_archived(ro),
    }


def _require_order(board: ShopBoard, order_id: str) -> RepairOrder:
    ro = board.get_order(order_id)
    if not ro:
        raise HTTPException(404, "Repair order not found")
    return ro


def _applied(board: ShopBoard, order_id: str, ok: bool, detail: str) -> dict:
    if not ok:
        raise HTTPException(409, detail)
    return order_out(_require_order(board, order_id))


@router.get("")
async def list_orders(q: str = "", board: ShopBoard = Depends(get_board)):
    return {
        "work_type": board.work_type.value,
        "orders": [order_out(ro) for ro in board.visible_orders(q)],
    }


@router.post("", status_code=201)
async def create_order(
    body: OrderCreate,
    auth=Depends(require_capability(can_create_order)),
    board: ShopBoard = Depends(get_board),
):
    ro = board.create_order(**body.model_dump())
    if not ro:
        raise HTTPException(409, "Could not create repair order")
    return order_out(ro)


@router.get("/{order_id}")
async def get_order(order_id: str, board: ShopBoard = Depends(get_board)):
    ro = _require_order(board, order_id)
    return {**order_out(ro), "unread_lines": unread_lines(ro, board.role)}


@router.patch("/{order_id}")
async def update_order(order_id: str, body: OrderUpdate, board: ShopBoard = Depends(get_board)):
    ro = _require_order(board, order_id)
    updates = body.model_dump(exclude_none=True)
    if "attachments" in updates:
        updates["attachments"] = body.attachments
    try:
        changed = board.edit_fields(order_id, **updates)
    except ValueError as e:
        raise HTTPException(400, str(e))
    new_id = updates.get("id", order_id)
    if not changed and new_id != ro.id:
        raise HTTPException(409, f"Repair order {new_id} already exists")
    return order_out(_require_order(board, new_id if changed else order_id))


@router.post("/{order_id}/status")
async def change_status(
    order_id: str,
    body: StatusChange,
    auth=Depends(require_capability(can_change_status)),
    board: ShopBoard = Depends(get_board),
):
    _require_order(board, order_id)
    try:
        ok = board.change_status(order_id, body.status)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _applied(board, order_id, ok, "Status unchanged")


@router.post("/{order_id}/slot")
async def drop_to_slot(
    order_id: str,
    body: SlotDrop,
    auth=Depends(require_capability(can_change_status)),
    board: ShopBoard = Depends(get_board),
):
    _require_order(board, order_id)
    try:
        ok = board.drop_to_slot(order_id, body.status, body.grid_position)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _applied(board, order_id, ok, "Drop had no effect")


@router.post("/{order_id}/settle")
async def settle(
    order_id: str,
    body: Settlement,
    auth=Depends(require_capability(can_change_payment)),
    board: ShopBoard = Depends(get_board),
):
    _require_order(board, order_id)
    ok = board.settle(order_id, body.method, body.amount)
    return _applied(board, order_id, ok, "Only Done, unsettled orders can be settled")


@router.post("/{order_id}/void")
async def void_no_repair(
    order_id: str,
    auth=Depends(require_capability(can_change_payment)),
    board: ShopBoard = Depends(get_board),
):
    _require_order(board, order_id)
    ok = board.void_no_repair(order_id)
    return _applied(board, order_id, ok, "Only Done, unsettled orders can be voided")


@router.post("/{order_id}/restore")
async def restore(
    order_id: str,
    auth=Depends(require_capability(can_change_payment)),
    board: ShopBoard = Depends(get_board),
):
    _require_order(board, order_id)
    ok = board.restore(order_id)
    return _applied(board, order_id, ok, "Only archived orders can be restored")


@router.post("/{order_id}/read")
async def mark_read(order_id: str, board: ShopBoard = Depends(get_board)):
    _require_order(board, order_id)
    board.mark_read(order_id)
    return order_out(_require_order(board, order_id))


@router.post("/{order_id}/logs", status_code=201)
async def add_note(order_id: str, body: NoteCreate, board: ShopBoard = Depends(get_board)):
    _require_order(board, order_id)
    if not board.add_note(order_id, body.text, body.type, body.image_url):
        raise HTTPException(400, "Note is empty")
    return order_out(_require_order(board, order_id))


@router.post("/{order_id}/ai-chat")
async def ask_diagnostic(
    order_id: str,
    body: DiagnosticRequest,
    board: ShopBoard = Depends(get_board),
    llm: LLMProvider = Depends(get_llm),
):
    _require_order(board, order_id)
    advice = await board.ask_diagnostic(order_id, body.message, llm)
    if advice is None:
        raise HTTPException(400, "Message is empty")
    return {"advice": advice, "order": order_out(_require_order(board, order_id))}


@router.post("/{order_id}/decode-vin")
async def decode_vin(
    order_id: str,
    board: ShopBoard = Depends(get_board),
    llm: LLMProvider = Depends(get_llm),
):
    ro = _require_order(board, order_id)
    if not ro.vin or ro.vin == "CALENDAR_SYNC":
        raise HTTPException(400, "Please provide a valid VIN first.")
    decoded = await board.decode_vin(order_id, llm)
    if decoded is None:
        raise HTTPException(422, "Could not decode this VIN. Please verify it is correct.")
    return {"decoded": decoded.model_dump(mode="json"), "order": order_out(_require_order(board, order_id))}
