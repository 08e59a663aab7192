"""Calendar API: schedule entries feeding zero-touch order creation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ckflow.dependencies import get_board
from ckflow.models.base import new_row_key
from ckflow.schemas.order import CalendarEvent
from ckflow.schemas.requests import CalendarEventCreate, CalendarEventUpdate
from ckflow.services.reconciler import ShopBoard

router = APIRouter(prefix="/api/calendar", tags=["calendar"])


@router.get("")
async def list_events(board: ShopBoard = Depends(get_board)):
    return {"events": [e.model_dump(mode="json") for e in board.calendar_events]}


@router.post("", status_code=201)
async def create_event(body: CalendarEventCreate, board: ShopBoard = Depends(get_board)):
    if body.end < body.start:
        raise HTTPException(400, "end must not be before start")
    event = CalendarEvent(id=new_row_key(), **body.model_dump())
    saved = await board.save_calendar_event(event)
    return saved.model_dump(mode="json")


@router.patch("/{event_id}")
async def update_event(event_id: str, body: CalendarEventUpdate, board: ShopBoard = Depends(get_board)):
    current = next((e for e in board.calendar_events if e.id == event_id), None)
    if not current:
        raise HTTPException(404, "Calendar event not found")
    updated = current.model_copy(update=body.model_dump(exclude_none=True))
    if updated.end < updated.start:
        raise HTTPException(400, "end must not be before start")
    saved = await board.save_calendar_event(updated)
    return saved.model_dump(mode="json")


@router.delete("/{event_id}", status_code=204)
async def delete_event(event_id: str, board: ShopBoard = Depends(get_board)):
    if not await board.delete_calendar_event(event_id):
        raise HTTPException(404, "Calendar event not found")


@router.post("/sync")
async def sync_calendar(board: ShopBoard = Depends(get_board)):
    return {"changed": board.sync_calendar()}
