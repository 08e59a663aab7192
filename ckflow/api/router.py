"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from ckflow.api.orders import router as orders_router
from ckflow.api.bays import router as bays_router
from ckflow.api.board import router as board_router
from ckflow.api.calendar import router as calendar_router
from ckflow.api.websocket import router as websocket_router

api_router = APIRouter()
api_router.include_router(orders_router)
api_router.include_router(bays_router)
api_router.include_router(board_router)
api_router.include_router(calendar_router)
api_router.include_router(websocket_router)
