"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ckflow.api.bays import occupancy_out
from ckflow.api.router import api_router
from ckflow.config import get_settings
from ckflow.db.engine import async_session_factory, create_tables, engine
from ckflow.db.sql_backend import SqlOrderBackend
from ckflow.services.registry import BoardRegistry
from ckflow.services.ws_manager import ws_manager

logger = logging.getLogger(__name__)


async def _bay_clock(registry: BoardRegistry, interval: float):
    """Background task: push live bay timers to every connected shop."""
    while True:
        try:
            for shop_id, board in registry.boards_by_shop().items():
                if not ws_manager.connection_count(shop_id):
                    continue
                await ws_manager.broadcast(shop_id, {
                    "type": "bay_tick",
                    "data": {"bays": [occupancy_out(item) for item in board.bay_occupancy()]},
                })
        except Exception:
            logger.exception("Bay clock tick failed")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Profiles always live in the database; orders only in sql mode
    await create_tables(engine)
    backend = SqlOrderBackend(async_session_factory) if settings.backend == "sql" else None
    registry = BoardRegistry(settings, backend, ws_manager)
    app.state.registry = registry
    logger.info("CK-Flow started with %s backend", settings.backend)

    clock_task = asyncio.create_task(_bay_clock(registry, settings.sync.bay_tick_seconds))
    yield
    clock_task.cancel()
    await registry.close()
    await engine.dispose()


app = FastAPI(
    title="CK-Flow",
    description="Repair-shop workflow board: orders, bays, settlement and zero-touch scheduling",
    version="0.1.0",
    lifespan=lifespan,
)

# API routes
app.include_router(api_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
