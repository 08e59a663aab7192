"""One live ShopBoard per signed-in profile, all sharing one system of record."""

from __future__ import annotations

import asyncio
import logging
from datetime import tzinfo
from pathlib import Path

from ckflow.config import Settings
from ckflow.db.sql_backend import SqlOrderBackend
from ckflow.schemas.order import ROStatus
from ckflow.services.auth import AuthContext
from ckflow.services.backend import ChangeEvent
from ckflow.services.local_store import LocalSnapshotStore
from ckflow.services.reconciler import ShopBoard
from ckflow.services.timefmt import shop_zone
from ckflow.services.ws_manager import ConnectionManager

logger = logging.getLogger(__name__)


class BoardRegistry:
    def __init__(
        self,
        settings: Settings,
        backend: SqlOrderBackend | None,
        ws: ConnectionManager,
    ):
        self.settings = settings
        self.backend = backend
        self.ws = ws
        self._boards: dict[str, ShopBoard] = {}
        self._shops: dict[str, str] = {}  # user_id -> shop_id
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = backend.subscribe(self._relay_change) if backend is not None else None

    def _body_bay_statuses(self) -> dict[int, ROStatus]:
        return {int(k): ROStatus(v) for k, v in self.settings.board.body_bay_statuses.items()}

    def _shop_zone(self) -> tzinfo:
        return shop_zone(self.settings.board.timezone)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _relay_change(self, change: ChangeEvent) -> None:
        message = {"type": "board_changed", "data": {"table": change.table, "event": change.event, "row_id": change.row_id}}
        for shop_id in set(self._shops.values()):
            self._spawn(self.ws.broadcast(shop_id, message))

    async def get_board(self, auth: AuthContext) -> ShopBoard:
        """Return the caller's board, creating and starting it on first use."""
        async with self._lock:
            board = self._boards.get(auth.user_id)
            if board is not None and board.role == auth.role:
                return board
            if board is not None:
                await board.close()

            if self.backend is not None:
                board = ShopBoard(
                    auth.role,
                    backend=self.backend.for_user(auth.user_id),
                    debounce_ms=self.settings.sync.debounce_ms,
                    grid_row_size=self.settings.board.grid_row_size,
                    body_bay_statuses=self._body_bay_statuses(),
                    tz=self._shop_zone(),
                    display_name=auth.display_name,
                )
            else:
                store = LocalSnapshotStore(Path(self.settings.local_store.snapshot_dir) / auth.user_id)
                board = ShopBoard(
                    auth.role,
                    store=store,
                    grid_row_size=self.settings.board.grid_row_size,
                    body_bay_statuses=self._body_bay_statuses(),
                    tz=self._shop_zone(),
                    display_name=auth.display_name,
                )
                shop_id = auth.shop_id
                board.add_listener(lambda reason: self._spawn(
                    self.ws.broadcast(shop_id, {"type": "board_changed", "data": {"reason": reason}})
                ))
            await board.start()
            self._boards[auth.user_id] = board
            self._shops[auth.user_id] = auth.shop_id
            logger.info("Opened board for profile %s in shop %s", auth.user_id, auth.shop_id)
            return board

    def boards_by_shop(self) -> dict[str, ShopBoard]:
        """Any one live board per shop; they converge on the same orders."""
        result: dict[str, ShopBoard] = {}
        for user_id, board in self._boards.items():
            result.setdefault(self._shops[user_id], board)
        return result

    async def drain(self) -> None:
        """Wait for every board's background writes and refetches."""
        for board in list(self._boards.values()):
            await board.drain()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        for board in self._boards.values():
            await board.close()
        self._boards.clear()
        self._shops.clear()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
