from __future__ import annotations
from typing import Any
from pydantic import BaseModel


class WSMessage(BaseModel):
    type: str  # BROADCAST | CLEAR_BROADCAST | bay_tick | board_changed
    payload: str | None = None
    data: dict[str, Any] = {}
