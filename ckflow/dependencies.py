"""FastAPI dependency providers for auth, board lookup, and capability enforcement."""

from __future__ import annotations

from functools import lru_cache
from typing import Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ckflow.agents.llm_provider import LLMProvider, get_llm_provider
from ckflow.config import Settings, get_settings
from ckflow.db.engine import get_db
from ckflow.schemas.order import Role
from ckflow.services.auth import AuthContext, get_current_user
from ckflow.services.reconciler import ShopBoard
from ckflow.services.registry import BoardRegistry


@lru_cache
def get_settings_dep() -> Settings:
    return get_settings()


async def require_auth(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Require a valid bearer token. Returns AuthContext."""
    return await get_current_user(request, db)


def require_capability(predicate: Callable[[Role | None], bool]):
    """Factory: returns a dependency that enforces a capability predicate."""
    async def _check(auth: AuthContext = Depends(require_auth)) -> AuthContext:
        if not predicate(auth.role):
            raise HTTPException(403, "Insufficient permissions")
        return auth
    return _check


def get_registry(request: Request) -> BoardRegistry:
    return request.app.state.registry


async def get_board(
    auth: AuthContext = Depends(require_auth),
    registry: BoardRegistry = Depends(get_registry),
) -> ShopBoard:
    """The caller's live board. Profiles without a role have no board."""
    if auth.role is None:
        raise HTTPException(403, "No role assigned to this profile")
    return await registry.get_board(auth)


def get_llm() -> LLMProvider:
    try:
        return get_llm_provider()
    except RuntimeError as e:
        raise HTTPException(503, str(e))
