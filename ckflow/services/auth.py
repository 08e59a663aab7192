"""Bearer-token authentication and role resolution against shop profiles."""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ckflow.db import crud
from ckflow.models import Profile
from ckflow.schemas.order import ROLE_LABELS, Role

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    user_id: str
    shop_id: str
    role: Role | None  # None: signed in but no role assigned yet
    display_name: str


def _hash_token(token: str) -> str:
    """SHA-256 hash of an access token for DB storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def resolve_role(raw: str | None) -> Role | None:
    """Profiles store lower-case roles; anything unknown resolves to no role."""
    if not raw:
        return None
    try:
        return Role(raw.upper())
    except ValueError:
        logger.warning("Unknown profile role %r", raw)
        return None


async def issue_token(
    db: AsyncSession, role: Role | None, display_name: str = "", shop_id: str = "default",
) -> tuple[str, Profile]:
    """Create a profile and return its raw token (only the hash is stored)."""
    token = secrets.token_urlsafe(32)
    profile = await crud.create_profile(
        db,
        token_hash=_hash_token(token),
        role=role.value.lower() if role else None,
        display_name=display_name or (ROLE_LABELS[role] if role else ""),
        shop_id=shop_id,
    )
    return token, profile


async def authenticate_token(token: str, db: AsyncSession) -> AuthContext | None:
    if not token:
        return None
    profile = await crud.get_profile_by_token_hash(db, _hash_token(token))
    if profile is None or not profile.is_active:
        return None
    role = resolve_role(profile.role)
    return AuthContext(
        user_id=profile.id,
        shop_id=profile.shop_id,
        role=role,
        display_name=profile.display_name or (ROLE_LABELS[role] if role else "User"),
    )


def _bearer(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def get_current_user(request: Request, db: AsyncSession) -> AuthContext:
    """Read the bearer token, resolve the profile, return AuthContext or raise 401."""
    token = _bearer(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    auth = await authenticate_token(token, db)
    if auth is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return auth
