"""Shop member profiles; the role on the profile drives every capability check."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ckflow.models.base import Base, ULIDMixin


class Profile(Base, ULIDMixin):
    __tablename__ = "profiles"

    shop_id: Mapped[str] = mapped_column(String(64), default="default", index=True)
    display_name: Mapped[str] = mapped_column(String(255), default="")
    role: Mapped[str | None] = mapped_column(String(20), nullable=True, default=None)  # owner | advisor | foreman
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
