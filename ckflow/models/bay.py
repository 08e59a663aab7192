from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ckflow.models.base import Base, ULIDMixin


class BayRow(Base, ULIDMixin):
    __tablename__ = "bays"

    name: Mapped[str] = mapped_column(String(100))
    work_type: Mapped[str] = mapped_column(String(20), default="MECHANIC")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
