from __future__ import annotations

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ckflow.models.base import Base, ULIDMixin


class EventLogRow(Base, ULIDMixin):
    __tablename__ = "event_log"

    repair_order_id: Mapped[str] = mapped_column(String(26), ForeignKey("repair_orders.id"), index=True)
    entry_type: Mapped[str] = mapped_column(String(20), default="activity")  # activity | diagnostic
    type: Mapped[str] = mapped_column(String(10), default="USER")  # SYSTEM | USER | AI
    text: Mapped[str] = mapped_column(Text, default="")
    image_storage_path: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    user_id: Mapped[str | None] = mapped_column(String(26), nullable=True, default=None)
    user_label: Mapped[str] = mapped_column(String(100), default="SYSTEM")
