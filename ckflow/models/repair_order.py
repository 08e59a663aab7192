from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ckflow.models.base import Base, TimestampMixin, ULIDMixin


class RepairOrderRow(Base, ULIDMixin, TimestampMixin):
    __tablename__ = "repair_orders"

    ro_number: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    work_type: Mapped[str] = mapped_column(String(20), default="MECHANIC")  # MECHANIC | BODY
    status: Mapped[str] = mapped_column(String(20), default="TO_DO")
    is_insurance_case: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_status: Mapped[str | None] = mapped_column(String(10), nullable=True, default=None)  # paid | voided
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True, default=None)
    payment_amount: Mapped[float | None] = mapped_column(Float, nullable=True, default=None)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    model: Mapped[str] = mapped_column(String(255), default="")
    vin: Mapped[str] = mapped_column(String(64), default="")
    customer_name: Mapped[str] = mapped_column(String(255), default="")
    customer_phone: Mapped[str] = mapped_column(String(64), default="")
    info: Mapped[str] = mapped_column(Text, default="")
    urgent: Mapped[bool] = mapped_column(Boolean, default=False)
    mileage: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    delivery_date: Mapped[str | None] = mapped_column(String(32), nullable=True, default=None)

    bay_id: Mapped[str | None] = mapped_column(String(26), ForeignKey("bays.id"), nullable=True, default=None)
    last_entered_bay_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    total_time_in_bay_ms: Mapped[int] = mapped_column(Integer, default=0)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    grid_position: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    calendar_event_id: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
    attachments: Mapped[list] = mapped_column(JSON, default=list)
    decoded_data: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=None)
    unread_by: Mapped[list] = mapped_column(JSON, default=list)
    last_read_info: Mapped[dict] = mapped_column(JSON, default=dict)
