"""Repair order, bay and calendar domain types."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class Role(str, Enum):
    ADVISOR = "ADVISOR"
    FOREMAN = "FOREMAN"
    OWNER = "OWNER"


ALL_ROLES: tuple[Role, ...] = (Role.ADVISOR, Role.FOREMAN, Role.OWNER)

ROLE_LABELS = {Role.ADVISOR: "Advisor", Role.FOREMAN: "Foreman", Role.OWNER: "Owner"}


class WorkType(str, Enum):
    MECHANIC = "MECHANIC"
    BODY = "BODY"


class ROStatus(str, Enum):
    TODO = "TODO"
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    BODY_WORK = "BODY_WORK"
    PAINTING = "PAINTING"
    FINISHING_UP = "FINISHING_UP"
    MECHANIC_WORK = "MECHANIC_WORK"
    # Display-only overlays, never held on an order.
    INSURANCE = "INSURANCE"
    ARCHIVED = "ARCHIVED"


STORED_STATUSES: tuple[ROStatus, ...] = (
    ROStatus.TODO,
    ROStatus.PENDING,
    ROStatus.IN_PROGRESS,
    ROStatus.DONE,
    ROStatus.BODY_WORK,
    ROStatus.PAINTING,
    ROStatus.FINISHING_UP,
    ROStatus.MECHANIC_WORK,
)


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CHEQUE = "CHEQUE"
    ABANDONED = "ABANDONED"


class LogType(str, Enum):
    SYSTEM = "SYSTEM"
    USER = "USER"
    AI = "AI"


class LogEntry(BaseModel):
    id: str
    timestamp: datetime
    user: str
    text: str
    type: LogType = LogType.USER
    image_url: str | None = None


class Attachment(BaseModel):
    id: str
    name: str
    type: str
    data: str | None = None  # data URL


class DecodedVehicle(BaseModel):
    year: str | None = None
    make: str | None = None
    model: str | None = None
    engine: str | None = None
    trim: str | None = None
    transmission: str | None = None
    drivetrain: str | None = None
    body_style: str | None = None
    plant: str | None = None
    decoded_at: datetime | None = None


class RepairOrder(BaseModel):
    id: str
    model: str = ""
    vin: str = ""
    customer_name: str = ""
    phone: str = ""
    info: str = ""
    status: ROStatus = ROStatus.TODO
    urgent: bool = False
    order: int = 0
    grid_position: int | None = None
    last_read_info: dict[str, str] = Field(default_factory=dict)
    bay_id: int | None = None
    total_time_in_bay: int = 0  # ms, all closed sessions
    last_entered_bay_at: int | None = None  # epoch ms of the open session
    unread_by: list[Role] = Field(default_factory=list)
    payment_method: PaymentMethod | None = None
    payment_amount: float | None = None
    settled_at: datetime | None = None
    logs: list[LogEntry] = Field(default_factory=list)
    ai_chat: list[LogEntry] = Field(default_factory=list)
    is_insurance_case: bool = False
    attachments: list[Attachment] = Field(default_factory=list)
    calendar_event_id: str | None = None
    mileage: int | None = None
    delivery_date: str | None = None
    work_type: WorkType = WorkType.MECHANIC
    decoded_data: DecodedVehicle | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_overlay_status(cls, data: Any) -> Any:
        """INSURANCE folds into BODY_WORK + flag; ARCHIVED folds into DONE."""
        if not isinstance(data, dict):
            return data
        status = data.get("status")
        if status == ROStatus.INSURANCE:
            return {**data, "status": ROStatus.BODY_WORK, "is_insurance_case": True}
        if status == ROStatus.ARCHIVED:
            return {**data, "status": ROStatus.DONE}
        return data


class Bay(BaseModel):
    id: int
    name: str
    work_type: WorkType
    current_ro_id: str | None = None  # projected from orders, never stored


class CalendarEvent(BaseModel):
    id: str
    title: str
    description: str = ""
    start: datetime
    end: datetime
