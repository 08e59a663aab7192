from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ckflow.schemas.order import Attachment, LogType, PaymentMethod, ROStatus, WorkType


class OrderCreate(BaseModel):
    model: str = ""
    vin: str = ""
    customer_name: str = ""
    phone: str = ""
    info: str = ""
    urgent: bool = False
    mileage: int | None = None
    delivery_date: str | None = None
    is_insurance_case: bool = False
    work_type: WorkType | None = None  # defaults to the board's module


class OrderUpdate(BaseModel):
    id: str | None = None  # rename
    model: str | None = None
    vin: str | None = None
    customer_name: str | None = None
    phone: str | None = None
    urgent: bool | None = None
    mileage: int | None = None
    info: str | None = None
    delivery_date: str | None = None
    is_insurance_case: bool | None = None
    attachments: list[Attachment] | None = None


class StatusChange(BaseModel):
    status: ROStatus


class SlotDrop(BaseModel):
    status: ROStatus
    grid_position: int | None = Field(default=None, ge=0)


class Settlement(BaseModel):
    method: PaymentMethod
    amount: float = Field(ge=0)


class BayAssign(BaseModel):
    order_id: str


class BayExit(BaseModel):
    order_id: str
    next_status: ROStatus


class ConflictResolution(BaseModel):
    resolution: ROStatus  # DONE | PENDING


class NoteCreate(BaseModel):
    text: str
    type: LogType = LogType.USER
    image_url: str | None = None


class DiagnosticRequest(BaseModel):
    message: str


class ColumnReorder(BaseModel):
    dragged: ROStatus
    target: ROStatus


class ModuleSwitch(BaseModel):
    work_type: WorkType


class BroadcastCreate(BaseModel):
    message: str


class CalendarEventCreate(BaseModel):
    title: str
    description: str = ""
    start: datetime
    end: datetime


class CalendarEventUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    start: datetime | None = None
    end: datetime | None = None
