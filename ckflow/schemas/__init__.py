"""Pydantic domain types and request schemas."""

from ckflow.schemas.order import (
    ALL_ROLES, ROLE_LABELS, STORED_STATUSES,
    Attachment, Bay, CalendarEvent, DecodedVehicle, LogEntry, LogType,
    PaymentMethod, RepairOrder, Role, ROStatus, WorkType,
)
from ckflow.schemas.requests import (
    BayAssign, BayExit, BroadcastCreate, CalendarEventCreate, CalendarEventUpdate, ColumnReorder,
    ConflictResolution, DiagnosticRequest, ModuleSwitch, NoteCreate, OrderCreate,
    OrderUpdate, Settlement, SlotDrop, StatusChange,
)
from ckflow.schemas.ws_messages import WSMessage

__all__ = [
    "ALL_ROLES", "ROLE_LABELS", "STORED_STATUSES",
    "Attachment", "Bay", "CalendarEvent", "DecodedVehicle", "LogEntry", "LogType",
    "PaymentMethod", "RepairOrder", "Role", "ROStatus", "WorkType",
    "BayAssign", "BayExit", "BroadcastCreate", "CalendarEventCreate", "CalendarEventUpdate", "ColumnReorder",
    "ConflictResolution", "DiagnosticRequest", "ModuleSwitch", "NoteCreate", "OrderCreate",
    "OrderUpdate", "Settlement", "SlotDrop", "StatusChange",
    "WSMessage",
]
