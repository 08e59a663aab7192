"""Row <-> RepairOrder conversion at the database boundary.

Status tokens go through ``status_codec`` in both directions; nothing else in
the storage layer interprets them.
"""

from __future__ import annotations

from typing import Any

from ckflow.models import EventLogRow, RepairOrderRow
from ckflow.schemas.order import Attachment, DecodedVehicle, LogEntry, RepairOrder, Role
from ckflow.services.status_codec import StorageForm, from_storage_form, payment_status_for, storage_status, to_storage_form
from ckflow.services.timefmt import as_utc, datetime_to_ms, ms_to_datetime

# RepairOrder field -> column, for fields stored verbatim.
_PLAIN_COLUMNS = {
    "model": "model",
    "vin": "vin",
    "customer_name": "customer_name",
    "phone": "customer_phone",
    "info": "info",
    "urgent": "urgent",
    "mileage": "mileage",
    "delivery_date": "delivery_date",
    "payment_amount": "payment_amount",
    "settled_at": "settled_at",
    "grid_position": "grid_position",
    "calendar_event_id": "calendar_event_id",
    "is_insurance_case": "is_insurance_case",
    "order": "order_index",
    "last_read_info": "last_read_info",
}


def _dump(value: Any) -> Any:
    if isinstance(value, (Attachment, DecodedVehicle)):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, Role):
        return value.value
    return value


def serialize_order(order: RepairOrder, bay_key: str | None) -> dict[str, Any]:
    """Column values for inserting a full order."""
    form = to_storage_form(order)
    return {
        "ro_number": order.id,
        "work_type": order.work_type.value,
        "status": form.status,
        "is_insurance_case": form.is_insurance_case,
        "payment_status": form.payment_status,
        "payment_method": order.payment_method.value if order.payment_method else None,
        "payment_amount": order.payment_amount,
        "settled_at": order.settled_at,
        "model": order.model,
        "vin": order.vin,
        "customer_name": order.customer_name,
        "customer_phone": order.phone,
        "info": order.info,
        "urgent": order.urgent,
        "mileage": order.mileage,
        "delivery_date": order.delivery_date,
        "bay_id": bay_key,
        "last_entered_bay_at": ms_to_datetime(order.last_entered_bay_at) if order.last_entered_bay_at else None,
        "total_time_in_bay_ms": order.total_time_in_bay,
        "order_index": order.order,
        "grid_position": order.grid_position,
        "calendar_event_id": order.calendar_event_id,
        "attachments": _dump(order.attachments),
        "decoded_data": _dump(order.decoded_data) if order.decoded_data else None,
        "unread_by": _dump(order.unread_by),
        "last_read_info": dict(order.last_read_info),
    }


def serialize_update(fields: dict[str, Any]) -> dict[str, Any]:
    """Column values for a partial update expressed in RepairOrder field names."""
    values: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "id":
            values["ro_number"] = value
        elif name == "status":
            token, insurance = storage_status(value)
            values["status"] = token
            if insurance:
                values["is_insurance_case"] = True
        elif name == "payment_method":
            values["payment_method"] = value.value if value else None
            values["payment_status"] = payment_status_for(value)
        elif name in ("attachments", "unread_by"):
            values[name] = _dump(value or [])
        elif name == "decoded_data":
            values[name] = _dump(value) if value else None
        elif name in _PLAIN_COLUMNS:
            values[_PLAIN_COLUMNS[name]] = value
        else:
            raise ValueError(f"Field {name} cannot be written through update_order")
    return values


def row_to_log(row: EventLogRow) -> LogEntry:
    return LogEntry(
        id=row.id,
        timestamp=as_utc(row.created_at),
        user=row.user_label if row.user_id else "SYSTEM",
        text=row.text,
        type=row.type,
        image_url=row.image_storage_path,
    )


def deserialize_order(
    row: RepairOrderRow,
    logs: list[LogEntry],
    ai_chat: list[LogEntry],
    bay_number: int | None,
) -> RepairOrder:
    status = from_storage_form(StorageForm(row.status, row.is_insurance_case, row.payment_status))
    return RepairOrder(
        id=row.ro_number,
        model=row.model,
        vin=row.vin,
        customer_name=row.customer_name,
        phone=row.customer_phone,
        info=row.info,
        status=status,
        urgent=row.urgent,
        order=row.order_index,
        grid_position=row.grid_position,
        last_read_info=row.last_read_info or {},
        bay_id=bay_number,
        total_time_in_bay=row.total_time_in_bay_ms or 0,
        last_entered_bay_at=(
            datetime_to_ms(row.last_entered_bay_at)
            if row.last_entered_bay_at and bay_number is not None else None
        ),
        unread_by=row.unread_by or [],
        payment_method=row.payment_method,
        payment_amount=row.payment_amount,
        settled_at=as_utc(row.settled_at),
        logs=logs,
        ai_chat=ai_chat,
        is_insurance_case=row.is_insurance_case,
        attachments=row.attachments or [],
        calendar_event_id=row.calendar_event_id,
        mileage=row.mileage,
        delivery_date=row.delivery_date,
        work_type=row.work_type,
        decoded_data=row.decoded_data,
    )
