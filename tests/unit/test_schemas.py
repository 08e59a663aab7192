import pytest
from pydantic import ValidationError

from ckflow.schemas import (
    BroadcastCreate, OrderCreate, OrderUpdate, RepairOrder, ROStatus, Settlement, SlotDrop, WSMessage,
)


def test_repair_order_defaults():
    ro = RepairOrder(id="RO-1001")
    assert ro.status == ROStatus.TODO
    assert ro.bay_id is None
    assert ro.total_time_in_bay == 0
    assert ro.logs == []
    assert ro.unread_by == []


def test_insurance_status_is_folded():
    ro = RepairOrder.model_validate({"id": "RO-1", "status": "INSURANCE"})
    assert ro.status == ROStatus.BODY_WORK
    assert ro.is_insurance_case


def test_archived_status_is_folded():
    ro = RepairOrder.model_validate({"id": "RO-1", "status": "ARCHIVED"})
    assert ro.status == ROStatus.DONE


def test_order_create_work_type_optional():
    body = OrderCreate(model="Civic")
    assert body.work_type is None
    assert body.urgent is False


def test_order_update_excludes_unset():
    body = OrderUpdate(mileage=1200)
    assert body.model_dump(exclude_none=True) == {"mileage": 1200}


def test_settlement_amount_non_negative():
    with pytest.raises(ValidationError):
        Settlement(method="CASH", amount=-1)


def test_slot_drop_position_non_negative():
    with pytest.raises(ValidationError):
        SlotDrop(status="TODO", grid_position=-2)


def test_ws_message():
    msg = WSMessage(type="BROADCAST", payload="Shop closes at 5")
    data = msg.model_dump()
    assert data["type"] == "BROADCAST"
    assert data["payload"] == "Shop closes at 5"


def test_broadcast_requires_message():
    assert BroadcastCreate(message="Lunch at noon").message == "Lunch at noon"
    with pytest.raises(ValidationError):
        BroadcastCreate.model_validate({"text": "wrong key"})
