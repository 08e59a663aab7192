from datetime import datetime, timezone

from ckflow.schemas.order import PaymentMethod, RepairOrder, ROStatus, WorkType
from ckflow.services.status_codec import (
    STATUS_TO_DB, StorageForm, display_status, from_storage_form, is_archived,
    status_labels, storage_status, to_storage_form,
)

SETTLED = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def test_every_stored_status_round_trips():
    for status in STATUS_TO_DB:
        ro = RepairOrder(id="RO-1", status=status)
        assert from_storage_form(to_storage_form(ro)) == status


def test_todo_token():
    assert storage_status(ROStatus.TODO) == ("TO_DO", False)


def test_insurance_folds_into_body_work_flag():
    assert storage_status(ROStatus.INSURANCE) == ("BODY_WORK", True)
    ro = RepairOrder(id="RO-1", status=ROStatus.INSURANCE)
    assert ro.status == ROStatus.BODY_WORK
    assert ro.is_insurance_case is True
    form = to_storage_form(ro)
    assert form.status == "BODY_WORK"
    assert form.is_insurance_case is True


def test_legacy_insurance_token_reads_as_body_work():
    assert from_storage_form(StorageForm("INSURANCE", True)) == ROStatus.BODY_WORK


def test_unknown_token_reads_as_todo():
    assert from_storage_form(StorageForm("ORDER_LIST")) == ROStatus.TODO


def test_archived_is_done_plus_settlement():
    ro = RepairOrder(
        id="RO-1", status=ROStatus.DONE,
        payment_method=PaymentMethod.CASH, payment_amount=120.0, settled_at=SETTLED,
    )
    assert is_archived(ro)
    assert display_status(ro) == ROStatus.ARCHIVED
    form = to_storage_form(ro)
    assert form.status == "DONE"
    assert form.payment_status == "paid"
    assert from_storage_form(form) == ROStatus.ARCHIVED


def test_abandoned_settlement_is_voided():
    ro = RepairOrder(
        id="RO-1", status=ROStatus.DONE,
        payment_method=PaymentMethod.ABANDONED, payment_amount=0, settled_at=SETTLED,
    )
    assert to_storage_form(ro).payment_status == "voided"
    assert display_status(ro) == ROStatus.ARCHIVED


def test_done_without_settlement_is_not_archived():
    ro = RepairOrder(id="RO-1", status=ROStatus.DONE)
    assert not is_archived(ro)
    assert display_status(ro) == ROStatus.DONE
    assert to_storage_form(ro).payment_status is None


def test_body_module_labels():
    body = status_labels(WorkType.BODY)
    mech = status_labels(WorkType.MECHANIC)
    assert body[ROStatus.BODY_WORK] == "Bodywork"
    assert body[ROStatus.MECHANIC_WORK] == "Mechanic To-do"
    assert mech[ROStatus.BODY_WORK] == "Body Work"
    assert mech[ROStatus.TODO] == body[ROStatus.TODO] == "To-do"
