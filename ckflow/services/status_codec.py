"""Status mapping between the board's view and the stored form.

ARCHIVED and INSURANCE are never persisted. ARCHIVED is DONE plus a settlement
(``payment_status`` paid/voided); INSURANCE is BODY_WORK plus the
``is_insurance_case`` flag. Both directions live here so the two forms cannot
drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass

from ckflow.schemas.order import PaymentMethod, RepairOrder, ROStatus, WorkType

STATUS_TO_DB: dict[ROStatus, str] = {
    ROStatus.TODO: "TO_DO",
    ROStatus.PENDING: "PENDING",
    ROStatus.IN_PROGRESS: "IN_PROGRESS",
    ROStatus.DONE: "DONE",
    ROStatus.BODY_WORK: "BODY_WORK",
    ROStatus.PAINTING: "PAINTING",
    ROStatus.FINISHING_UP: "FINISHING_UP",
    ROStatus.MECHANIC_WORK: "MECHANIC_WORK",
}

DB_TO_STATUS: dict[str, ROStatus] = {v: k for k, v in STATUS_TO_DB.items()}

SETTLED_PAYMENT_STATUSES = ("paid", "voided")

STATUS_LABELS: dict[ROStatus, str] = {
    ROStatus.TODO: "To-do",
    ROStatus.IN_PROGRESS: "In Progress",
    ROStatus.PENDING: "Pending",
    ROStatus.DONE: "Done",
    ROStatus.INSURANCE: "Insurance",
    ROStatus.BODY_WORK: "Body Work",
    ROStatus.PAINTING: "Painting",
    ROStatus.FINISHING_UP: "Finishing Up",
    ROStatus.MECHANIC_WORK: "Mechanic Work",
    ROStatus.ARCHIVED: "Archived",
}

_BODY_LABELS = {
    ROStatus.BODY_WORK: "Bodywork",
    ROStatus.MECHANIC_WORK: "Mechanic To-do",
}

# Statuses rendered as kanban columns in each module.
MODULE_COLUMNS: dict[WorkType, tuple[ROStatus, ...]] = {
    WorkType.MECHANIC: (
        ROStatus.DONE, ROStatus.TODO, ROStatus.PENDING, ROStatus.IN_PROGRESS, ROStatus.BODY_WORK,
    ),
    WorkType.BODY: (
        ROStatus.DONE, ROStatus.TODO, ROStatus.BODY_WORK, ROStatus.PAINTING,
        ROStatus.FINISHING_UP, ROStatus.MECHANIC_WORK,
    ),
}


@dataclass(frozen=True)
class StorageForm:
    status: str  # DB token, e.g. "TO_DO"
    is_insurance_case: bool = False
    payment_status: str | None = None  # paid | voided


def payment_status_for(method: PaymentMethod | None) -> str | None:
    if method is None:
        return None
    return "voided" if method == PaymentMethod.ABANDONED else "paid"


def storage_status(status: ROStatus) -> tuple[str, bool]:
    """Map a single status to its DB token and whether it implies the insurance flag."""
    if status == ROStatus.INSURANCE:
        return STATUS_TO_DB[ROStatus.BODY_WORK], True
    if status == ROStatus.ARCHIVED:
        return STATUS_TO_DB[ROStatus.DONE], False
    return STATUS_TO_DB.get(status, STATUS_TO_DB[ROStatus.TODO]), False


def to_storage_form(order: RepairOrder) -> StorageForm:
    token, insurance = storage_status(order.status)
    payment_status = None
    if order.settled_at is not None:
        payment_status = payment_status_for(order.payment_method)
    return StorageForm(
        status=token,
        is_insurance_case=insurance or order.is_insurance_case,
        payment_status=payment_status,
    )


def from_storage_form(form: StorageForm) -> ROStatus:
    """Reconstruct the display status of a stored row."""
    if form.status == STATUS_TO_DB[ROStatus.DONE] and form.payment_status in SETTLED_PAYMENT_STATUSES:
        return ROStatus.ARCHIVED
    if form.status == ROStatus.INSURANCE.value:
        return ROStatus.BODY_WORK
    return DB_TO_STATUS.get(form.status, ROStatus.TODO)


def is_archived(order: RepairOrder) -> bool:
    return (
        order.status == ROStatus.DONE
        and order.settled_at is not None
        and order.payment_method is not None
    )


def display_status(order: RepairOrder) -> ROStatus:
    return ROStatus.ARCHIVED if is_archived(order) else order.status


def status_labels(work_type: WorkType) -> dict[ROStatus, str]:
    if work_type == WorkType.BODY:
        return {**STATUS_LABELS, **_BODY_LABELS}
    return dict(STATUS_LABELS)
