from datetime import datetime, timedelta, timezone

from ckflow.schemas.order import PaymentMethod, RepairOrder, ROStatus, WorkType
from ckflow.services.board_view import filter_orders, history, layout_columns, matches_query
from ckflow.services.status_codec import status_labels

SETTLED = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _ro(ro_id, **kw):
    return RepairOrder(id=ro_id, **kw)


def test_matches_query_fields():
    ro = _ro("RO-4821", customer_name="Dana Lee", model="Civic", vin="1HGCM826", phone="(555) 123-4567")
    assert matches_query(ro, "")
    assert matches_query(ro, "dana")
    assert matches_query(ro, "CIVIC")
    assert matches_query(ro, "4821")
    assert matches_query(ro, "hgcm")
    assert matches_query(ro, "555-1234")
    assert not matches_query(ro, "toyota")


def test_filter_by_module():
    orders = [_ro("A"), _ro("B", work_type=WorkType.BODY)]
    assert [ro.id for ro in filter_orders(orders, WorkType.BODY)] == ["B"]


def test_history_sorted_by_settlement_desc():
    orders = [
        _ro("OLD", status=ROStatus.DONE, payment_method=PaymentMethod.CASH, settled_at=SETTLED - timedelta(days=2)),
        _ro("NEW", status=ROStatus.DONE, payment_method=PaymentMethod.ABANDONED, settled_at=SETTLED),
        _ro("OPEN", status=ROStatus.DONE),
    ]
    assert [ro.id for ro in history(orders, WorkType.MECHANIC)] == ["NEW", "OLD"]


def test_layout_columns():
    orders = [_ro(f"T{i}", order=i) for i in range(9)] + [
        _ro("P", status=ROStatus.PENDING, grid_position=3),
        _ro("H", status=ROStatus.DONE, payment_method=PaymentMethod.CASH, settled_at=SETTLED),
    ]
    cols = layout_columns(
        orders,
        [ROStatus.DONE, ROStatus.TODO, ROStatus.PENDING],
        status_labels(WorkType.MECHANIC),
        collapsed={ROStatus.DONE},
    )
    done, todo, pending = cols
    assert done.count == 0
    assert done.collapsed
    assert todo.label == "To-do"
    assert len(todo.slots) == 16
    assert todo.count == 9
    assert pending.slots[3].id == "P"
    assert len(pending.slots) == 8


def test_bay_occupant_stays_in_its_column():
    ro = _ro("B1", status=ROStatus.IN_PROGRESS, bay_id=1, last_entered_bay_at=0)
    cols = layout_columns([ro], [ROStatus.IN_PROGRESS], status_labels(WorkType.MECHANIC))
    assert cols[0].count == 1
