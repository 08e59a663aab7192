from ckflow.schemas.order import Role, ROStatus, WorkType
from ckflow.services.column_order import (
    ColumnKey, ColumnOrderManager, DEFAULT_COLUMN_ORDERS, column_key, reorder, sanitize_column_order,
)


def test_column_key():
    assert column_key(Role.FOREMAN, WorkType.MECHANIC) == ColumnKey.FOREMAN
    assert column_key(Role.FOREMAN, WorkType.BODY) == ColumnKey.BODY
    assert column_key(Role.ADVISOR, WorkType.BODY) == ColumnKey.BODY


def test_reorder_moves_to_target_index():
    cols = [ROStatus.DONE, ROStatus.TODO, ROStatus.PENDING, ROStatus.IN_PROGRESS]
    assert reorder(cols, ROStatus.IN_PROGRESS, ROStatus.TODO) == [
        ROStatus.DONE, ROStatus.IN_PROGRESS, ROStatus.TODO, ROStatus.PENDING,
    ]
    assert reorder(cols, ROStatus.DONE, ROStatus.PENDING) == [
        ROStatus.TODO, ROStatus.PENDING, ROStatus.DONE, ROStatus.IN_PROGRESS,
    ]


def test_reorder_noop_cases():
    cols = [ROStatus.DONE, ROStatus.TODO]
    assert reorder(cols, ROStatus.TODO, ROStatus.TODO) == cols
    assert reorder(cols, ROStatus.PAINTING, ROStatus.TODO) == cols


def test_sanitize_drops_unknown_and_rewrites_insurance():
    loaded = ["DONE", "INSURANCE", "BOGUS", "TODO", "DONE", "ARCHIVED"]
    assert sanitize_column_order(loaded, DEFAULT_COLUMN_ORDERS[ColumnKey.OWNER]) == [
        ROStatus.DONE, ROStatus.BODY_WORK, ROStatus.TODO,
    ]


def test_sanitize_empty_falls_back_to_default():
    default = DEFAULT_COLUMN_ORDERS[ColumnKey.BODY]
    assert sanitize_column_order(["nope"], default) == list(default)


def test_manager_reorder_is_per_audience():
    mgr = ColumnOrderManager()
    assert mgr.reorder(Role.FOREMAN, WorkType.MECHANIC, ROStatus.PENDING, ROStatus.DONE)
    assert mgr.columns_for(Role.FOREMAN, WorkType.MECHANIC)[0] == ROStatus.PENDING
    assert mgr.columns_for(Role.ADVISOR, WorkType.MECHANIC)[0] == ROStatus.DONE


def test_manager_reorder_noop_returns_false():
    mgr = ColumnOrderManager()
    assert not mgr.reorder(Role.OWNER, WorkType.MECHANIC, ROStatus.DONE, ROStatus.DONE)


def test_body_ordering_shared_across_roles():
    mgr = ColumnOrderManager()
    mgr.reorder(Role.ADVISOR, WorkType.BODY, ROStatus.PAINTING, ROStatus.DONE)
    assert mgr.columns_for(Role.OWNER, WorkType.BODY)[0] == ROStatus.PAINTING


def test_visible_columns_limited_to_module():
    mgr = ColumnOrderManager({"owner": ["DONE", "PAINTING", "TODO"]})
    assert mgr.visible_columns(Role.OWNER, WorkType.MECHANIC) == [ROStatus.DONE, ROStatus.TODO]


def test_snapshot_round_trip():
    mgr = ColumnOrderManager()
    mgr.reorder(Role.ADVISOR, WorkType.MECHANIC, ROStatus.BODY_WORK, ROStatus.DONE)
    again = ColumnOrderManager(mgr.snapshot())
    assert again.columns_for(Role.ADVISOR, WorkType.MECHANIC) == mgr.columns_for(Role.ADVISOR, WorkType.MECHANIC)
