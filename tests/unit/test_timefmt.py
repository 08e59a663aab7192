from datetime import datetime, timedelta, timezone

from ckflow.schemas.order import RepairOrder
from ckflow.services.timefmt import as_utc, datetime_to_ms, format_ms, ms_to_datetime, slot_sort_key


def test_format_ms():
    assert format_ms(0) == "00:00:00"
    assert format_ms(600_000) == "00:10:00"
    assert format_ms(1_800_000) == "00:30:00"
    assert format_ms(3_723_000) == "01:02:03"


def test_format_ms_hours_not_capped():
    assert format_ms(30 * 3_600_000) == "30:00:00"


def test_format_ms_negative_is_zero():
    assert format_ms(-5000) == "00:00:00"


def test_ms_datetime_roundtrip():
    ms = 1_700_000_000_000
    dt = ms_to_datetime(ms)
    assert dt.tzinfo is not None
    assert datetime_to_ms(dt) == ms


def test_naive_datetime_treated_as_utc():
    naive = datetime(2026, 10, 18, 9, 0)
    aware = naive.replace(tzinfo=timezone.utc)
    assert datetime_to_ms(naive) == datetime_to_ms(aware)
    assert as_utc(naive) == aware
    assert as_utc(None) is None


def test_as_utc_converts_offsets():
    eastern = datetime(2026, 10, 18, 5, 0, tzinfo=timezone(timedelta(hours=-4)))
    assert as_utc(eastern) == datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def test_slot_sort_key_explicit_position_first():
    placed = RepairOrder(id="RO-2", order=5, grid_position=3)
    unplaced = RepairOrder(id="RO-1", order=0)
    tie_a = RepairOrder(id="RO-A", order=1)
    tie_b = RepairOrder(id="RO-B", order=1)
    ranked = sorted([unplaced, tie_b, placed, tie_a], key=slot_sort_key)
    assert [ro.id for ro in ranked] == ["RO-2", "RO-1", "RO-A", "RO-B"]
