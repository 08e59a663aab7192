import pytest

from ckflow.schemas.order import Role
from ckflow.services.capabilities import (
    can_assign_bay, can_broadcast, can_change_payment, can_change_status,
    can_create_order, can_see_active_bays,
)

ALL_CHECKS = [
    can_see_active_bays, can_assign_bay, can_create_order,
    can_change_status, can_change_payment, can_broadcast,
]


@pytest.mark.parametrize("check", ALL_CHECKS)
def test_owner_passes_every_check(check):
    assert check(Role.OWNER) is True


@pytest.mark.parametrize("check", ALL_CHECKS)
def test_no_role_fails_every_check(check):
    assert check(None) is False


def test_advisor_capabilities():
    assert can_create_order(Role.ADVISOR)
    assert can_broadcast(Role.ADVISOR)
    assert can_change_status(Role.ADVISOR)
    assert not can_assign_bay(Role.ADVISOR)
    assert not can_see_active_bays(Role.ADVISOR)


def test_foreman_capabilities():
    assert can_assign_bay(Role.FOREMAN)
    assert can_see_active_bays(Role.FOREMAN)
    assert can_change_payment(Role.FOREMAN)
    assert not can_create_order(Role.FOREMAN)
    assert not can_broadcast(Role.FOREMAN)
