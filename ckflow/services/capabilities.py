"""Centralized role capability checks.

Owner passes every check. Hiding actions in a client is supplementary; the
board enforces these before any mutation.
"""

from __future__ import annotations

from ckflow.schemas.order import Role


def can_see_active_bays(role: Role | None) -> bool:
    return role in (Role.OWNER, Role.FOREMAN)


def can_assign_bay(role: Role | None) -> bool:
    return role in (Role.OWNER, Role.FOREMAN)


def can_create_order(role: Role | None) -> bool:
    return role in (Role.OWNER, Role.ADVISOR)


def can_change_status(role: Role | None) -> bool:
    return role in (Role.OWNER, Role.ADVISOR, Role.FOREMAN)


def can_change_payment(role: Role | None) -> bool:
    return role in (Role.OWNER, Role.ADVISOR, Role.FOREMAN)


def can_broadcast(role: Role | None) -> bool:
    return role in (Role.OWNER, Role.ADVISOR)
