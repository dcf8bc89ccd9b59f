"""
Role hierarchy primitives.

Every permission check in the engine goes through ``compare``/``at_least``
so role logic has a single implementation.
"""

from __future__ import annotations

from typing import Union

from taskpayable_shared.schemas.common import ORG_ROLES, ROLE_ORDER, Role, RoleComparison

from taskpayable.core.errors import ValidationError

_RANK = {role: len(ROLE_ORDER) - index for index, role in enumerate(ROLE_ORDER)}


def parse_role(value: Union[str, Role]) -> Role:
    """Convert a boundary value into a Role. Never coerces unknown strings."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"Invalid role '{value}'")


def parse_org_role(value: Union[str, Role]) -> Role:
    """Like ``parse_role`` but for organization-scoped roles (no owner)."""
    role = parse_role(value)
    if role not in ORG_ROLES:
        raise ValidationError(f"Role '{role.value}' cannot be granted inside an organization")
    return role


def compare(a: Role, b: Role) -> RoleComparison:
    diff = _RANK[a] - _RANK[b]
    if diff > 0:
        return RoleComparison.HIGHER
    if diff < 0:
        return RoleComparison.LOWER
    return RoleComparison.EQUAL


def at_least(role: Role, threshold: Role) -> bool:
    return _RANK[role] >= _RANK[threshold]


def is_owner(role: Role) -> bool:
    return role == Role.OWNER
