"""
The explicit request identity.

The HTTP layer resolves who is calling (session transport is not our
concern) and hands the engine an ``Identity``. Nothing in the engine reads
a "current organization" from ambient state; callers pass ``org_id``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Mapping, Optional

from taskpayable_shared.schemas.common import Role

from taskpayable.core.errors import AccountPendingApproval, Forbidden, Unauthorized
from taskpayable.core.roles import at_least


@dataclass(frozen=True)
class Identity:
    """Container for a caller + their resolved memberships."""

    user_id: uuid.UUID
    global_role: Role
    is_approved: bool = True
    memberships: Mapping[uuid.UUID, Role] = field(default_factory=dict)
    assigned_project_ids: frozenset[uuid.UUID] = frozenset()

    @property
    def is_owner(self) -> bool:
        return self.global_role == Role.OWNER

    def role_in(self, org_id: Optional[uuid.UUID]) -> Optional[Role]:
        """Role inside one organization; the owner is org-admin everywhere."""
        if org_id is None:
            return None
        if self.is_owner:
            return Role.ORG_ADMIN
        return self.memberships.get(org_id)


def require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise Unauthorized()
    return identity


def require_approved(identity: Optional[Identity]) -> Identity:
    """Gate for every mutating operation."""
    identity = require_identity(identity)
    if identity.is_owner:
        return identity
    if not identity.is_approved:
        raise AccountPendingApproval()
    return identity


def require_org_role(identity: Identity, org_id: uuid.UUID, threshold: Role) -> Role:
    """Raise Forbidden unless the caller holds ``threshold`` or better in ``org_id``."""
    role = identity.role_in(org_id)
    if role is None or not at_least(role, threshold):
        raise Forbidden(f"{threshold.value} access to this organization required")
    return role


def require_global_role(identity: Identity, threshold: Role) -> None:
    if not at_least(identity.global_role, threshold):
        raise Forbidden(f"{threshold.value} access required")
