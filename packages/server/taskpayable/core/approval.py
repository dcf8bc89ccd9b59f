"""
Approval decision for newly registered accounts.

Evaluated in order:

- a valid invitation grants its role inside its organization, approved
- no invitation, requested ``member``: approved, no organization yet
- no invitation, requested ``lead``/``org-admin``: pending review
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.invitations import InvalidReason, InvitationVerdict

from taskpayable.core.errors import InvitationInvalid, ValidationError


@dataclass(frozen=True)
class ApprovalDecision:
    is_approved: bool
    role: Role
    org_id: Optional[uuid.UUID] = None

    @property
    def needs_provisioning(self) -> bool:
        return self.is_approved and self.org_id is None


def decide_registration(
    requested_role: Role, verdict: Optional[InvitationVerdict] = None
) -> ApprovalDecision:
    if requested_role == Role.OWNER:
        raise ValidationError("The owner role cannot be requested at registration")

    if verdict is not None:
        if not verdict.valid:
            raise InvitationInvalid(verdict.reason or InvalidReason.NOT_FOUND)
        return ApprovalDecision(is_approved=True, role=verdict.role, org_id=verdict.org_id)

    if requested_role == Role.MEMBER:
        return ApprovalDecision(is_approved=True, role=Role.MEMBER)

    return ApprovalDecision(is_approved=False, role=requested_role)
