"""Invitation link schemas: issuance, validation verdicts, listings."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import Role


class InvalidReason(str, Enum):
    NOT_FOUND = "not-found"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class InvitationCreateRequest(BaseModel):
    """Issue an invitation link for one organization."""
    org_id: uuid.UUID
    role: str = Role.MEMBER.value
    expires: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    message: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class InvitationRead(BaseModel):
    id: uuid.UUID
    token: str
    org_id: uuid.UUID
    role: Role
    message: Optional[str] = None
    active: bool
    expires: Optional[datetime] = None
    max_uses: Optional[int] = None
    used_count: int
    created_by_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationVerdict(BaseModel):
    """Outcome of validating a token. Never mutates usage."""
    valid: bool
    org_id: Optional[uuid.UUID] = None
    role: Optional[Role] = None
    reason: Optional[InvalidReason] = None

    @classmethod
    def ok(cls, org_id: uuid.UUID, role: Role) -> "InvitationVerdict":
        return cls(valid=True, org_id=org_id, role=role)

    @classmethod
    def rejected(cls, reason: InvalidReason) -> "InvitationVerdict":
        return cls(valid=False, reason=reason)
