"""User registration, approval and role management schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegistrationRequest(BaseModel):
    """Self-service registration, optionally redeeming an invitation token."""
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    full_name: Optional[str] = Field(default=None, max_length=200)
    requested_role: str = Role.MEMBER.value
    invitation_token: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.username


class RoleUpdateRequest(BaseModel):
    """Change a user's global role."""
    role: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserRead(BaseModel):
    id: UUID4
    username: str
    email: str
    full_name: str
    role: Role
    is_approved: bool
    owner_flag: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}
