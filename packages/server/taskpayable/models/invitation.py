"""Invitation link model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskpayable_shared.schemas.common import Role

from .base import UUIDMixin, _utcnow


class InvitationLink(UUIDMixin, SQLModel, table=True):
    __tablename__ = "invitation_links"

    token: str = Field(unique=True, nullable=False, index=True)
    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    role: str = Field(nullable=False, default=Role.MEMBER.value)
    message: Optional[str] = None
    active: bool = Field(default=True, nullable=False)
    expires: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    max_uses: Optional[int] = None
    used_count: int = Field(default=0, nullable=False)
    created_by_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
