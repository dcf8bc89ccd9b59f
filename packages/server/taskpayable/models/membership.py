"""User-Organization membership (join table, unique per user/org pair)."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskpayable_shared.schemas.common import Role

from .base import _utcnow


class OrganizationMembership(SQLModel, table=True):
    __tablename__ = "organization_memberships"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    org_id: uuid.UUID = Field(foreign_key="organizations.id", primary_key=True, index=True)
    role: str = Field(nullable=False, default=Role.MEMBER.value)  # org-admin | lead | member
    joined_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
