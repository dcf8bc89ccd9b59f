"""User model."""

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskpayable_shared.schemas.common import Role

from .base import UUIDMixin, _utcnow


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        # At most one designated owner account
        sa.Index(
            "uq_users_single_owner",
            "owner_flag",
            unique=True,
            postgresql_where=sa.text("owner_flag"),
            sqlite_where=sa.text("owner_flag = 1"),
        ),
    )

    username: str = Field(unique=True, nullable=False, index=True)
    email: str = Field(unique=True, nullable=False, index=True)
    full_name: str = Field(nullable=False)
    role: str = Field(nullable=False, default=Role.MEMBER.value)  # owner | org-admin | lead | member
    is_approved: bool = Field(default=False, nullable=False)
    owner_flag: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )

    @property
    def global_role(self) -> Role:
        return Role(self.role)
