"""Task model."""

from datetime import datetime
from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list, sa_type=sa.JSON)
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    pricing_type: str = Field(nullable=False, default="hourly")  # hourly | fixed
    currency: str = Field(nullable=False, default="PHP")  # PHP | USD
    hourly_rate: Optional[int] = None
    fixed_price: Optional[int] = None
    status: str = Field(nullable=False, default="todo")  # todo | in_progress | completed
    assigned_to_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    created_by_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
