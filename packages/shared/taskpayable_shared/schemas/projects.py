from typing import Optional
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


class ProjectBase(BaseModel):
    name: str
    description: Optional[str] = None


class ProjectCreate(ProjectBase):
    org_id: UUID


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    # Accepted only so a change can be rejected explicitly
    org_id: Optional[UUID] = None


class ProjectRead(ProjectBase):
    id: UUID
    org_id: UUID
    created_by_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}
