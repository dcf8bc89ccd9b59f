"""Task-related Pydantic schemas for shared use across server and frontend codegen."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic import UUID4

from .common import Currency, PricingType, TaskStatus


class TaskBase(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    pricing_type: PricingType = PricingType.HOURLY
    currency: Currency = Currency.PHP
    hourly_rate: Optional[int] = Field(default=None, ge=0)
    fixed_price: Optional[int] = Field(default=None, ge=0)


class TaskCreate(TaskBase):
    project_id: UUID4
    assigned_to_id: Optional[UUID4] = None

    @model_validator(mode="after")
    def _price_matches_type(self) -> "TaskCreate":
        if self.pricing_type == PricingType.FIXED and self.hourly_rate is not None:
            raise ValueError("hourly_rate is not allowed for fixed-price tasks")
        if self.pricing_type == PricingType.HOURLY and self.fixed_price is not None:
            raise ValueError("fixed_price is not allowed for hourly tasks")
        return self


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    tags: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    assigned_to_id: Optional[UUID4] = None


class TaskRead(TaskBase):
    id: UUID4
    project_id: UUID4
    assigned_to_id: Optional[UUID4] = None
    created_by_id: UUID4
    status: TaskStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
