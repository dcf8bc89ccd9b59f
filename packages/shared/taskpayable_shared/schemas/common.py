from enum import Enum
from typing import Optional
from pydantic import BaseModel

class Role(str, Enum):
    OWNER = "owner"
    ORG_ADMIN = "org-admin"
    LEAD = "lead"
    MEMBER = "member"

# Ordered highest authority first
ROLE_ORDER: list["Role"] = [
    Role.OWNER,
    Role.ORG_ADMIN,
    Role.LEAD,
    Role.MEMBER,
]

# Roles an organization membership or invitation may carry
ORG_ROLES: list["Role"] = [Role.ORG_ADMIN, Role.LEAD, Role.MEMBER]

class RoleComparison(str, Enum):
    HIGHER = "higher"
    EQUAL = "equal"
    LOWER = "lower"

class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

class PricingType(str, Enum):
    HOURLY = "hourly"
    FIXED = "fixed"

class Currency(str, Enum):
    PHP = "PHP"
    USD = "USD"

class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    reason: Optional[str] = None

class ErrorResponse(BaseModel):
    error: ErrorBody
