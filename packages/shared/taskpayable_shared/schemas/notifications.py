"""
Notification and provisioning intents.

The engine never sends anything itself; it hands these to the dispatcher
and the auto-provisioning collaborator.
"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel


class NotificationKind(str, Enum):
    NEW_USER = "new_user"
    ACCOUNT_APPROVED = "account_approved"
    MEMBER_JOINED = "member_joined"
    NEW_ORGANIZATION = "new_organization"


class NotificationIntent(BaseModel):
    target_user_id: uuid.UUID
    kind: NotificationKind
    message: str

    model_config = {"frozen": True}


class ProvisioningIntent(BaseModel):
    """Request for an organization to be created for a user who has none."""
    user_id: uuid.UUID
    display_name: str
    email: str | None = None

    model_config = {"frozen": True}
