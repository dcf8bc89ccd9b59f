"""Auto-provisioning of a personal organization for self-registered members."""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taskpayable.core.errors import NotFound
from taskpayable.models.organization import Organization
from taskpayable.models.user import User
from taskpayable.services.memberships import add_member
from taskpayable.services.users import get_owner
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.notifications import (
    NotificationIntent,
    NotificationKind,
    ProvisioningIntent,
)

log = structlog.get_logger()


async def provision_organization(
    session: AsyncSession, intent: ProvisioningIntent
) -> tuple[Organization, list[NotificationIntent]]:
    """Create an organization for the user and make them its org-admin."""
    if await session.get(User, intent.user_id) is None:
        raise NotFound("User not found")

    org = Organization(
        name=f"{intent.display_name}'s Organization",
        description=f"Organization for {intent.display_name}",
        email=intent.email,
        created_by_id=intent.user_id,
    )
    session.add(org)
    await session.flush()

    await add_member(session, intent.user_id, org.id, Role.ORG_ADMIN)

    intents = []
    owner = await get_owner(session)
    if owner is not None and owner.id != intent.user_id:
        intents.append(
            NotificationIntent(
                target_user_id=owner.id,
                kind=NotificationKind.NEW_ORGANIZATION,
                message=f"New organization '{org.name}' was created for {intent.display_name}.",
            )
        )

    log.info("org.provisioned", org_id=str(org.id), user_id=str(intent.user_id))
    return org, intents
