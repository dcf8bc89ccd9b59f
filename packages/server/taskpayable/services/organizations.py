"""
Organization service: business logic for org CRUD and membership management.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional, Union

import structlog
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskpayable.core.errors import Forbidden, NotFound, OrganizationNotEmpty
from taskpayable.core.identity import (
    Identity,
    require_approved,
    require_global_role,
    require_org_role,
)
from taskpayable.core.visibility import visible_org_ids
from taskpayable.models.invitation import InvitationLink
from taskpayable.models.membership import OrganizationMembership
from taskpayable.models.organization import Organization
from taskpayable.models.project import Project
from taskpayable.services.memberships import add_member, remove_member
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.notifications import NotificationIntent
from taskpayable_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgListItem,
    OrgUpdateRequest,
)

log = structlog.get_logger()


async def get_org(session: AsyncSession, identity: Identity, org_id: uuid.UUID) -> Organization:
    """Get an org the caller belongs to; raises 404 otherwise."""
    org = await session.get(Organization, org_id)
    if not org or identity.role_in(org.id) is None:
        raise NotFound("Organization not found")
    return org


async def list_visible_orgs(
    session: AsyncSession, identity: Identity, org_id: Optional[uuid.UUID] = None
) -> list[OrgListItem]:
    """Organizations the caller can see, with the caller's role in each."""
    if identity.is_owner:
        result = await session.execute(select(Organization.id))
        candidates = [row[0] for row in result.all()]
    else:
        candidates = list(identity.memberships)

    allowed = visible_org_ids(identity, candidates, org_id)
    if not allowed:
        return []

    result = await session.execute(
        select(Organization).where(Organization.id.in_(allowed)).order_by(Organization.name)
    )
    return [
        OrgListItem(id=org.id, name=org.name, role=identity.role_in(org.id))
        for org in result.scalars().all()
    ]


async def create_org(
    session: AsyncSession, identity: Identity, req: OrgCreateRequest
) -> Organization:
    """Create an org; a non-owner creator becomes its administrator."""
    require_approved(identity)
    require_global_role(identity, Role.ORG_ADMIN)

    org = Organization(
        name=req.name,
        description=req.description,
        address=req.address,
        phone=req.phone,
        email=str(req.email) if req.email else None,
        website=req.website,
        logo_url=req.logo_url,
        created_by_id=identity.user_id,
    )
    session.add(org)
    await session.flush()

    if not identity.is_owner:
        await add_member(session, identity.user_id, org.id, Role.ORG_ADMIN)

    log.info("org.created", org_id=str(org.id), creator=str(identity.user_id))
    return org


async def update_org(
    session: AsyncSession,
    identity: Identity,
    org_id: uuid.UUID,
    req: OrgUpdateRequest,
) -> Organization:
    require_approved(identity)
    org = await get_org(session, identity, org_id)
    require_org_role(identity, org.id, Role.ORG_ADMIN)

    for key, value in req.model_dump(exclude_unset=True).items():
        setattr(org, key, str(value) if key == "email" and value is not None else value)

    org.updated_at = datetime.now(timezone.utc)
    session.add(org)
    await session.flush()

    log.info("org.updated", org_id=str(org.id))
    return org


async def delete_org(session: AsyncSession, identity: Identity, org_id: uuid.UUID) -> None:
    """Delete an empty organization. Owner only."""
    if not identity.is_owner:
        raise Forbidden("Only the owner can delete organizations")
    org = await get_org(session, identity, org_id)

    members = (
        await session.execute(
            select(func.count())
            .select_from(OrganizationMembership)
            .where(OrganizationMembership.org_id == org_id)
        )
    ).scalar_one()
    projects = (
        await session.execute(
            select(func.count()).select_from(Project).where(Project.org_id == org_id)
        )
    ).scalar_one()
    if members or projects:
        raise OrganizationNotEmpty(members=members, projects=projects)

    await session.execute(delete(InvitationLink).where(InvitationLink.org_id == org_id))
    await session.delete(org)
    await session.flush()

    log.info("org.deleted", org_id=str(org_id))


# ---------------------------------------------------------------------------
# Membership management
# ---------------------------------------------------------------------------


async def add_org_member(
    session: AsyncSession,
    identity: Identity,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    role: Union[str, Role] = Role.MEMBER,
) -> tuple[OrganizationMembership, list[NotificationIntent]]:
    require_approved(identity)
    await get_org(session, identity, org_id)
    require_org_role(identity, org_id, Role.ORG_ADMIN)
    return await add_member(session, user_id, org_id, role)


async def remove_org_member(
    session: AsyncSession,
    identity: Identity,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
) -> bool:
    require_approved(identity)
    await get_org(session, identity, org_id)
    require_org_role(identity, org_id, Role.ORG_ADMIN)
    return await remove_member(session, user_id, org_id)
