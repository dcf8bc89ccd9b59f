"""
Membership registry: who belongs to which organization, with what role.

The (user, organization) pair is unique. Adding an existing member is an
idempotent role update performed as one conditional statement, so two
requests racing on the same pair never produce a duplicate row.
"""

from __future__ import annotations

import uuid
from typing import NamedTuple, Optional, Union

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskpayable.core.errors import NotFound, Unauthorized
from taskpayable.core.identity import Identity
from taskpayable.core.roles import parse_org_role
from taskpayable.models.assignments import ProjectAssignment
from taskpayable.models.base import _utcnow
from taskpayable.models.membership import OrganizationMembership
from taskpayable.models.organization import Organization
from taskpayable.models.user import User
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.notifications import NotificationIntent, NotificationKind

log = structlog.get_logger()


class OrgRole(NamedTuple):
    org_id: uuid.UUID
    role: Role


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def _get_membership(
    session: AsyncSession, user_id: uuid.UUID, org_id: uuid.UUID
) -> Optional[OrganizationMembership]:
    result = await session.execute(
        select(OrganizationMembership)
        .where(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.org_id == org_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_role_in_org(
    session: AsyncSession, user_id: uuid.UUID, org_id: uuid.UUID
) -> Optional[Role]:
    """Role of a user inside one organization; the owner resolves everywhere."""
    user = await session.get(User, user_id)
    if user is None:
        return None
    if user.owner_flag:
        return Role.ORG_ADMIN
    membership = await _get_membership(session, user_id, org_id)
    return Role(membership.role) if membership else None


async def list_organizations_for(
    session: AsyncSession, user_id: uuid.UUID
) -> set[OrgRole]:
    result = await session.execute(
        select(OrganizationMembership.org_id, OrganizationMembership.role).where(
            OrganizationMembership.user_id == user_id
        )
    )
    return {OrgRole(org_id, Role(role)) for org_id, role in result.all()}


async def list_org_members(
    session: AsyncSession, org_id: uuid.UUID
) -> list[OrganizationMembership]:
    result = await session.execute(
        select(OrganizationMembership).where(OrganizationMembership.org_id == org_id)
    )
    return list(result.scalars().all())


async def list_org_admin_ids(
    session: AsyncSession, org_id: uuid.UUID
) -> list[uuid.UUID]:
    result = await session.execute(
        select(OrganizationMembership.user_id).where(
            OrganizationMembership.org_id == org_id,
            OrganizationMembership.role == Role.ORG_ADMIN.value,
        )
    )
    return [row[0] for row in result.all()]


async def resolve_identity(session: AsyncSession, user_id: uuid.UUID) -> Identity:
    """Build the explicit identity the visibility filter works on."""
    user = await session.get(User, user_id)
    if user is None:
        raise Unauthorized("User not found")

    memberships = await list_organizations_for(session, user_id)
    result = await session.execute(
        select(ProjectAssignment.project_id).where(ProjectAssignment.user_id == user_id)
    )
    assigned = frozenset(row[0] for row in result.all())

    return Identity(
        user_id=user.id,
        global_role=Role.OWNER if user.owner_flag else user.global_role,
        is_approved=user.is_approved,
        memberships={m.org_id: m.role for m in memberships},
        assigned_project_ids=assigned,
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def _upsert_statement(dialect: str, values: dict):
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    stmt = insert(OrganizationMembership).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["user_id", "org_id"],
        set_={"role": stmt.excluded.role},
    )


async def _write_membership(session: AsyncSession, values: dict) -> None:
    stmt = _upsert_statement(session.get_bind().dialect.name, values)
    if stmt is not None:
        await session.execute(stmt)
        return

    # No native upsert: a duplicate insert is recovered as an update
    try:
        async with session.begin_nested():
            session.add(OrganizationMembership(**values))
    except IntegrityError:
        log.info("membership.conflict_recovered", user_id=str(values["user_id"]), org_id=str(values["org_id"]))
        existing = await _get_membership(session, values["user_id"], values["org_id"])
        existing.role = values["role"]
        session.add(existing)
    await session.flush()


async def add_member(
    session: AsyncSession,
    user_id: uuid.UUID,
    org_id: uuid.UUID,
    role: Union[str, Role],
) -> tuple[OrganizationMembership, list[NotificationIntent]]:
    """Add a user to an organization, or update their role if already a member.

    Returns the membership and the notification intents for the
    organization's existing admins (only when the user newly joined).
    """
    role = parse_org_role(role)

    if await session.get(Organization, org_id) is None:
        raise NotFound("Organization not found")
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    existed = await _get_membership(session, user_id, org_id) is not None
    admin_ids = [] if existed else await list_org_admin_ids(session, org_id)

    await _write_membership(
        session,
        {"user_id": user_id, "org_id": org_id, "role": role.value, "joined_at": _utcnow()},
    )
    membership = await _get_membership(session, user_id, org_id)

    intents = [
        NotificationIntent(
            target_user_id=admin_id,
            kind=NotificationKind.MEMBER_JOINED,
            message=f"{user.full_name} joined your organization as {role.value}.",
        )
        for admin_id in admin_ids
        if admin_id != user_id
    ]

    log.info(
        "membership.updated" if existed else "membership.added",
        user_id=str(user_id),
        org_id=str(org_id),
        role=role.value,
    )
    return membership, intents


async def remove_member(
    session: AsyncSession, user_id: uuid.UUID, org_id: uuid.UUID
) -> bool:
    """Remove a membership. Returns False when there was nothing to remove."""
    result = await session.execute(
        delete(OrganizationMembership).where(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.org_id == org_id,
        )
    )
    removed = result.rowcount > 0
    if removed:
        log.info("membership.removed", user_id=str(user_id), org_id=str(org_id))
    return removed
