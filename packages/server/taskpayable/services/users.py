"""
User account service: registration, approval, global roles, owner account.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
import structlog
from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskpayable.core.approval import decide_registration
from taskpayable.core.errors import Conflict, Forbidden, NotFound, ValidationError
from taskpayable.core.identity import Identity, require_approved, require_global_role
from taskpayable.core.roles import at_least, compare, parse_role
from taskpayable.models.assignments import ProjectAssignment
from taskpayable.models.invitation import InvitationLink
from taskpayable.models.membership import OrganizationMembership
from taskpayable.models.project import Project
from taskpayable.models.task import Task
from taskpayable.models.user import User
from taskpayable.services import invitations
from taskpayable.services.memberships import add_member, list_organizations_for
from taskpayable_shared.schemas.common import Role, RoleComparison
from taskpayable_shared.schemas.invitations import InvalidReason, InvitationVerdict
from taskpayable_shared.schemas.notifications import (
    NotificationIntent,
    NotificationKind,
    ProvisioningIntent,
)
from taskpayable_shared.schemas.users import RegistrationRequest

log = structlog.get_logger()


@dataclass
class RegistrationOutcome:
    user: User
    membership: Optional[OrganizationMembership] = None
    notifications: list[NotificationIntent] = field(default_factory=list)
    provisioning: Optional[ProvisioningIntent] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def _reviewer_ids(session: AsyncSession) -> list[uuid.UUID]:
    """Accounts that can approve a pending registration."""
    result = await session.execute(
        select(User.id).where(
            or_(User.owner_flag == sa.true(), User.role == Role.ORG_ADMIN.value),
            User.is_approved == sa.true(),
        )
    )
    return [row[0] for row in result.all()]


async def _ensure_unique(session: AsyncSession, username: str, email: str) -> None:
    result = await session.execute(
        select(User).where(or_(User.email == email, User.username == username))
    )
    for existing in result.scalars().all():
        if existing.email == email:
            raise Conflict("Email already in use")
        raise Conflict("Username already in use")


async def _redeem(
    session: AsyncSession, token: str, now: Optional[datetime]
) -> InvitationVerdict:
    verdict = await invitations.validate(session, token, now=now)
    if not verdict.valid:
        return verdict
    if await invitations.consume(session, token, now=now):
        return verdict
    # Lost the race for the last use, or the link changed underneath us
    after = await invitations.validate(session, token, now=now)
    return after if not after.valid else InvitationVerdict.rejected(InvalidReason.EXHAUSTED)


def _administers_any(actor: Identity, target_orgs: set[uuid.UUID]) -> bool:
    """Owner, or org-admin of at least one organization the target belongs to."""
    return actor.is_owner or any(actor.role_in(org_id) == Role.ORG_ADMIN for org_id in target_orgs)


def _can_supervise(actor: Identity, target_orgs: set[uuid.UUID]) -> bool:
    return at_least(actor.global_role, Role.ORG_ADMIN) or _administers_any(actor, target_orgs)


async def _require_administers(session: AsyncSession, actor: Identity, user: User) -> None:
    target_orgs = {m.org_id for m in await list_organizations_for(session, user.id)}
    if not _administers_any(actor, target_orgs):
        raise Forbidden("You do not administer an organization this user belongs to")


# ---------------------------------------------------------------------------
# Registration & approval
# ---------------------------------------------------------------------------


async def register(
    session: AsyncSession,
    req: RegistrationRequest,
    *,
    now: Optional[datetime] = None,
) -> RegistrationOutcome:
    """Create an account, redeeming an invitation token when one is given.

    The token is consumed before the user row is written, inside the same
    transaction, so a failed registration never keeps a use.
    """
    requested = parse_role(req.requested_role)
    if requested == Role.OWNER:
        raise ValidationError("The owner role cannot be requested at registration")
    await _ensure_unique(session, req.username, str(req.email))

    verdict = None
    if req.invitation_token is not None:
        verdict = await _redeem(session, req.invitation_token, now)
    decision = decide_registration(requested, verdict)

    user = User(
        username=req.username,
        email=str(req.email),
        full_name=req.display_name,
        role=decision.role.value,
        is_approved=decision.is_approved,
    )
    session.add(user)
    await session.flush()

    outcome = RegistrationOutcome(user=user)
    if decision.org_id is not None:
        outcome.membership, outcome.notifications = await add_member(
            session, user.id, decision.org_id, decision.role
        )

    if not decision.is_approved:
        outcome.notifications.extend(
            NotificationIntent(
                target_user_id=reviewer_id,
                kind=NotificationKind.NEW_USER,
                message=(
                    f"New user {user.username} ({user.email}) has registered as "
                    f"{decision.role.value} and requires approval."
                ),
            )
            for reviewer_id in await _reviewer_ids(session)
        )

    if decision.needs_provisioning:
        outcome.provisioning = ProvisioningIntent(
            user_id=user.id, display_name=user.full_name, email=user.email
        )

    log.info(
        "user.registered",
        user_id=str(user.id),
        role=decision.role.value,
        approved=decision.is_approved,
        org_id=str(decision.org_id) if decision.org_id else None,
        invited=verdict is not None,
    )
    return outcome


async def approve_user(
    session: AsyncSession, actor: Identity, user_id: uuid.UUID
) -> tuple[User, list[NotificationIntent]]:
    """Flip ``is_approved`` on. Idempotent; notifies the user the first time."""
    require_approved(actor)
    user = await get_user(session, user_id)

    target_orgs = {m.org_id for m in await list_organizations_for(session, user_id)}
    if not _can_supervise(actor, target_orgs):
        raise Forbidden("Only organization administrators can approve accounts")

    if user.is_approved:
        return user, []

    user.is_approved = True
    session.add(user)
    await session.flush()

    log.info("account.approved", user_id=str(user_id), actor=str(actor.user_id))
    return user, [
        NotificationIntent(
            target_user_id=user.id,
            kind=NotificationKind.ACCOUNT_APPROVED,
            message="Your account has been approved.",
        )
    ]


async def set_global_role(
    session: AsyncSession, actor: Identity, user_id: uuid.UUID, role: str | Role
) -> User:
    """Change a user's global role. The owner account can never be demoted."""
    require_approved(actor)
    role = parse_role(role)
    if role == Role.OWNER:
        raise ValidationError("The owner role is only assigned when the owner account is provisioned")

    require_global_role(actor, Role.ORG_ADMIN)
    if compare(role, actor.global_role) == RoleComparison.HIGHER:
        raise Forbidden("Cannot grant a role above your own")

    user = await get_user(session, user_id)
    if user.owner_flag:
        raise Forbidden("The owner account cannot be demoted")
    await _require_administers(session, actor, user)

    user.role = role.value
    session.add(user)
    await session.flush()
    log.info("user.role_changed", user_id=str(user_id), role=role.value, actor=str(actor.user_id))
    return user


# ---------------------------------------------------------------------------
# Owner account
# ---------------------------------------------------------------------------


async def get_owner(session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.owner_flag == sa.true()))
    return result.scalar_one_or_none()


async def provision_owner(
    session: AsyncSession, username: str, email: str, full_name: str
) -> User:
    """Create the single owner account. Runs once per deployment."""
    if await get_owner(session) is not None:
        raise Conflict("An owner account already exists")

    owner = User(
        username=username,
        email=email,
        full_name=full_name,
        role=Role.OWNER.value,
        is_approved=True,
        owner_flag=True,
    )
    session.add(owner)
    try:
        await session.flush()
    except IntegrityError:
        raise Conflict("An owner account already exists")

    log.info("owner.provisioned", user_id=str(owner.id))
    return owner


async def delete_user(session: AsyncSession, actor: Identity, user_id: uuid.UUID) -> None:
    """Hard-delete an account. The owner account is never deleted."""
    require_approved(actor)
    require_global_role(actor, Role.ORG_ADMIN)
    user = await get_user(session, user_id)
    if user.owner_flag:
        raise Forbidden("Cannot delete the owner account")
    await _require_administers(session, actor, user)

    for model in (Project, Task, InvitationLink):
        result = await session.execute(
            select(func.count()).select_from(model).where(model.created_by_id == user_id)
        )
        if result.scalar_one():
            raise Conflict("User still owns projects, tasks or invitation links")

    await session.execute(
        update(Task)
        .where(Task.assigned_to_id == user_id)
        .values(assigned_to_id=None)
        .execution_options(synchronize_session=False)
    )
    await session.execute(delete(ProjectAssignment).where(ProjectAssignment.user_id == user_id))
    await session.execute(
        delete(OrganizationMembership).where(OrganizationMembership.user_id == user_id)
    )
    await session.delete(user)
    await session.flush()
    log.info("user.deleted", user_id=str(user_id), actor=str(actor.user_id))
