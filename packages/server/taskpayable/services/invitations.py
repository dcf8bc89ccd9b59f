"""
Invitation token manager: issuance, validation, consumption, revocation.

A link stays usable until it is deactivated, expires, or its usage count
reaches ``max_uses``. Consumption is a single conditional UPDATE, so two
registrations racing on the last remaining use can never both succeed.
"""

from __future__ import annotations

import re
import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
import structlog
from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskpayable.core.config import get_settings
from taskpayable.core.errors import Conflict, Forbidden, NotFound, ValidationError
from taskpayable.core.identity import Identity, require_approved, require_org_role
from taskpayable.core.logging import token_hint
from taskpayable.core.roles import at_least, parse_org_role
from taskpayable.models.base import as_utc
from taskpayable.models.invitation import InvitationLink
from taskpayable.models.organization import Organization
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.invitations import InvalidReason, InvitationVerdict

log = structlog.get_logger()
settings = get_settings()

_TOKEN_RE = re.compile(r"^[0-9a-f]{%d}$" % (settings.invitation_token_bytes * 2))


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def generate_token() -> str:
    """Fixed-length lowercase hex token from a CSPRNG."""
    return secrets.token_hex(settings.invitation_token_bytes)


def check_token_shape(token: object) -> str:
    if not isinstance(token, str) or not _TOKEN_RE.match(token):
        raise ValidationError("Malformed invitation token")
    return token


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now).astimezone(timezone.utc) if now is not None else datetime.now(timezone.utc)


def evaluate(link: Optional[InvitationLink], now: datetime) -> InvitationVerdict:
    """Derive the state of a link at ``now``. Pure."""
    if link is None:
        return InvitationVerdict.rejected(InvalidReason.NOT_FOUND)
    if not link.active:
        return InvitationVerdict.rejected(InvalidReason.DEACTIVATED)
    if link.expires is not None and as_utc(now) > as_utc(link.expires):
        return InvitationVerdict.rejected(InvalidReason.EXPIRED)
    if link.max_uses is not None and link.used_count >= link.max_uses:
        return InvitationVerdict.rejected(InvalidReason.EXHAUSTED)
    return InvitationVerdict.ok(link.org_id, Role(link.role))


async def get_link(session: AsyncSession, token: str) -> Optional[InvitationLink]:
    result = await session.execute(
        select(InvitationLink)
        .where(InvitationLink.token == token)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_link_or_404(session: AsyncSession, token: str) -> InvitationLink:
    link = await get_link(session, check_token_shape(token))
    if link is None:
        raise NotFound("Invitation link not found")
    return link


async def _unique_token(session: AsyncSession) -> str:
    for _ in range(settings.invitation_token_max_attempts):
        token = generate_token()
        result = await session.execute(
            select(func.count()).select_from(InvitationLink).where(InvitationLink.token == token)
        )
        if result.scalar_one() == 0:
            return token
        log.warning("invitation.token_collision")
    raise Conflict("Could not generate a unique invitation token")


def _can_manage(actor: Identity, link: InvitationLink) -> bool:
    if link.created_by_id == actor.user_id:
        return True
    role = actor.role_in(link.org_id)
    return role is not None and at_least(role, Role.ORG_ADMIN)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def issue(
    session: AsyncSession,
    issuer: Identity,
    org_id: uuid.UUID,
    role: str | Role = Role.MEMBER,
    *,
    expires: Optional[datetime] = None,
    max_uses: Optional[int] = None,
    message: Optional[str] = None,
) -> InvitationLink:
    """Issue a new invitation link granting ``role`` inside ``org_id``."""
    require_approved(issuer)
    role = parse_org_role(role)

    if issuer.role_in(org_id) is None or await session.get(Organization, org_id) is None:
        raise NotFound("Organization not found")
    require_org_role(issuer, org_id, Role.ORG_ADMIN)

    if max_uses is not None and max_uses < 1:
        raise ValidationError("max_uses must be at least 1")
    if expires is not None:
        expires = as_utc(expires).astimezone(timezone.utc)
        if expires <= datetime.now(timezone.utc):
            raise ValidationError("expires must be in the future")

    link = InvitationLink(
        token=await _unique_token(session),
        org_id=org_id,
        role=role.value,
        message=message or settings.invitation_default_message,
        active=True,
        expires=expires,
        max_uses=max_uses,
        used_count=0,
        created_by_id=issuer.user_id,
    )
    session.add(link)
    await session.flush()

    log.info(
        "invitation.issued",
        org_id=str(org_id),
        role=role.value,
        issuer=str(issuer.user_id),
        token=token_hint(link.token),
        max_uses=max_uses,
    )
    return link


async def validate(
    session: AsyncSession, token: str, *, now: Optional[datetime] = None
) -> InvitationVerdict:
    """Read-only check of a token. Never touches the usage count."""
    link = await get_link(session, check_token_shape(token))
    return evaluate(link, _now(now))


async def consume(
    session: AsyncSession, token: str, *, now: Optional[datetime] = None
) -> bool:
    """Use the token once, if it is valid at the instant of the increment."""
    check_token_shape(token)
    now = _now(now)
    result = await session.execute(
        update(InvitationLink)
        .where(
            InvitationLink.token == token,
            InvitationLink.active == sa.true(),
            or_(InvitationLink.expires.is_(None), InvitationLink.expires >= now),
            or_(
                InvitationLink.max_uses.is_(None),
                InvitationLink.used_count < InvitationLink.max_uses,
            ),
        )
        .values(used_count=InvitationLink.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    consumed = result.rowcount == 1
    log.info("invitation.consumed" if consumed else "invitation.consume_rejected", token=token_hint(token))
    return consumed


async def deactivate(session: AsyncSession, token: str, actor: Identity) -> bool:
    """Deactivate a link. Returns False when it was already inactive."""
    require_approved(actor)
    link = await _get_link_or_404(session, token)
    if not _can_manage(actor, link):
        raise Forbidden("You do not have permission to deactivate this invitation link")

    result = await session.execute(
        update(InvitationLink)
        .where(InvitationLink.id == link.id, InvitationLink.active == sa.true())
        .values(active=False)
        .execution_options(synchronize_session=False)
    )
    changed = result.rowcount == 1
    if changed:
        log.info("invitation.deactivated", token=token_hint(token), actor=str(actor.user_id))
    return changed


async def delete_invitation(session: AsyncSession, token: str, actor: Identity) -> None:
    """Delete a link for good; the token then validates as not-found."""
    require_approved(actor)
    link = await _get_link_or_404(session, token)
    if not _can_manage(actor, link):
        raise Forbidden("You do not have permission to delete this invitation link")

    await session.execute(delete(InvitationLink).where(InvitationLink.id == link.id))
    log.info("invitation.deleted", token=token_hint(token), actor=str(actor.user_id))


async def list_org_invitations(
    session: AsyncSession, actor: Identity, org_id: uuid.UUID
) -> list[InvitationLink]:
    """Invitation links of one organization (leads and admins)."""
    require_org_role(actor, org_id, Role.LEAD)
    result = await session.execute(
        select(InvitationLink)
        .where(InvitationLink.org_id == org_id)
        .order_by(InvitationLink.created_at.desc())
    )
    return list(result.scalars().all())
