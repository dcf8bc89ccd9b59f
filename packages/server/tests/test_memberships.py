"""
Integration tests for the membership registry against SQLite.
"""

from __future__ import annotations

import asyncio
import uuid

import pytest
from sqlalchemy import func
from sqlmodel import select

from taskpayable.core.errors import NotFound, Unauthorized, ValidationError
from taskpayable.models.membership import OrganizationMembership
from taskpayable.services.memberships import (
    add_member,
    get_role_in_org,
    list_organizations_for,
    remove_member,
    resolve_identity,
)
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.notifications import NotificationKind


async def _count(session, user_id, org_id) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMembership)
        .where(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.org_id == org_id,
        )
    )
    return result.scalar_one()


class TestAddMember:
    async def test_add_then_update_is_idempotent(self, session, make_user, make_org):
        user = await make_user("alice")
        org = await make_org()

        await add_member(session, user.id, org.id, Role.MEMBER)
        membership, _ = await add_member(session, user.id, org.id, "lead")

        assert membership.role == Role.LEAD.value
        assert await _count(session, user.id, org.id) == 1
        assert await get_role_in_org(session, user.id, org.id) == Role.LEAD

    async def test_admins_notified_only_on_first_join(self, session, make_user, make_org):
        admin = await make_user("admin", Role.ORG_ADMIN)
        user = await make_user("bob")
        org = await make_org(members=[(admin, Role.ORG_ADMIN)])

        _, intents = await add_member(session, user.id, org.id, Role.MEMBER)
        assert [(i.target_user_id, i.kind) for i in intents] == [
            (admin.id, NotificationKind.MEMBER_JOINED)
        ]

        _, again = await add_member(session, user.id, org.id, Role.LEAD)
        assert again == []

    async def test_owner_role_rejected(self, session, make_user, make_org):
        user = await make_user("carol")
        org = await make_org()
        with pytest.raises(ValidationError):
            await add_member(session, user.id, org.id, "owner")

    async def test_unknown_org(self, session, make_user):
        user = await make_user("dave")
        with pytest.raises(NotFound):
            await add_member(session, user.id, uuid.uuid4(), Role.MEMBER)

    async def test_concurrent_adds_leave_one_row(self, session, session_factory, make_user, make_org):
        user = await make_user("erin")
        org = await make_org()
        await session.commit()

        async def attempt(role: Role) -> str:
            async with session_factory() as s:
                membership, _ = await add_member(s, user.id, org.id, role)
                await s.commit()
                return membership.role

        results = await asyncio.gather(attempt(Role.MEMBER), attempt(Role.LEAD))
        assert sorted(results) == sorted([Role.MEMBER.value, Role.LEAD.value])

        async with session_factory() as s:
            assert await _count(s, user.id, org.id) == 1
            assert await get_role_in_org(s, user.id, org.id) in (Role.MEMBER, Role.LEAD)


class TestLookups:
    async def test_owner_resolves_everywhere(self, session, owner, make_org):
        org = await make_org()
        assert await get_role_in_org(session, owner.id, org.id) == Role.ORG_ADMIN
        assert await get_role_in_org(session, owner.id, uuid.uuid4()) == Role.ORG_ADMIN

    async def test_non_member_has_no_role(self, session, make_user, make_org):
        user = await make_user("erin")
        org = await make_org()
        assert await get_role_in_org(session, user.id, org.id) is None

    async def test_list_organizations_for(self, session, make_user, make_org):
        user = await make_user("frank")
        org_a = await make_org("A", members=[(user, Role.MEMBER)])
        org_b = await make_org("B", members=[(user, Role.LEAD)])

        pairs = await list_organizations_for(session, user.id)
        assert {(p.org_id, p.role) for p in pairs} == {
            (org_a.id, Role.MEMBER),
            (org_b.id, Role.LEAD),
        }

    async def test_resolve_identity(self, session, owner, make_user, make_org):
        user = await make_user("gina", Role.LEAD)
        org = await make_org(members=[(user, Role.LEAD)])

        ident = await resolve_identity(session, user.id)
        assert ident.global_role == Role.LEAD
        assert ident.role_in(org.id) == Role.LEAD

        owner_ident = await resolve_identity(session, owner.id)
        assert owner_ident.is_owner

    async def test_resolve_unknown_user(self, session):
        with pytest.raises(Unauthorized):
            await resolve_identity(session, uuid.uuid4())


class TestRemoveMember:
    async def test_remove(self, session, make_user, make_org):
        user = await make_user("hank")
        org = await make_org(members=[(user, Role.MEMBER)])

        assert await remove_member(session, user.id, org.id) is True
        assert await get_role_in_org(session, user.id, org.id) is None

    async def test_remove_missing_returns_false(self, session, make_user, make_org):
        user = await make_user("ivy")
        org = await make_org()
        assert await remove_member(session, user.id, org.id) is False
