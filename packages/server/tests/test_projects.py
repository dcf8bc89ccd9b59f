"""
Integration tests for the project service and explicit project assignments.
"""

from __future__ import annotations

import uuid

import pytest

from taskpayable.core.errors import Forbidden, NotFound, ValidationError
from taskpayable.services.memberships import resolve_identity
from taskpayable.services.projects import (
    assign_user_to_project,
    create_project,
    delete_project,
    get_project,
    list_projects,
    unassign_user_from_project,
    update_project,
)
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.projects import ProjectCreate, ProjectUpdate


@pytest.fixture
async def org_with_team(make_user, make_org):
    lead = await make_user("lead", Role.LEAD)
    member = await make_user("member")
    org = await make_org(members=[(lead, Role.LEAD), (member, Role.MEMBER)])
    return org, lead, member


class TestCreateProject:
    async def test_lead_creates(self, session, identity_of, org_with_team):
        org, lead, _ = org_with_team
        project = await create_project(
            session, await identity_of(lead), ProjectCreate(org_id=org.id, name="Website")
        )
        assert project.org_id == org.id
        assert project.created_by_id == lead.id

    async def test_member_cannot_create(self, session, identity_of, org_with_team):
        org, _, member = org_with_team
        with pytest.raises(Forbidden):
            await create_project(
                session, await identity_of(member), ProjectCreate(org_id=org.id, name="Nope")
            )

    async def test_unknown_org(self, session, owner, identity_of):
        with pytest.raises(NotFound):
            await create_project(
                session, await identity_of(owner), ProjectCreate(org_id=uuid.uuid4(), name="X")
            )

    async def test_outsider_sees_existing_org_as_missing(self, session, make_user, identity_of, org_with_team):
        org, _, _ = org_with_team
        outsider = await make_user("outsider", Role.LEAD)
        with pytest.raises(NotFound):
            await create_project(
                session, await identity_of(outsider), ProjectCreate(org_id=org.id, name="Peek")
            )


class TestProjectVisibility:
    async def test_member_needs_assignment(self, session, identity_of, org_with_team):
        org, lead, member = org_with_team
        lead_ident = await identity_of(lead)
        project = await create_project(session, lead_ident, ProjectCreate(org_id=org.id, name="P1"))

        assert await list_projects(session, await identity_of(member)) == []
        with pytest.raises(NotFound):
            await get_project(session, await identity_of(member), project.id)

        await assign_user_to_project(session, lead_ident, project.id, member.id)
        # Idempotent
        await assign_user_to_project(session, lead_ident, project.id, member.id)

        member_ident = await resolve_identity(session, member.id)
        assert [p.id for p in await list_projects(session, member_ident)] == [project.id]
        assert (await get_project(session, member_ident, project.id)).id == project.id

        assert await unassign_user_from_project(session, lead_ident, project.id, member.id)
        assert not await unassign_user_from_project(session, lead_ident, project.id, member.id)

    async def test_outsider_cannot_be_assigned(self, session, make_user, identity_of, org_with_team):
        org, lead, _ = org_with_team
        outsider = await make_user("outsider")
        lead_ident = await identity_of(lead)
        project = await create_project(session, lead_ident, ProjectCreate(org_id=org.id, name="P"))
        with pytest.raises(ValidationError):
            await assign_user_to_project(session, lead_ident, project.id, outsider.id)

    async def test_other_org_is_invisible(self, session, make_user, make_org, identity_of, org_with_team):
        org, lead, _ = org_with_team
        project = await create_project(
            session, await identity_of(lead), ProjectCreate(org_id=org.id, name="P")
        )
        rival = await make_user("rival", Role.ORG_ADMIN)
        await make_org("Rival", members=[(rival, Role.ORG_ADMIN)])

        rival_ident = await identity_of(rival)
        assert await list_projects(session, rival_ident) == []
        assert await list_projects(session, rival_ident, org_id=org.id) == []
        with pytest.raises(NotFound):
            await get_project(session, rival_ident, project.id)


class TestUpdateAndDelete:
    async def test_org_id_is_immutable(self, session, make_org, identity_of, org_with_team):
        org, lead, _ = org_with_team
        other = await make_org("Other")
        lead_ident = await identity_of(lead)
        project = await create_project(session, lead_ident, ProjectCreate(org_id=org.id, name="P"))

        renamed = await update_project(session, lead_ident, project.id, ProjectUpdate(name="Renamed"))
        assert renamed.name == "Renamed"

        with pytest.raises(ValidationError):
            await update_project(session, lead_ident, project.id, ProjectUpdate(org_id=other.id))
        assert (await get_project(session, lead_ident, project.id)).org_id == org.id

    async def test_delete_requires_org_admin(self, session, make_user, identity_of, org_with_team):
        org, lead, _ = org_with_team
        lead_ident = await identity_of(lead)
        project = await create_project(session, lead_ident, ProjectCreate(org_id=org.id, name="P"))

        with pytest.raises(Forbidden):
            await delete_project(session, lead_ident, project.id)

        admin = await make_user("admin", Role.ORG_ADMIN)
        from taskpayable.services.memberships import add_member
        await add_member(session, admin.id, org.id, Role.ORG_ADMIN)
        admin_ident = await identity_of(admin)
        await delete_project(session, admin_ident, project.id)
        with pytest.raises(NotFound):
            await get_project(session, admin_ident, project.id)
