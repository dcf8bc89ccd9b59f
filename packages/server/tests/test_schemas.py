"""
Shared schema tests: request validation and reading ORM rows.
"""

from __future__ import annotations

import uuid

import pytest

from taskpayable.services import invitations
from taskpayable.services.memberships import list_org_members
from taskpayable.services.projects import create_project
from taskpayable.services.tasks import create_task
from taskpayable_shared.schemas.common import Role, TaskStatus
from taskpayable_shared.schemas.invitations import InvitationCreateRequest, InvitationRead
from taskpayable_shared.schemas.organizations import (
    MemberAddRequest,
    MembershipRead,
    OrgResponse,
)
from taskpayable_shared.schemas.projects import ProjectCreate, ProjectRead
from taskpayable_shared.schemas.tasks import TaskCreate, TaskRead
from taskpayable_shared.schemas.users import RegistrationRequest, RoleUpdateRequest, UserRead


class TestRequestValidation:
    def test_invitation_max_uses_must_be_positive(self):
        with pytest.raises(Exception):
            InvitationCreateRequest(org_id=uuid.uuid4(), max_uses=0)

    def test_invitation_defaults_to_member(self):
        req = InvitationCreateRequest(org_id=uuid.uuid4())
        assert req.role == Role.MEMBER.value
        assert req.max_uses is None

    def test_member_add_defaults(self):
        assert MemberAddRequest(user_id=uuid.uuid4()).role == "member"

    def test_role_strings_are_validated_by_the_engine(self):
        # Kept as plain strings so unknown roles surface as ValidationError
        assert RoleUpdateRequest(role="superuser").role == "superuser"

    def test_registration_display_name(self):
        req = RegistrationRequest(username="ana", email="ana@example.com")
        assert req.display_name == "ana"
        req = RegistrationRequest(username="ana", email="ana@example.com", full_name="Ana Reyes")
        assert req.display_name == "Ana Reyes"

    def test_registration_rejects_bad_email(self):
        with pytest.raises(Exception):
            RegistrationRequest(username="ana", email="ana")


class TestReadModels:
    async def test_rows_render(self, session, owner, make_user, make_org, identity_of):
        lead = await make_user("lead", Role.LEAD)
        org = await make_org(members=[(lead, Role.LEAD)])
        owner_ident = await identity_of(owner)

        link = await invitations.issue(session, owner_ident, org.id, Role.LEAD, max_uses=5)
        project = await create_project(session, owner_ident, ProjectCreate(org_id=org.id, name="P"))
        task = await create_task(
            session, owner_ident, TaskCreate(project_id=project.id, title="Invoice run", hourly_rate=500)
        )

        assert UserRead.model_validate(owner).owner_flag
        assert UserRead.model_validate(lead).role == Role.LEAD
        assert OrgResponse.model_validate(org).name == "Acme"

        read = InvitationRead.model_validate(link)
        assert read.role == Role.LEAD
        assert read.max_uses == 5
        assert read.used_count == 0

        [membership] = await list_org_members(session, org.id)
        assert MembershipRead.model_validate(membership).role == Role.LEAD

        assert ProjectRead.model_validate(project).org_id == org.id
        task_read = TaskRead.model_validate(task)
        assert task_read.status == TaskStatus.TODO
        assert task_read.hourly_rate == 500
