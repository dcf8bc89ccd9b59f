"""
Project service layer: project CRUD and explicit project assignments.

Every read goes through the visibility filter; a project the caller cannot
see is reported as missing.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskpayable.core.errors import NotFound, ValidationError
from taskpayable.core.identity import Identity, require_approved, require_org_role
from taskpayable.core.visibility import can_access_project, filter_projects
from taskpayable.models.assignments import ProjectAssignment
from taskpayable.models.organization import Organization
from taskpayable.models.project import Project
from taskpayable.models.task import Task
from taskpayable.services.memberships import get_role_in_org
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.projects import ProjectCreate, ProjectUpdate

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project(
    session: AsyncSession, identity: Identity, project_id: uuid.UUID
) -> Project:
    project = await session.get(Project, project_id)
    if not project or not can_access_project(identity, project):
        raise NotFound("Project not found")
    return project


async def _candidate_projects(
    session: AsyncSession, identity: Identity, org_id: Optional[uuid.UUID]
) -> list[Project]:
    stmt = select(Project).order_by(Project.created_at)
    if org_id is not None:
        stmt = stmt.where(Project.org_id == org_id)
    elif not identity.is_owner:
        if not identity.memberships:
            return []
        stmt = stmt.where(Project.org_id.in_(list(identity.memberships)))
    result = await session.execute(stmt)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def list_projects(
    session: AsyncSession, identity: Identity, org_id: Optional[uuid.UUID] = None
) -> list[Project]:
    projects = await _candidate_projects(session, identity, org_id)
    return filter_projects(identity, projects, org_id)


async def create_project(
    session: AsyncSession, identity: Identity, project_in: ProjectCreate
) -> Project:
    require_approved(identity)
    org_id = project_in.org_id
    if identity.role_in(org_id) is None or await session.get(Organization, org_id) is None:
        raise NotFound("Organization not found")
    require_org_role(identity, org_id, Role.LEAD)

    project = Project(
        org_id=org_id,
        name=project_in.name,
        description=project_in.description,
        created_by_id=identity.user_id,
    )
    session.add(project)
    await session.flush()

    log.info("project.created", project_id=str(project.id), org_id=str(project.org_id))
    return project


async def update_project(
    session: AsyncSession,
    identity: Identity,
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
) -> Project:
    require_approved(identity)
    project = await get_project(session, identity, project_id)
    require_org_role(identity, project.org_id, Role.LEAD)

    if project_in.org_id is not None and project_in.org_id != project.org_id:
        raise ValidationError("A project cannot be moved to another organization")

    data = project_in.model_dump(exclude_unset=True, exclude={"org_id"})
    for key, value in data.items():
        setattr(project, key, value)

    project.updated_at = datetime.now(timezone.utc)
    session.add(project)
    await session.flush()
    log.info("project.updated", project_id=str(project.id))
    return project


async def delete_project(
    session: AsyncSession, identity: Identity, project_id: uuid.UUID
) -> None:
    """Delete a project with its tasks and assignments (org-admin)."""
    require_approved(identity)
    project = await get_project(session, identity, project_id)
    require_org_role(identity, project.org_id, Role.ORG_ADMIN)

    await session.execute(delete(Task).where(Task.project_id == project_id))
    await session.execute(delete(ProjectAssignment).where(ProjectAssignment.project_id == project_id))
    await session.delete(project)
    await session.flush()
    log.info("project.deleted", project_id=str(project_id), org_id=str(project.org_id))


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


async def assign_user_to_project(
    session: AsyncSession,
    identity: Identity,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
) -> ProjectAssignment:
    """Give a user explicit access to a project. Idempotent."""
    require_approved(identity)
    project = await get_project(session, identity, project_id)
    require_org_role(identity, project.org_id, Role.LEAD)

    if await get_role_in_org(session, user_id, project.org_id) is None:
        raise ValidationError("User is not a member of the project's organization")

    existing = await session.get(ProjectAssignment, (project_id, user_id))
    if existing:
        return existing

    assignment = ProjectAssignment(project_id=project_id, user_id=user_id)
    session.add(assignment)
    await session.flush()
    log.info("project.user_assigned", project_id=str(project_id), user_id=str(user_id))
    return assignment


async def unassign_user_from_project(
    session: AsyncSession,
    identity: Identity,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
) -> bool:
    require_approved(identity)
    project = await get_project(session, identity, project_id)
    require_org_role(identity, project.org_id, Role.LEAD)

    result = await session.execute(
        delete(ProjectAssignment).where(
            ProjectAssignment.project_id == project_id,
            ProjectAssignment.user_id == user_id,
        )
    )
    removed = result.rowcount > 0
    if removed:
        log.info("project.user_unassigned", project_id=str(project_id), user_id=str(user_id))
    return removed
