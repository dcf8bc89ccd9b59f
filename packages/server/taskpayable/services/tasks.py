"""
Task service layer: business logic for tasks.

Handles:
- Task CRUD scoped by the caller's role in the project's organization
- Organization-wide and per-project task listings
- Assignee validation against organization membership
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskpayable.core.errors import Forbidden, NotFound, ValidationError
from taskpayable.core.identity import Identity, require_approved, require_org_role
from taskpayable.core.roles import at_least
from taskpayable.core.visibility import (
    can_access_project,
    can_access_task,
    filter_project_tasks,
    filter_tasks,
    project_org_index,
)
from taskpayable.models.project import Project
from taskpayable.models.task import Task
from taskpayable.services.memberships import get_role_in_org
from taskpayable.services.projects import get_project
from taskpayable_shared.schemas.common import Role
from taskpayable_shared.schemas.tasks import TaskCreate, TaskUpdate

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task(session: AsyncSession, identity: Identity, task_id: uuid.UUID) -> Task:
    """A task is readable through itself or through its project."""
    task = await session.get(Task, task_id)
    project = await session.get(Project, task.project_id) if task else None
    if not task or not project:
        raise NotFound("Task not found")
    if not (
        can_access_task(identity, task, {project.id: project.org_id})
        or can_access_project(identity, project)
    ):
        raise NotFound("Task not found")
    return task


async def _check_assignee(
    session: AsyncSession, assignee_id: Optional[uuid.UUID], org_id: uuid.UUID
) -> None:
    if assignee_id is None:
        return
    if await get_role_in_org(session, assignee_id, org_id) is None:
        raise ValidationError("Assignee is not a member of the project's organization")


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def list_tasks(
    session: AsyncSession, identity: Identity, org_id: Optional[uuid.UUID] = None
) -> list[Task]:
    """Every task the caller can see, optionally narrowed to one organization."""
    stmt = select(Project)
    if org_id is not None:
        stmt = stmt.where(Project.org_id == org_id)
    elif not identity.is_owner:
        if not identity.memberships:
            return []
        stmt = stmt.where(Project.org_id.in_(list(identity.memberships)))
    projects = (await session.execute(stmt)).scalars().all()
    if not projects:
        return []

    index = project_org_index(projects)
    result = await session.execute(
        select(Task).where(Task.project_id.in_(list(index))).order_by(Task.created_at)
    )
    return filter_tasks(identity, result.scalars().all(), index, org_id)


async def list_project_tasks(
    session: AsyncSession, identity: Identity, project_id: uuid.UUID
) -> list[Task]:
    """Tasks of one project; empty when the caller cannot see the project."""
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")

    result = await session.execute(
        select(Task).where(Task.project_id == project_id).order_by(Task.created_at)
    )
    return filter_project_tasks(identity, project, result.scalars().all())


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession, identity: Identity, task_in: TaskCreate
) -> Task:
    require_approved(identity)
    project = await get_project(session, identity, task_in.project_id)
    role = identity.role_in(project.org_id)

    assignee_id = task_in.assigned_to_id
    if not at_least(role, Role.LEAD):
        # Members create tasks on assigned projects, for themselves only
        if assignee_id is not None and assignee_id != identity.user_id:
            raise Forbidden("Members can only create tasks assigned to themselves")
        assignee_id = identity.user_id
    await _check_assignee(session, assignee_id, project.org_id)

    task = Task(
        project_id=project.id,
        title=task_in.title,
        description=task_in.description,
        tags=list(task_in.tags),
        due_date=task_in.due_date,
        pricing_type=task_in.pricing_type.value,
        currency=task_in.currency.value,
        hourly_rate=task_in.hourly_rate,
        fixed_price=task_in.fixed_price,
        assigned_to_id=assignee_id,
        created_by_id=identity.user_id,
    )
    session.add(task)
    await session.flush()

    log.info(
        "task.created",
        task_id=str(task.id),
        project_id=str(project.id),
        assignee=str(assignee_id) if assignee_id else None,
    )
    return task


async def update_task(
    session: AsyncSession,
    identity: Identity,
    task_id: uuid.UUID,
    task_in: TaskUpdate,
) -> Task:
    """Callers may change exactly the tasks the visibility filter grants them."""
    require_approved(identity)
    task = await get_task(session, identity, task_id)
    project = await session.get(Project, task.project_id)
    if not can_access_task(identity, task, {project.id: project.org_id}):
        raise Forbidden("You can only update tasks assigned to you")

    data = task_in.model_dump(exclude_unset=True)
    if "assigned_to_id" in data:
        require_org_role(identity, project.org_id, Role.LEAD)
        await _check_assignee(session, data["assigned_to_id"], project.org_id)
    if "status" in data and data["status"] is not None:
        data["status"] = data["status"].value

    for key, value in data.items():
        if value is None and key in ("title", "status", "tags"):
            continue
        setattr(task, key, value)

    task.updated_at = datetime.now(timezone.utc)
    session.add(task)
    await session.flush()
    log.info("task.updated", task_id=str(task.id), fields=sorted(data))
    return task


async def delete_task(session: AsyncSession, identity: Identity, task_id: uuid.UUID) -> None:
    require_approved(identity)
    task = await get_task(session, identity, task_id)
    project = await session.get(Project, task.project_id)
    require_org_role(identity, project.org_id, Role.ORG_ADMIN)

    await session.delete(task)
    await session.flush()
    log.info("task.deleted", task_id=str(task_id))
