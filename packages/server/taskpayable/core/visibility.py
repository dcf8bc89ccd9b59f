"""
Visibility filter for projects and tasks.

Pure functions over an ``Identity`` and records the caller already fetched.
Precedence, first match wins:

1. owner: everything (narrowed to a requested org, never expanded)
2. no membership in the record's organization: hidden
3. org-admin or lead in that organization: visible and mutable
4. member: tasks they are assigned to, projects they are assigned to

A requested ``org_id`` always intersects with the above. An organization
the caller cannot see yields an empty result, never an error. A record
whose organization cannot be resolved is hidden.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Mapping, Optional, Sequence

from taskpayable_shared.schemas.common import Role

from taskpayable.core.identity import Identity
from taskpayable.core.roles import at_least
from taskpayable.models.project import Project
from taskpayable.models.task import Task


def _scoped_role(
    identity: Identity,
    record_org_id: Optional[uuid.UUID],
    org_id: Optional[uuid.UUID],
) -> Optional[Role]:
    if record_org_id is None:
        return None
    if org_id is not None and record_org_id != org_id:
        return None
    return identity.role_in(record_org_id)


def project_org_index(projects: Iterable[Project]) -> dict[uuid.UUID, uuid.UUID]:
    """Map project id -> organization id, used to resolve a task's organization."""
    return {p.id: p.org_id for p in projects}


# ---------------------------------------------------------------------------
# Single-record checks
# ---------------------------------------------------------------------------


def can_access_project(
    identity: Identity, project: Project, org_id: Optional[uuid.UUID] = None
) -> bool:
    role = _scoped_role(identity, project.org_id, org_id)
    if role is None:
        return False
    if identity.is_owner or at_least(role, Role.LEAD):
        return True
    return project.id in identity.assigned_project_ids


def can_access_task(
    identity: Identity,
    task: Task,
    project_orgs: Mapping[uuid.UUID, uuid.UUID],
    org_id: Optional[uuid.UUID] = None,
) -> bool:
    role = _scoped_role(identity, project_orgs.get(task.project_id), org_id)
    if role is None:
        return False
    if identity.is_owner or at_least(role, Role.LEAD):
        return True
    return task.assigned_to_id is not None and task.assigned_to_id == identity.user_id


# ---------------------------------------------------------------------------
# Collection filters
# ---------------------------------------------------------------------------


def filter_projects(
    identity: Identity,
    projects: Iterable[Project],
    org_id: Optional[uuid.UUID] = None,
) -> list[Project]:
    return [p for p in projects if can_access_project(identity, p, org_id)]


def filter_tasks(
    identity: Identity,
    tasks: Iterable[Task],
    projects: Iterable[Project] | Mapping[uuid.UUID, uuid.UUID],
    org_id: Optional[uuid.UUID] = None,
) -> list[Task]:
    """Narrow tasks; ``projects`` resolves each task's organization."""
    index = projects if isinstance(projects, Mapping) else project_org_index(projects)
    return [t for t in tasks if can_access_task(identity, t, index, org_id)]


def filter_project_tasks(
    identity: Identity, project: Project, tasks: Sequence[Task]
) -> list[Task]:
    """Task list of one project.

    Anyone who can see the project (including members explicitly assigned
    to it) sees all of its tasks; everyone else sees none.
    """
    if not can_access_project(identity, project):
        return []
    return [t for t in tasks if t.project_id == project.id]


def visible_org_ids(
    identity: Identity,
    candidate_org_ids: Iterable[uuid.UUID],
    org_id: Optional[uuid.UUID] = None,
) -> list[uuid.UUID]:
    """Organizations from ``candidate_org_ids`` the caller may see."""
    return [
        oid for oid in candidate_org_ids
        if _scoped_role(identity, oid, org_id) is not None
    ]
