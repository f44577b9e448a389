"""
Task service layer: creating, listing, reassigning, status changes and
deletion.

New tasks may go to any active member of the organization; reassignment is
limited to the project's members and its lead.
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Forbidden, NotFound, ValidationFailed
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.user import User
from app.services import membership
from app.services.projects import ALL_ROLES, get_project_or_404, require_project_manager
from taskhive_shared.schemas.common import Role, TaskStatus
from taskhive_shared.schemas.tasks import TaskCreate, TaskRead

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_task_status(value: Optional[str]) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationFailed(
            "Invalid status",
            details={"allowedStatuses": [s.value for s in TaskStatus]},
        )


async def get_task_or_404(
    session: AsyncSession, task_id: uuid.UUID, org_id: uuid.UUID
) -> Task:
    task = await session.get(Task, task_id)
    if not task or task.organization_id != org_id:
        raise NotFound("Task not found")
    return task


async def _check_org_assignee(
    session: AsyncSession, org_id: uuid.UUID, user_id: Optional[uuid.UUID]
) -> None:
    if user_id is None:
        return
    if not await membership.is_active_member(user_id, org_id, session):
        raise ValidationFailed(
            "Assignee must be a member of this organization",
            details={"userId": str(user_id)},
        )


async def _check_project_assignee(
    session: AsyncSession, project: Project, user_id: uuid.UUID
) -> None:
    if user_id == project.lead_id:
        return
    row = await session.get(ProjectMember, (project.id, user_id))
    if row is None:
        raise ValidationFailed(
            "Assignee must be a member or the lead of this project",
            details={"userId": str(user_id)},
        )


def to_read(task: Task) -> TaskRead:
    return TaskRead(
        id=str(task.id),
        organization_id=str(task.organization_id),
        project_id=str(task.project_id) if task.project_id else None,
        title=task.title,
        description=task.description or "",
        status=task.status,
        priority=task.priority,
        assigned_to_id=str(task.assigned_to_id) if task.assigned_to_id else None,
        created_at=task.created_at,
    )


def to_read_many(tasks: Sequence[Task]) -> list[TaskRead]:
    return [to_read(t) for t in tasks]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession,
    acting: User,
    task_in: TaskCreate,
) -> Task:
    org, project = await require_project_manager(session, acting, task_in.project_id)
    await _check_org_assignee(session, org.id, task_in.assigned_to_id)

    await membership.claim_organization(org, session)

    task = Task(
        organization_id=org.id,
        project_id=project.id,
        assigned_to_id=task_in.assigned_to_id,
        title=task_in.title,
        description=task_in.description,
        status=TaskStatus.TODO.value,
        priority=task_in.priority.value,
    )
    session.add(task)
    await session.flush()

    log.info(
        "task.created",
        task_id=str(task.id),
        project_id=str(project.id),
        assigned_to=str(task.assigned_to_id) if task.assigned_to_id else None,
    )
    return task


async def list_project_tasks(
    session: AsyncSession, acting: User, project_id: uuid.UUID
) -> list[Task]:
    org, _ = await membership.require_role(acting, ALL_ROLES, session)
    project = await get_project_or_404(session, project_id, org.id)
    result = await session.execute(
        select(Task).where(Task.project_id == project.id).order_by(Task.created_at)
    )
    return list(result.scalars().all())


async def reassign_task(
    session: AsyncSession,
    acting: User,
    task_id: uuid.UUID,
    new_assignee_id: Optional[uuid.UUID],
) -> Task:
    """Point a task at another member or the lead of its project."""
    if new_assignee_id is None:
        raise ValidationFailed("New assignee is required")
    org, _ = await membership.require_role(acting, ALL_ROLES, session)
    task = await get_task_or_404(session, task_id, org.id)
    if task.project_id is None:
        raise ValidationFailed("Task is not attached to a project")

    _, project = await require_project_manager(session, acting, task.project_id)
    await _check_org_assignee(session, org.id, new_assignee_id)
    await _check_project_assignee(session, project, new_assignee_id)

    await membership.claim_organization(org, session)

    previous = task.assigned_to_id
    task.assigned_to_id = new_assignee_id
    session.add(task)
    await session.flush()

    log.info(
        "task.reassigned",
        task_id=str(task.id),
        previous_assignee=str(previous) if previous else None,
        new_assignee=str(new_assignee_id),
    )
    return task


async def update_task_status(
    session: AsyncSession,
    acting: User,
    task_id: uuid.UUID,
    status: Optional[str],
) -> Task:
    """Move a task to a new status.

    Allowed for the assignee, an Admin, or the lead of the task's project.
    """
    new_status = parse_task_status(status)
    org, projection = await membership.require_role(acting, ALL_ROLES, session)
    task = await get_task_or_404(session, task_id, org.id)

    if task.assigned_to_id != acting.id and projection.role != Role.ADMIN.value:
        project = await session.get(Project, task.project_id) if task.project_id else None
        if project is None or project.lead_id != acting.id:
            raise Forbidden("Only the assignee, an Admin or the project lead can update this task")

    await membership.claim_organization(org, session)

    previous = task.status
    task.status = new_status.value
    session.add(task)
    await session.flush()

    log.info(
        "task.status_changed",
        task_id=str(task.id),
        previous_status=previous,
        new_status=new_status.value,
    )
    return task


async def delete_task(session: AsyncSession, acting: User, task_id: uuid.UUID) -> None:
    """Delete a task.

    Admins and Leads may delete any task in the organization; a Member only
    a personal task (no project) assigned to them.
    """
    org, projection = await membership.require_role(acting, ALL_ROLES, session)
    task = await get_task_or_404(session, task_id, org.id)

    if projection.role == Role.MEMBER.value:
        if task.project_id is not None:
            raise Forbidden("Members can only delete personal tasks (not project tasks)")
        if task.assigned_to_id != acting.id:
            raise Forbidden("You can only delete your own tasks")

    await membership.claim_organization(org, session)
    await session.delete(task)
    await session.flush()

    log.info("task.deleted", task_id=str(task_id), org_id=str(org.id), deleted_by=str(acting.id))
