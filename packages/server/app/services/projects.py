"""
Project service layer.

Handles:
- Project creation with its lead and initial members
- Project detail with member and task summaries
- Project membership changes
- Project status changes and deletion of finished projects
- Lead reassignment, including the task, membership and role cascade
- The lead's own projects and team
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.models.membership import OrganizationMember, UserOrganization
from app.models.organization import Organization
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.user import User
from app.services import membership
from app.services.roles import count_projects_led
from taskhive_shared.schemas.common import ProjectStatus, Role, TaskStatus
from taskhive_shared.schemas.projects import (
    LedProjectRead,
    ProjectCreate,
    ProjectMemberRead,
    ProjectRead,
    ProjectTaskRead,
)
from taskhive_shared.schemas.users import MemberRead

log = structlog.get_logger()

ALL_ROLES = (Role.ADMIN, Role.LEAD, Role.MEMBER)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(
    session: AsyncSession, project_id: uuid.UUID, org_id: uuid.UUID
) -> Project:
    project = await session.get(Project, project_id)
    if not project:
        raise NotFound("Project not found")
    if project.organization_id != org_id:
        raise Forbidden("Project belongs to another organization")
    return project


async def get_project_member_ids(session: AsyncSession, project_id: uuid.UUID) -> list[uuid.UUID]:
    result = await session.execute(
        select(ProjectMember.user_id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.added_at)
    )
    return [row[0] for row in result.all()]


async def _require_org_member(
    session: AsyncSession, user_id: Optional[uuid.UUID], org_id: uuid.UUID, what: str
) -> User:
    if user_id is None:
        raise ValidationFailed(f"{what} is required")
    user = await session.get(User, user_id)
    if user is None or not await membership.is_active_member(user.id, org_id, session):
        raise ValidationFailed(
            f"{what} must be a member of this organization",
            details={"userId": str(user_id)},
        )
    return user


async def require_project_manager(
    session: AsyncSession, acting: User, project_id: uuid.UUID
) -> tuple[Organization, Project]:
    """Caller must be an Admin of the project's organization or lead the project."""
    org, projection = await membership.require_role(acting, ALL_ROLES, session)
    project = await get_project_or_404(session, project_id, org.id)
    if projection.role != Role.ADMIN.value and project.lead_id != acting.id:
        raise Forbidden("Only an Admin or the project lead can do this")
    return org, project


async def _add_project_member(
    session: AsyncSession, project: Project, user_id: uuid.UUID
) -> bool:
    existing = await session.get(ProjectMember, (project.id, user_id))
    if existing is not None:
        return False
    session.add(
        ProjectMember(
            project_id=project.id,
            user_id=user_id,
            organization_id=project.organization_id,
        )
    )
    return True


async def _promote_to_lead(
    session: AsyncSession, org: Organization, user: User
) -> bool:
    projection = await membership.get_projection(user.id, org.id, session)
    if projection is not None and projection.role == Role.MEMBER.value:
        await membership.set_member_role(org, user, Role.LEAD, session, claim=False)
        log.info("member.promoted_to_lead", org_id=str(org.id), user_id=str(user.id))
        return True
    return False


async def project_read(session: AsyncSession, project: Project) -> ProjectRead:
    lead = await session.get(User, project.lead_id)
    member_ids = await get_project_member_ids(session, project.id)
    members: list[ProjectMemberRead] = []
    if member_ids:
        result = await session.execute(select(User).where(User.id.in_(member_ids)))
        by_id = {u.id: u for u in result.scalars().all()}
        members = [
            ProjectMemberRead(id=str(uid), name=by_id[uid].name, email=by_id[uid].email)
            for uid in member_ids
            if uid in by_id
        ]
    return ProjectRead(
        id=str(project.id),
        organization_id=str(project.organization_id),
        name=project.name,
        description=project.description or "",
        status=project.status,
        lead_id=str(project.lead_id),
        lead=lead.name if lead else "",
        lead_email=lead.email if lead else "",
        members=members,
    )


def task_summaries(tasks: Sequence[Task]) -> list[ProjectTaskRead]:
    return [
        ProjectTaskRead(
            id=str(t.id),
            title=t.title,
            status=t.status,
            priority=t.priority,
            assignee_id=str(t.assigned_to_id) if t.assigned_to_id else None,
        )
        for t in tasks
    ]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_project(
    session: AsyncSession, acting: User, project_in: ProjectCreate
) -> Project:
    """Create a project; its lead is added as a member and promoted Member -> Lead."""
    org, _ = await membership.require_role(acting, (Role.ADMIN,), session)
    lead = await _require_org_member(session, project_in.lead_id, org.id, "Project lead")
    for uid in project_in.member_ids:
        await _require_org_member(session, uid, org.id, "Project member")

    await membership.claim_organization(org, session)

    project = Project(
        organization_id=org.id,
        name=project_in.name.strip(),
        description=project_in.description,
        lead_id=lead.id,
    )
    session.add(project)
    await session.flush()

    await _add_project_member(session, project, lead.id)
    for uid in project_in.member_ids:
        await _add_project_member(session, project, uid)
    await session.flush()

    await _promote_to_lead(session, org, lead)

    log.info(
        "project.created",
        project_id=str(project.id),
        org_id=str(org.id),
        lead_id=str(lead.id),
        created_by=str(acting.id),
    )
    return project


async def get_project_detail(
    session: AsyncSession, acting: User, project_id: uuid.UUID
) -> tuple[Project, list[Task]]:
    org, _ = await membership.require_role(acting, ALL_ROLES, session)
    project = await get_project_or_404(session, project_id, org.id)
    result = await session.execute(
        select(Task).where(Task.project_id == project.id).order_by(Task.created_at)
    )
    return project, list(result.scalars().all())


async def add_members(
    session: AsyncSession, acting: User, project_id: uuid.UUID, user_ids: Sequence[uuid.UUID]
) -> list[uuid.UUID]:
    """Add organization members to a project. Returns the ids actually added."""
    org, project = await require_project_manager(session, acting, project_id)
    for uid in user_ids:
        await _require_org_member(session, uid, org.id, "Project member")

    await membership.claim_organization(org, session)

    added: list[uuid.UUID] = []
    for uid in user_ids:
        if await _add_project_member(session, project, uid):
            added.append(uid)
    await session.flush()

    if added:
        log.info(
            "project.members_added",
            project_id=str(project.id),
            user_ids=[str(u) for u in added],
        )
    return added


async def remove_member(
    session: AsyncSession, acting: User, project_id: uuid.UUID, user_id: uuid.UUID
) -> None:
    org, project = await require_project_manager(session, acting, project_id)
    if user_id == project.lead_id:
        raise Conflict("The project lead cannot be removed from their own project")

    row = await session.get(ProjectMember, (project.id, user_id))
    if row is None:
        raise NotFound("User is not a member of this project")
    await membership.claim_organization(org, session)
    await session.delete(row)
    await session.flush()

    log.info("project.member_removed", project_id=str(project.id), user_id=str(user_id))


def parse_project_status(value: Optional[str]) -> ProjectStatus:
    try:
        return ProjectStatus(value)
    except ValueError:
        raise ValidationFailed(
            "Invalid status",
            details={"allowedStatuses": [s.value for s in ProjectStatus]},
        )


async def update_project_status(
    session: AsyncSession, acting: User, project_id: uuid.UUID, status: Optional[str]
) -> Project:
    new_status = parse_project_status(status)
    org, project = await require_project_manager(session, acting, project_id)

    await membership.claim_organization(org, session)

    previous = project.status
    project.status = new_status.value
    session.add(project)
    await session.flush()

    log.info(
        "project.status_changed",
        project_id=str(project.id),
        previous_status=previous,
        new_status=new_status.value,
    )
    return project


async def delete_project(
    session: AsyncSession, acting: User, project_id: uuid.UUID
) -> tuple[str, int]:
    """Delete a closed project whose tasks are all done, together with its tasks.

    Returns ``(project_name, deleted_tasks)``.
    """
    org, _ = await membership.require_role(acting, (Role.ADMIN,), session)
    project = await get_project_or_404(session, project_id, org.id)

    if project.status != ProjectStatus.CLOSED.value:
        raise ValidationFailed(
            "Project must be closed by the lead before it can be deleted. "
            f"Current status: {project.status}",
            details={"currentStatus": project.status},
        )

    total = (
        await session.execute(
            select(func.count()).select_from(Task).where(Task.project_id == project.id)
        )
    ).scalar_one()
    done = (
        await session.execute(
            select(func.count())
            .select_from(Task)
            .where(Task.project_id == project.id, Task.status == TaskStatus.DONE.value)
        )
    ).scalar_one()
    if done < total:
        raise ValidationFailed(
            f"Cannot delete project. {total - done} task(s) are still incomplete.",
            details={"totalTasks": total, "completedTasks": done, "pendingTasks": total - done},
        )

    await membership.claim_organization(org, session)

    result = await session.execute(delete(Task).where(Task.project_id == project.id))
    deleted_tasks = result.rowcount or 0
    await session.execute(delete(ProjectMember).where(ProjectMember.project_id == project.id))
    name = project.name
    await session.delete(project)
    await session.flush()

    log.info(
        "project.deleted",
        project_id=str(project_id),
        org_id=str(org.id),
        deleted_tasks=deleted_tasks,
        deleted_by=str(acting.id),
    )
    return name, deleted_tasks


# ---------------------------------------------------------------------------
# Lead reassignment
# ---------------------------------------------------------------------------


async def reassign_lead(
    session: AsyncSession,
    acting: User,
    project_id: uuid.UUID,
    new_lead_id: Optional[uuid.UUID],
) -> tuple[Project, User, int]:
    """Hand a project to a new lead.

    Moves the old lead's tasks on this project to the new lead, makes sure
    the new lead is a project member holding at least ``Lead``, and demotes
    the old lead to ``Member`` once they lead nothing else here.
    Returns ``(project, new_lead, reassigned_tasks_count)``.
    """
    org, _ = await membership.require_role(acting, (Role.ADMIN,), session)
    project = await get_project_or_404(session, project_id, org.id)
    if new_lead_id is None:
        raise ValidationFailed("Lead ID is required")
    new_lead = await _require_org_member(session, new_lead_id, org.id, "Project lead")

    await membership.claim_organization(org, session)

    old_lead_id = project.lead_id
    reassigned = 0
    if old_lead_id != new_lead.id:
        result = await session.execute(
            update(Task)
            .where(Task.project_id == project.id, Task.assigned_to_id == old_lead_id)
            .values(assigned_to_id=new_lead.id)
            .execution_options(synchronize_session="fetch")
        )
        reassigned = result.rowcount or 0

    project.lead_id = new_lead.id
    session.add(project)
    await _add_project_member(session, project, new_lead.id)
    await session.flush()

    await _promote_to_lead(session, org, new_lead)

    if old_lead_id != new_lead.id:
        still_leading = await count_projects_led(old_lead_id, org.id, session)
        old_projection = await membership.get_projection(old_lead_id, org.id, session)
        if still_leading == 0 and old_projection is not None and old_projection.role == Role.LEAD.value:
            old_lead = await membership.get_user(old_lead_id, session)
            await membership.set_member_role(org, old_lead, Role.MEMBER, session, claim=False)
            log.info("member.demoted_from_lead", org_id=str(org.id), user_id=str(old_lead_id))

    log.info(
        "project.lead_reassigned",
        project_id=str(project.id),
        org_id=str(org.id),
        old_lead_id=str(old_lead_id),
        new_lead_id=str(new_lead.id),
        reassigned_tasks=reassigned,
    )
    return project, new_lead, reassigned


# ---------------------------------------------------------------------------
# Lead views
# ---------------------------------------------------------------------------


async def _led_projects(session: AsyncSession, acting: User) -> list[Project]:
    org, _ = await membership.require_role(acting, ALL_ROLES, session)
    result = await session.execute(
        select(Project)
        .where(Project.organization_id == org.id, Project.lead_id == acting.id)
        .order_by(Project.created_at.desc())
    )
    return list(result.scalars().all())


async def list_led_projects(session: AsyncSession, acting: User) -> list[LedProjectRead]:
    """Projects the caller leads in their current organization, newest first."""
    projects = await _led_projects(session, acting)
    ids = [p.id for p in projects]
    task_counts: dict[uuid.UUID, int] = {}
    member_counts: dict[uuid.UUID, int] = {}
    if ids:
        rows = await session.execute(
            select(Task.project_id, func.count()).where(Task.project_id.in_(ids)).group_by(Task.project_id)
        )
        task_counts = dict(rows.all())
        rows = await session.execute(
            select(ProjectMember.project_id, func.count())
            .where(ProjectMember.project_id.in_(ids))
            .group_by(ProjectMember.project_id)
        )
        member_counts = dict(rows.all())

    return [
        LedProjectRead(
            id=str(p.id),
            name=p.name,
            description=p.description or "",
            status=p.status,
            lead=acting.name,
            lead_email=acting.email,
            lead_id=str(acting.id),
            member_count=member_counts.get(p.id, 0),
            task_count=task_counts.get(p.id, 0),
            created_at=p.created_at,
        )
        for p in projects
    ]


async def list_lead_team(session: AsyncSession, acting: User) -> list[MemberRead]:
    """Active Members on any project the caller leads, with those project names."""
    projects = await _led_projects(session, acting)
    if not projects:
        return []
    names = {p.id: p.name for p in projects}
    org_id = projects[0].organization_id

    rows = await session.execute(
        select(ProjectMember.project_id, User, UserOrganization.role)
        .join(User, User.id == ProjectMember.user_id)
        .join(
            UserOrganization,
            (UserOrganization.user_id == ProjectMember.user_id)
            & (UserOrganization.organization_id == org_id),
        )
        .join(
            OrganizationMember,
            (OrganizationMember.user_id == ProjectMember.user_id)
            & (OrganizationMember.organization_id == org_id),
        )
        .where(
            ProjectMember.project_id.in_(list(names)),
            UserOrganization.role == Role.MEMBER.value,
            membership.active_roster_clause(),
        )
    )

    team: dict[uuid.UUID, MemberRead] = {}
    for project_id, user, role in rows.all():
        entry = team.get(user.id)
        if entry is None:
            entry = team[user.id] = MemberRead(
                id=str(user.id),
                name=user.name,
                email=user.email,
                role=Role(role),
                skills=list(user.skills or []),
            )
        entry.projects.append(names[project_id])

    for entry in team.values():
        entry.projects.sort()
    return sorted(team.values(), key=lambda m: m.name)
