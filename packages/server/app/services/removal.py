"""
Leaving an organization and removing members from one.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, Forbidden, ValidationFailed
from app.models.organization import Organization
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.user import User
from app.services import membership
from taskhive_shared.schemas.common import Role

log = structlog.get_logger()


async def _count(stmt, session: AsyncSession) -> int:
    result = await session.execute(stmt)
    return result.scalar_one()


async def leave(user: User, session: AsyncSession) -> Optional[tuple[Organization, str]]:
    """Leave the current organization. Returns the organization switched to, if any."""
    org_id = user.active_organization_id
    if not org_id:
        raise ValidationFailed("You are not in an organization")

    org = await membership.get_organization(org_id, session)
    if org.admin_id == user.id:
        raise Conflict(
            "The organization owner cannot leave. Transfer ownership or delete the organization."
        )

    roster = await membership.get_roster_entry(org.id, user.id, session)
    if roster is not None and roster.role == Role.ADMIN.value and roster.is_active:
        admins = await membership.count_active_admins(org.id, session)
        if admins <= 1:
            raise Conflict(
                "Organization must have at least one Admin",
                details={"activeAdmins": admins},
            )

    switched = await membership.drop_member(org, user, session)
    log.info("member.left", org_id=str(org.id), user_id=str(user.id))
    return switched


async def remove(
    acting: User, target_user_id: uuid.UUID, session: AsyncSession
) -> Optional[tuple[Organization, str]]:
    """Remove a member from the acting Admin's organization.

    Refused while the member still has tasks, leads projects or belongs to
    projects there; the caller must reassign those first.
    """
    org, _ = await membership.require_role(acting, (Role.ADMIN,), session)
    target = await membership.get_user(target_user_id, session)

    projection = await membership.get_projection(target.id, org.id, session)
    roster = await membership.get_roster_entry(org.id, target.id, session)
    if projection is None and roster is None:
        raise Forbidden("User is not in your organization")
    if target.id == org.admin_id:
        raise Conflict("The organization owner cannot be removed")
    if target.id == acting.id:
        raise Conflict("You cannot remove yourself. Use leave instead.")

    assigned = await _count(
        select(func.count())
        .select_from(Task)
        .where(Task.organization_id == org.id, Task.assigned_to_id == target.id),
        session,
    )
    if assigned:
        raise Conflict(
            "User has assigned tasks. Reassign them before removing the user.",
            details={"assignedTasks": assigned},
        )

    leading = await _count(
        select(func.count())
        .select_from(Project)
        .where(Project.organization_id == org.id, Project.lead_id == target.id),
        session,
    )
    if leading:
        raise Conflict(
            "User is leading projects. Assign a new lead before removing the user.",
            details={"leadingProjects": leading},
        )

    memberships = await _count(
        select(func.count())
        .select_from(ProjectMember)
        .where(ProjectMember.organization_id == org.id, ProjectMember.user_id == target.id),
        session,
    )
    if memberships:
        raise Conflict(
            "User is a member of projects. Remove them from those projects first.",
            details={"projectMemberships": memberships},
        )

    switched = await membership.drop_member(org, target, session)
    log.info(
        "member.removed",
        org_id=str(org.id),
        user_id=str(target.id),
        removed_by=str(acting.id),
    )
    return switched
