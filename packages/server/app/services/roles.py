"""
Role transitions within an organization.

Promotions are never guarded. Demotions are refused when they would leave
the organization without an active Admin, strand projects without a Lead,
or demote the organization's owner.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, Forbidden, ValidationFailed
from app.models.project import Project
from app.models.user import User
from app.services import membership
from taskhive_shared.schemas.common import Role

log = structlog.get_logger()


def parse_role(value: Optional[str]) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationFailed(
            "Invalid role. Must be one of: Admin, Lead, Member",
            details={"allowedRoles": [r.value for r in Role]},
        )


async def count_projects_led(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Project)
        .where(Project.lead_id == user_id, Project.organization_id == org_id)
    )
    return result.scalar_one()


async def set_role(
    acting: User,
    target_user_id: uuid.UUID,
    new_role: Optional[str],
    session: AsyncSession,
) -> tuple[Role, Role, User]:
    """Change ``target_user_id``'s role in the acting Admin's current organization.

    Returns ``(previous_role, new_role, target)``.
    """
    org, _ = await membership.require_role(acting, (Role.ADMIN,), session)
    role = parse_role(new_role)

    target = await membership.get_user(target_user_id, session)
    projection = await membership.get_projection(target.id, org.id, session)
    if projection is None:
        raise Forbidden("User is not in your organization")

    previous = Role(projection.role)
    if previous == role:
        return previous, role, target

    if previous == Role.LEAD and role == Role.MEMBER:
        led = await count_projects_led(target.id, org.id, session)
        if led > 0:
            raise Conflict(
                "Cannot demote a Lead who is still leading projects. Reassign their projects first.",
                details={"projectsLedByUser": led},
            )

    if previous == Role.ADMIN:
        if target.id == org.admin_id:
            raise Conflict("The organization owner cannot be demoted")
        admins = await membership.count_active_admins(org.id, session)
        if admins <= 1:
            raise Conflict(
                "Organization must have at least one Admin",
                details={"activeAdmins": admins},
            )

    await membership.set_member_role(org, target, role, session)

    log.info(
        "member.role_changed",
        org_id=str(org.id),
        user_id=str(target.id),
        previous_role=previous.value,
        new_role=role.value,
        changed_by=str(acting.id),
    )
    return previous, role, target
