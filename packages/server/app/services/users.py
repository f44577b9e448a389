"""
Member directory for the caller's current organization.
"""

from __future__ import annotations

import uuid
from collections import defaultdict

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.membership import OrganizationMember, UserOrganization
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.services import membership
from taskhive_shared.schemas.common import Role
from taskhive_shared.schemas.users import MemberRead


async def _project_names_by_user(
    org_id: uuid.UUID, session: AsyncSession
) -> dict[uuid.UUID, list[str]]:
    """Names of projects each user leads or belongs to, in this organization."""
    names: dict[uuid.UUID, set[str]] = defaultdict(set)

    led = await session.execute(
        select(Project.lead_id, Project.name).where(Project.organization_id == org_id)
    )
    for user_id, name in led.all():
        names[user_id].add(name)

    joined = await session.execute(
        select(ProjectMember.user_id, Project.name)
        .join(Project, Project.id == ProjectMember.project_id)
        .where(ProjectMember.organization_id == org_id)
    )
    for user_id, name in joined.all():
        names[user_id].add(name)

    return {uid: sorted(n) for uid, n in names.items()}


async def list_org_members(user: User, session: AsyncSession) -> list[MemberRead]:
    """Active members of the caller's organization with their role there."""
    org, _ = await membership.require_role(user, tuple(Role), session)

    result = await session.execute(
        select(User, UserOrganization.role)
        .join(UserOrganization, UserOrganization.user_id == User.id)
        .join(
            OrganizationMember,
            (OrganizationMember.user_id == User.id)
            & (OrganizationMember.organization_id == UserOrganization.organization_id),
        )
        .where(
            UserOrganization.organization_id == org.id,
            membership.active_roster_clause(),
        )
        .order_by(User.name)
    )
    rows = result.all()
    projects = await _project_names_by_user(org.id, session)

    return [
        MemberRead(
            id=str(member.id),
            name=member.name,
            email=member.email,
            role=Role(role),
            skills=list(member.skills or []),
            projects=projects.get(member.id, []),
        )
        for member, role in rows
    ]
