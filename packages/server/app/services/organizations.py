"""
Organization service: creation, invite lookup, listing and switching the
current organization.
"""

from __future__ import annotations

import secrets
import string
import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import Conflict, Forbidden, ValidationFailed
from app.models.membership import OrganizationMember
from app.models.organization import Organization
from app.models.user import User
from app.services import membership
from app.services.member_requests import find_by_invite_code
from taskhive_shared.schemas.common import OrgSummary, Role
from taskhive_shared.schemas.organizations import InvitePreview, OrgCreateRequest, SwitchedTo

log = structlog.get_logger()
settings = get_settings()

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_INVITE_CODE_ATTEMPTS = 10


def generate_invite_code(length: Optional[int] = None) -> str:
    """Random uppercase alphanumeric invite code."""
    n = length or settings.invite_code_length
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(n))


def org_summary(
    org: Organization, role: Optional[str] = None, *, include_invite_code: bool = False
) -> OrgSummary:
    return OrgSummary(
        id=str(org.id),
        name=org.name,
        handle=org.handle,
        logo=org.logo,
        invite_code=org.invite_code if include_invite_code else None,
        role=Role(role) if role else None,
    )


def switched_to(switched: Optional[tuple[Organization, str]]) -> Optional[SwitchedTo]:
    if switched is None:
        return None
    org, role = switched
    return SwitchedTo(id=str(org.id), name=org.name, role=Role(role))


async def _unique_invite_code(session: AsyncSession) -> str:
    for _ in range(MAX_INVITE_CODE_ATTEMPTS):
        code = generate_invite_code()
        result = await session.execute(
            select(Organization.id).where(Organization.invite_code == code)
        )
        if result.first() is None:
            return code
    raise Conflict("Could not generate a unique invite code. Please retry.")


async def create_org(
    req: OrgCreateRequest, creator: User, session: AsyncSession
) -> Organization:
    """Create an org; the creator becomes its owner and Admin, and it becomes current."""
    handle = req.handle.strip().lower()
    existing = await session.execute(
        select(Organization).where(Organization.handle == handle)
    )
    if existing.scalar_one_or_none():
        raise Conflict(
            "Organization handle already taken",
            details={"handle": handle},
        )

    org = Organization(
        name=req.name.strip(),
        handle=handle,
        admin_id=creator.id,
        invite_code=await _unique_invite_code(session),
    )
    session.add(org)
    await session.flush()

    await membership.add_member(org, creator, session, Role.ADMIN, make_current=True)

    log.info("org.created", org_id=str(org.id), handle=handle, creator=str(creator.id))
    return org


async def invite_preview(invite_code: Optional[str], session: AsyncSession) -> InvitePreview:
    """Public summary of the organization behind an invite code."""
    org = await find_by_invite_code(invite_code, session)
    admin = await session.get(User, org.admin_id)
    member_count = await membership.count_active_members(org.id, session)
    return InvitePreview(
        id=str(org.id),
        name=org.name,
        handle=org.handle,
        member_count=member_count,
        admin_name=admin.name if admin else "Unknown",
        admin_email=admin.email if admin else None,
    )


async def list_user_orgs(
    user: User, session: AsyncSession
) -> list[tuple[Organization, str]]:
    """Organizations where the user's roster row is active, sorted by name."""
    result = await session.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(
            OrganizationMember.user_id == user.id,
            membership.active_roster_clause(),
        )
        .order_by(Organization.name)
    )
    return [(org, role) for org, role in result.all()]


async def switch_org(
    user: User, organization_id: Optional[uuid.UUID], session: AsyncSession
) -> tuple[Organization, str]:
    """Make ``organization_id`` the user's current organization.

    Only pointers move; no membership is created or changed.
    """
    if organization_id is None:
        raise ValidationFailed("Organization ID is required")

    org = await membership.get_organization(organization_id, session)
    projection = await membership.get_projection(user.id, org.id, session)
    roster = await membership.get_roster_entry(org.id, user.id, session)
    if projection is None or roster is None or not roster.is_active:
        raise Forbidden("You are not a member of this organization")

    membership.point_user_at(user, org.id, projection.role)
    await session.flush()

    log.info("org.switched", org_id=str(org.id), user_id=str(user.id), role=projection.role)
    return org, projection.role
