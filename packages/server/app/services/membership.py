"""
Membership write path.

The organization roster (``organization_members``) is the record of who
belongs to an organization. The user-side projection (``user_organizations``
plus the role and organization pointers cached on ``users``) is derived
from it. Every function here that writes one side writes the other in the
same session, so a request either commits both or neither.

Every roster or role mutation first claims the organization by bumping
``organizations.version``; a concurrent writer holding the same version
gets a ``Conflict`` instead of silently interleaving.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import select

from app.core.errors import Conflict, Forbidden, NotFound
from app.models.base import utcnow
from app.models.membership import OrganizationMember, UserOrganization
from app.models.organization import Organization
from app.models.user import User
from taskhive_shared.schemas.common import MemberStatus, Role

log = structlog.get_logger()


def active_roster_clause():
    """Roster rows that count as active, including legacy rows with no status."""
    return or_(
        OrganizationMember.status == MemberStatus.ACTIVE.value,
        OrganizationMember.status.is_(None),
    )


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def get_organization(org_id: uuid.UUID, session: AsyncSession) -> Organization:
    org = await session.get(Organization, org_id)
    if not org:
        raise NotFound("Organization not found")
    return org


async def get_projection(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> Optional[UserOrganization]:
    return await session.get(UserOrganization, (user_id, org_id))


async def get_roster_entry(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Optional[OrganizationMember]:
    return await session.get(OrganizationMember, (org_id, user_id))


async def is_active_member(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> bool:
    """True when both sides agree the user belongs to the organization."""
    if await get_projection(user_id, org_id, session) is None:
        return False
    roster = await get_roster_entry(org_id, user_id, session)
    return roster is not None and roster.is_active


async def require_role(
    user: User, roles: Iterable[Role], session: AsyncSession
) -> tuple[Organization, UserOrganization]:
    """Resolve the user's current organization and check their live role in it.

    The role comes from the membership row, never from ``users.role`` or the
    token. Raises Forbidden when the user has no current organization, is no
    longer a member of it, or holds none of ``roles``.
    """
    allowed = {Role(r).value for r in roles}
    org_id = user.active_organization_id
    if not org_id:
        raise Forbidden("You are not a member of any organization")

    projection = await get_projection(user.id, org_id, session)
    roster = await get_roster_entry(org_id, user.id, session)
    if not projection or not roster or not roster.is_active:
        raise Forbidden("You are not a member of this organization")
    if projection.role not in allowed:
        raise Forbidden(f"Requires one of: {', '.join(sorted(allowed))}")

    org = await get_organization(org_id, session)
    return org, projection


async def count_active_admins(org_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMember)
        .where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.role == Role.ADMIN.value,
            active_roster_clause(),
        )
    )
    return result.scalar_one()


async def count_active_members(org_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMember)
        .where(OrganizationMember.organization_id == org_id, active_roster_clause())
    )
    return result.scalar_one()


async def first_remaining_membership(
    user_id: uuid.UUID, session: AsyncSession
) -> Optional[UserOrganization]:
    result = await session.execute(
        select(UserOrganization)
        .where(UserOrganization.user_id == user_id)
        .order_by(UserOrganization.joined_at, UserOrganization.organization_id)
        .limit(1)
    )
    return result.scalars().first()


# ---------------------------------------------------------------------------
# Optimistic concurrency
# ---------------------------------------------------------------------------

async def claim_organization(org: Organization, session: AsyncSession) -> None:
    """Bump the organization version if nobody else has since it was read."""
    result = await session.execute(
        update(Organization)
        .where(Organization.id == org.id, Organization.version == org.version)
        .values(version=Organization.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        log.warning("organization.version_conflict", org_id=str(org.id), seen=org.version)
        raise Conflict("Organization was modified concurrently. Please retry.")
    set_committed_value(org, "version", org.version + 1)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def point_user_at(user: User, org_id: Optional[uuid.UUID], role: str) -> None:
    """Move the user's current and legacy organization pointers together."""
    user.current_organization_id = org_id
    user.organization_id = org_id
    user.role = role


async def add_member(
    org: Organization,
    user: User,
    session: AsyncSession,
    role: Role = Role.MEMBER,
    *,
    make_current: bool = False,
) -> OrganizationMember:
    """Make ``user`` an active member of ``org`` on both sides.

    An existing pending roster row is activated in place. The user's current
    organization moves here when ``make_current`` is set or when they have
    none yet.
    """
    await claim_organization(org, session)
    now = utcnow()

    roster = await get_roster_entry(org.id, user.id, session)
    if roster is None:
        roster = OrganizationMember(
            organization_id=org.id,
            user_id=user.id,
            role=role.value,
            status=MemberStatus.ACTIVE.value,
            joined_at=now,
        )
        session.add(roster)
    else:
        roster.role = role.value
        roster.status = MemberStatus.ACTIVE.value

    projection = await get_projection(user.id, org.id, session)
    if projection is None:
        session.add(
            UserOrganization(
                user_id=user.id,
                organization_id=org.id,
                role=role.value,
                joined_at=roster.joined_at or now,
            )
        )
    else:
        projection.role = role.value

    if make_current or not user.active_organization_id:
        point_user_at(user, org.id, role.value)

    await session.flush()
    log.info("member.added", org_id=str(org.id), user_id=str(user.id), role=role.value)
    return roster


async def set_member_role(
    org: Organization,
    user: User,
    role: Role,
    session: AsyncSession,
    *,
    claim: bool = True,
) -> None:
    """Write a role change to roster, projection and, if current, ``users.role``."""
    if claim:
        await claim_organization(org, session)

    roster = await get_roster_entry(org.id, user.id, session)
    if roster is not None:
        roster.role = role.value

    projection = await get_projection(user.id, org.id, session)
    if projection is not None:
        projection.role = role.value

    if user.active_organization_id == org.id:
        user.role = role.value

    await session.flush()


async def drop_member(
    org: Organization, user: User, session: AsyncSession
) -> Optional[tuple[Organization, str]]:
    """Remove ``user`` from ``org`` on both sides and repoint their current organization.

    Returns the organization and role the user was switched to, or None when
    they were left without any organization (or their current one was elsewhere).
    """
    await claim_organization(org, session)

    await session.execute(
        delete(OrganizationMember).where(
            OrganizationMember.organization_id == org.id,
            OrganizationMember.user_id == user.id,
        )
    )
    await session.execute(
        delete(UserOrganization).where(
            UserOrganization.organization_id == org.id,
            UserOrganization.user_id == user.id,
        )
    )

    switched: Optional[tuple[Organization, str]] = None
    if org.id in (user.current_organization_id, user.organization_id):
        remaining = await first_remaining_membership(user.id, session)
        if remaining:
            point_user_at(user, remaining.organization_id, remaining.role)
            next_org = await get_organization(remaining.organization_id, session)
            switched = (next_org, remaining.role)
        else:
            point_user_at(user, None, Role.MEMBER.value)

    await session.flush()
    log.info(
        "member.dropped",
        org_id=str(org.id),
        user_id=str(user.id),
        switched_to=str(switched[0].id) if switched else None,
    )
    return switched
