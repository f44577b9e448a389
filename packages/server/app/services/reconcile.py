"""
Membership reconciliation.

Rebuilds the user-side projection from the organization roster, which is
authoritative:

1. Roster rows with no status are marked ``active``; rows with an
   unrecognized status are reset to ``pending``.
2. The organization owner gets an active ``Admin`` roster row.
3. Every active roster row gets a projection row with the same role.
4. Projection rows without an active roster row are deleted.
5. Every affected user's current organization, legacy pointer and cached
   role are made to agree with their remaining projection rows.

Running it again on a repaired database changes nothing.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.membership import OrganizationMember, UserOrganization
from app.models.organization import Organization
from app.models.user import User
from app.services import membership
from taskhive_shared.schemas.common import MemberStatus, Role
from taskhive_shared.schemas.organizations import ReconcileReport

log = structlog.get_logger()


async def _reconcile_roster(
    org: Organization, report: ReconcileReport, session: AsyncSession
) -> set[uuid.UUID]:
    """Steps 1-4 for one organization. Returns the user ids it touched."""
    touched: set[uuid.UUID] = set()

    result = await session.execute(
        select(OrganizationMember).where(OrganizationMember.organization_id == org.id)
    )
    roster = {row.user_id: row for row in result.scalars().all()}

    for row in roster.values():
        if not row.status:
            row.status = MemberStatus.ACTIVE.value
            report.statuses_normalized += 1
            touched.add(row.user_id)
        elif not MemberStatus.is_known(row.status):
            log.warning(
                "membership.unknown_status_reset",
                org_id=str(org.id),
                user_id=str(row.user_id),
                status=row.status,
            )
            row.status = MemberStatus.PENDING.value
            report.statuses_reset += 1
            touched.add(row.user_id)

    if await session.get(User, org.admin_id) is not None:
        owner = roster.get(org.admin_id)
        if owner is None:
            owner = OrganizationMember(
                organization_id=org.id,
                user_id=org.admin_id,
                role=Role.ADMIN.value,
                status=MemberStatus.ACTIVE.value,
            )
            session.add(owner)
            roster[org.admin_id] = owner
            report.owners_restored += 1
            touched.add(org.admin_id)
        elif owner.role != Role.ADMIN.value or not owner.is_active:
            owner.role = Role.ADMIN.value
            owner.status = MemberStatus.ACTIVE.value
            report.owners_restored += 1
            touched.add(org.admin_id)

    result = await session.execute(
        select(UserOrganization).where(UserOrganization.organization_id == org.id)
    )
    projections = {row.user_id: row for row in result.scalars().all()}

    for user_id, row in roster.items():
        if not row.is_active:
            continue
        projection = projections.get(user_id)
        if projection is None:
            session.add(
                UserOrganization(
                    user_id=user_id,
                    organization_id=org.id,
                    role=row.role,
                    joined_at=row.joined_at,
                )
            )
            report.projections_created += 1
            touched.add(user_id)
        elif projection.role != row.role:
            projection.role = row.role
            report.projections_updated += 1
            touched.add(user_id)

    for user_id, projection in projections.items():
        row = roster.get(user_id)
        if row is None or not row.is_active:
            await session.delete(projection)
            report.projections_removed += 1
            touched.add(user_id)

    await session.flush()
    return touched


async def _repair_pointers(user: User, session: AsyncSession) -> bool:
    """Step 5 for one user. Returns True when anything changed."""
    result = await session.execute(
        select(UserOrganization)
        .where(UserOrganization.user_id == user.id)
        .order_by(UserOrganization.joined_at, UserOrganization.organization_id)
    )
    rows = {row.organization_id: row for row in result.scalars().all()}

    target: Optional[UserOrganization] = None
    candidate = user.active_organization_id
    if candidate in rows:
        target = rows[candidate]
    elif rows:
        target = next(iter(rows.values()))

    org_id = target.organization_id if target else None
    role = target.role if target else Role.MEMBER.value
    if (
        user.current_organization_id == org_id
        and user.organization_id == org_id
        and user.role == role
    ):
        return False

    membership.point_user_at(user, org_id, role)
    return True


async def reconcile(
    session: AsyncSession, org_id: Optional[uuid.UUID] = None
) -> ReconcileReport:
    """Reconcile one organization, or every organization when ``org_id`` is None."""
    report = ReconcileReport()

    stmt = select(Organization).order_by(Organization.created_at)
    if org_id is not None:
        stmt = stmt.where(Organization.id == org_id)
    orgs = (await session.execute(stmt)).scalars().all()

    for org in orgs:
        report.organizations_processed += 1
        before = report.total_repairs
        touched = await _reconcile_roster(org, report, session)

        pointing = await session.execute(
            select(User.id).where(
                (User.current_organization_id == org.id) | (User.organization_id == org.id)
            )
        )
        touched.update(row[0] for row in pointing.all())

        repaired = 0
        for user_id in sorted(touched):
            user = await session.get(User, user_id)
            if user is not None and await _repair_pointers(user, session):
                repaired += 1
        report.users_repointed += repaired

        if report.total_repairs != before:
            await membership.claim_organization(org, session)
            log.info(
                "membership.reconciled",
                org_id=str(org.id),
                repairs=report.total_repairs - before,
            )

    log.info("membership.reconcile_complete", **report.model_dump())
    return report
