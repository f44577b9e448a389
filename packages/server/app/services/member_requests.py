"""
Join request workflow: submit, cancel, status, pending list, approve, reject.

Submitting a request never touches the roster; only approval does, through
``app.services.membership``.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.models.base import utcnow
from app.models.member_request import MemberRequest
from app.models.organization import Organization
from app.models.user import User
from app.services import membership
from taskhive_shared.schemas.common import MemberStatus, RequestStatus, Role

log = structlog.get_logger()

REVIEWER_ROLES = (Role.ADMIN, Role.LEAD)


def normalize_invite_code(invite_code: Optional[str]) -> str:
    code = (invite_code or "").strip().upper()
    if not code:
        raise ValidationFailed("Invite code is required")
    return code


async def find_by_invite_code(invite_code: Optional[str], session: AsyncSession) -> Organization:
    code = normalize_invite_code(invite_code)
    result = await session.execute(select(Organization).where(Organization.invite_code == code))
    org = result.scalar_one_or_none()
    if not org:
        raise NotFound("Invalid invite code")
    return org


async def _pending_request(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> Optional[MemberRequest]:
    result = await session.execute(
        select(MemberRequest).where(
            MemberRequest.user_id == user_id,
            MemberRequest.organization_id == org_id,
            MemberRequest.status == RequestStatus.PENDING.value,
        )
    )
    return result.scalars().first()


async def submit(
    user: User, invite_code: Optional[str], session: AsyncSession
) -> tuple[MemberRequest, Organization]:
    """Create a pending join request for the organization behind ``invite_code``."""
    org = await find_by_invite_code(invite_code, session)

    roster = await membership.get_roster_entry(org.id, user.id, session)
    if roster is not None:
        status = roster.effective_status
        if status == MemberStatus.ACTIVE:
            raise Conflict(
                "You are already a member of this organization",
                details={
                    "organizationName": org.name,
                    "memberStatus": status.value,
                    "memberRole": roster.role,
                },
            )
        raise Conflict(
            "Your membership is pending approval",
            details={
                "organizationName": org.name,
                "memberStatus": status.value,
                "memberRole": roster.role,
            },
        )

    existing = await _pending_request(user.id, org.id, session)
    if existing is not None:
        raise Conflict(
            "You already have a pending request for this organization",
            details={
                "organizationName": org.name,
                "requestedAt": existing.requested_at.isoformat(),
            },
        )

    now = utcnow()
    request = MemberRequest(
        user_id=user.id,
        organization_id=org.id,
        invite_code=org.invite_code,
        status=RequestStatus.PENDING.value,
        requested_at=now,
        created_at=now,
    )
    session.add(request)
    await session.flush()

    log.info(
        "member_request.submitted",
        request_id=str(request.id),
        user_id=str(user.id),
        org_id=str(org.id),
    )
    return request, org


async def cancel(
    user: User, organization_id: Optional[uuid.UUID], session: AsyncSession
) -> None:
    """Delete the caller's pending request (for one organization, else the latest)."""
    stmt = select(MemberRequest).where(
        MemberRequest.user_id == user.id,
        MemberRequest.status == RequestStatus.PENDING.value,
    )
    if organization_id is not None:
        stmt = stmt.where(MemberRequest.organization_id == organization_id)
    result = await session.execute(
        stmt.order_by(MemberRequest.created_at.desc()).limit(1)
    )
    request = result.scalars().first()
    if request is None:
        raise NotFound("No pending request found")

    await session.delete(request)
    await session.flush()
    log.info("member_request.cancelled", request_id=str(request.id), user_id=str(user.id))


async def latest(
    user: User, session: AsyncSession
) -> Optional[tuple[MemberRequest, Organization]]:
    """Most recently created request in any state, with its organization."""
    result = await session.execute(
        select(MemberRequest, Organization)
        .join(Organization, Organization.id == MemberRequest.organization_id)
        .where(MemberRequest.user_id == user.id)
        .order_by(MemberRequest.created_at.desc())
        .limit(1)
    )
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


async def list_pending(
    user: User, session: AsyncSession
) -> list[tuple[MemberRequest, User]]:
    """Pending requests for the caller's current organization, newest first."""
    org, _ = await membership.require_role(user, REVIEWER_ROLES, session)
    result = await session.execute(
        select(MemberRequest, User)
        .join(User, User.id == MemberRequest.user_id)
        .where(
            MemberRequest.organization_id == org.id,
            MemberRequest.status == RequestStatus.PENDING.value,
        )
        .order_by(MemberRequest.requested_at.desc())
    )
    return [(req, requester) for req, requester in result.all()]


async def _load_for_review(
    user: User, request_id: uuid.UUID, session: AsyncSession
) -> tuple[MemberRequest, Organization]:
    org, _ = await membership.require_role(user, REVIEWER_ROLES, session)
    request = await session.get(MemberRequest, request_id)
    if request is None:
        raise NotFound("Request not found")
    if request.organization_id != org.id:
        raise Forbidden("Request belongs to another organization")
    if request.status != RequestStatus.PENDING.value:
        raise Conflict(
            f"Request has already been {request.status}",
            details={"status": request.status},
        )
    return request, org


def _mark_processed(request: MemberRequest, status: RequestStatus, reviewer: User) -> None:
    request.status = status.value
    request.processed_at = utcnow()
    request.processed_by = reviewer.id


async def approve(
    user: User, request_id: uuid.UUID, session: AsyncSession
) -> MemberRequest:
    """Admit the requester as an active Member of the caller's organization."""
    request, org = await _load_for_review(user, request_id, session)
    requester = await membership.get_user(request.user_id, session)

    roster = await membership.get_roster_entry(org.id, requester.id, session)
    if roster is not None and roster.is_active:
        raise Conflict(
            "User is already a member of this organization",
            details={"memberRole": roster.role},
        )

    await membership.add_member(org, requester, session, Role.MEMBER)
    _mark_processed(request, RequestStatus.APPROVED, user)
    await session.flush()

    log.info(
        "member_request.approved",
        request_id=str(request.id),
        user_id=str(requester.id),
        org_id=str(org.id),
        processed_by=str(user.id),
    )
    return request


async def reject(
    user: User, request_id: uuid.UUID, session: AsyncSession
) -> MemberRequest:
    request, org = await _load_for_review(user, request_id, session)
    _mark_processed(request, RequestStatus.REJECTED, user)
    await session.flush()

    log.info(
        "member_request.rejected",
        request_id=str(request.id),
        user_id=str(request.user_id),
        org_id=str(org.id),
        processed_by=str(user.id),
    )
    return request
