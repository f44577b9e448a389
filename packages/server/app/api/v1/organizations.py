"""
Organization API endpoints.

POST   /api/v1/organizations/create          - Create an org (caller becomes owner)
GET    /api/v1/organizations/invite/{code}   - Public invite preview
GET    /api/v1/organizations/mine            - Orgs the caller actively belongs to
POST   /api/v1/organizations/join            - Request to join by invite code
POST   /api/v1/organizations/leave           - Leave the current org
POST   /api/v1/organizations/switch          - Change the current org
POST   /api/v1/organizations/reconcile       - Repair membership projection (Admin)
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, issue_token_for
from app.core.database import get_session
from app.services import member_requests as request_service
from app.services import membership
from app.services import organizations as org_service
from app.services import reconcile as reconcile_service
from app.services import removal as removal_service
from taskhive_shared.schemas.common import Role
from taskhive_shared.schemas.organizations import (
    InvitePreviewResponse,
    JoinOrgRequest,
    JoinOrgResponse,
    LeaveOrgResponse,
    MyOrgItem,
    MyOrgsResponse,
    OrgCreateRequest,
    OrgCreateResponse,
    ReconcileResponse,
    SwitchOrgRequest,
    SwitchOrgResponse,
)

log = structlog.get_logger()
router = APIRouter()


@router.post("/create", response_model=OrgCreateResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Create an organization. The caller becomes its owner and Admin."""
    org = await org_service.create_org(body, auth.user, session)
    return OrgCreateResponse(
        message="Organization created",
        organization=org_service.org_summary(org, Role.ADMIN.value, include_invite_code=True),
        token=issue_token_for(auth.user),
    )


@router.get("/invite/{inviteCode}", response_model=InvitePreviewResponse)
async def invite_preview(
    inviteCode: str,
    session: AsyncSession = Depends(get_session),
):
    """Look up the organization behind an invite code (no authentication)."""
    preview = await org_service.invite_preview(inviteCode, session)
    return InvitePreviewResponse(organization=preview)


@router.get("/mine", response_model=MyOrgsResponse)
async def my_orgs(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    rows = await org_service.list_user_orgs(auth.user, session)
    current = auth.org_id
    items = [
        MyOrgItem(
            **org_service.org_summary(org, role).model_dump(),
            current=org.id == current,
        )
        for org, role in rows
    ]
    return MyOrgsResponse(organizations=items, count=len(items))


@router.post("/join", response_model=JoinOrgResponse, status_code=201)
async def join_org(
    body: JoinOrgRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Request to join an organization. Same as creating a member request."""
    _request, org = await request_service.submit(auth.user, body.invite_code, session)
    return JoinOrgResponse(
        message=f"Request sent to {org.name}. Waiting for approval.",
        organization=org_service.org_summary(org),
    )


@router.post("/leave", response_model=LeaveOrgResponse)
async def leave_org(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    switched = await removal_service.leave(auth.user, session)
    return LeaveOrgResponse(
        message="You have left the organization",
        switched_to=org_service.switched_to(switched),
    )


@router.post("/switch", response_model=SwitchOrgResponse)
async def switch_org(
    body: SwitchOrgRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Make another organization current. Returns a token for the new context."""
    org, role = await org_service.switch_org(auth.user, body.organization_id, session)
    return SwitchOrgResponse(
        message=f"Switched to {org.name}",
        organization=org_service.org_summary(org, role),
        role=Role(role),
        token=issue_token_for(auth.user),
    )


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_org(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Rebuild the caller's organization membership projection from its roster (Admin only)."""
    org, _ = await membership.require_role(auth.user, (Role.ADMIN,), session)
    report = await reconcile_service.reconcile(session, org.id)
    log.info("org.reconcile_requested", org_id=str(org.id), requested_by=str(auth.user_id))
    return ReconcileResponse(stats=report)
