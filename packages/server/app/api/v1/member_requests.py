"""
Join request API endpoints.

POST   /api/v1/member-requests/create          - Request to join by invite code
POST   /api/v1/member-requests/cancel          - Withdraw a pending request
GET    /api/v1/member-requests/pending         - Pending requests (Admin/Lead)
GET    /api/v1/member-requests/status          - Caller's latest request
POST   /api/v1/member-requests/{id}/approve    - Approve (Admin/Lead)
POST   /api/v1/member-requests/{id}/reject     - Reject (Admin/Lead)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.models.member_request import MemberRequest
from app.services import member_requests as request_service
from taskhive_shared.schemas.common import APIResponse
from taskhive_shared.schemas.member_requests import (
    MemberRequestCancel,
    MemberRequestCreate,
    MemberRequestCreateResponse,
    MemberRequestDetail,
    MemberRequestProcessResponse,
    MemberRequestRead,
    MemberRequestStatusResponse,
    PendingRequestItem,
    PendingRequestsResponse,
    ProcessedRequest,
    RequestOrg,
    RequestUser,
)

router = APIRouter()


def _processed(request: MemberRequest) -> ProcessedRequest:
    return ProcessedRequest(
        id=str(request.id),
        status=request.status,
        user_id=str(request.user_id),
        organization_id=str(request.organization_id),
        processed_at=request.processed_at,
        processed_by=str(request.processed_by),
    )


@router.post("/create", response_model=MemberRequestCreateResponse, status_code=201)
async def create_request(
    body: MemberRequestCreate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Submit a join request. Membership is granted only on approval."""
    request, org = await request_service.submit(auth.user, body.invite_code, session)
    return MemberRequestCreateResponse(
        message=f"Request sent to {org.name}. Waiting for approval.",
        request=MemberRequestRead(
            id=str(request.id),
            status=request.status,
            organization_id=str(org.id),
            organization_name=org.name,
        ),
    )


@router.post("/cancel", response_model=APIResponse)
async def cancel_request(
    body: Optional[MemberRequestCancel] = Body(default=None),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    organization_id = body.organization_id if body else None
    await request_service.cancel(auth.user, organization_id, session)
    return APIResponse(message="Request cancelled")


@router.get("/pending", response_model=PendingRequestsResponse)
async def list_pending(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Pending requests for the caller's current organization (Admin or Lead)."""
    rows = await request_service.list_pending(auth.user, session)
    items = [
        PendingRequestItem(
            id=str(req.id),
            status=req.status,
            requested_at=req.requested_at,
            user=RequestUser(
                id=str(requester.id),
                name=requester.name,
                email=requester.email,
                profile_picture=requester.profile_picture,
            ),
        )
        for req, requester in rows
    ]
    return PendingRequestsResponse(requests=items, count=len(items))


@router.get("/status", response_model=MemberRequestStatusResponse)
async def request_status(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    found = await request_service.latest(auth.user, session)
    if found is None:
        return MemberRequestStatusResponse(has_request=False)

    request, org = found
    return MemberRequestStatusResponse(
        has_request=True,
        status=request.status,
        request=MemberRequestDetail(
            id=str(request.id),
            status=request.status,
            organization=RequestOrg(id=str(org.id), name=org.name, handle=org.handle),
            requested_at=request.requested_at,
            processed_at=request.processed_at,
        ),
    )


@router.post("/{requestId}/approve", response_model=MemberRequestProcessResponse)
async def approve_request(
    requestId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    request = await request_service.approve(auth.user, requestId, session)
    return MemberRequestProcessResponse(message="Request approved", request=_processed(request))


@router.post("/{requestId}/reject", response_model=MemberRequestProcessResponse)
async def reject_request(
    requestId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    request = await request_service.reject(auth.user, requestId, session)
    return MemberRequestProcessResponse(message="Request rejected", request=_processed(request))
