"""
Member Management API endpoints.

GET    /api/v1/members                  - Member directory of the current org
PATCH  /api/v1/members/{userId}/role    - Change a member's role (Admin)
DELETE /api/v1/members/{userId}/remove  - Remove a member (Admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import removal as removal_service
from app.services import roles as role_service
from app.services import users as user_service
from app.services.organizations import switched_to
from taskhive_shared.schemas.users import (
    MemberListResponse,
    MemberRemoveResponse,
    RoleChangeRequest,
    RoleChangeResponse,
    RoleChangeUser,
)

router = APIRouter()


@router.get("", response_model=MemberListResponse)
async def list_members(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """List the members of the caller's current organization."""
    members = await user_service.list_org_members(auth.user, session)
    return MemberListResponse(members=members, count=len(members))


@router.patch("/{userId}/role", response_model=RoleChangeResponse)
async def change_role(
    userId: uuid.UUID,
    body: RoleChangeRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Promote or demote a member (Admin only)."""
    previous, new, target = await role_service.set_role(auth.user, userId, body.new_role, session)
    return RoleChangeResponse(
        message=f"{target.name} is now {new.value}",
        previous_role=previous,
        new_role=new,
        user=RoleChangeUser(
            id=str(target.id),
            name=target.name,
            email=target.email,
            role=new,
            previous_role=previous,
        ),
    )


@router.delete("/{userId}/remove", response_model=MemberRemoveResponse)
async def remove_member(
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Remove a member from the organization (Admin only)."""
    switched = await removal_service.remove(auth.user, userId, session)
    return MemberRemoveResponse(
        message="Member removed from organization",
        switched_to=switched_to(switched),
    )
