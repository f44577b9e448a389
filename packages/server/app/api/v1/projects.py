"""
Project API endpoints.

POST   /api/v1/projects                             - Create a project (Admin)
GET    /api/v1/projects/lead                        - Projects the caller leads
GET    /api/v1/projects/lead/members                - Members on the caller's projects
GET    /api/v1/projects/{projectId}                 - Project detail with tasks
PATCH  /api/v1/projects/{projectId}                 - Reassign the project lead (Admin)
PATCH  /api/v1/projects/{projectId}/status          - Change project status (Admin or lead)
DELETE /api/v1/projects/{projectId}                 - Delete a closed, finished project (Admin)
POST   /api/v1/projects/{projectId}/members         - Add project members
DELETE /api/v1/projects/{projectId}/members/{userId} - Remove a project member
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import projects as project_service
from taskhive_shared.schemas.common import APIResponse
from taskhive_shared.schemas.projects import (
    LedProjectsResponse,
    LeadReassignResponse,
    LeadSummary,
    ProjectCreate,
    ProjectDeleteResponse,
    ProjectDetailResponse,
    ProjectLeadUpdate,
    ProjectMemberAdd,
    ProjectMembersResponse,
    ProjectResponse,
    ProjectStatusUpdate,
)
from taskhive_shared.schemas.users import MemberListResponse

router = APIRouter()


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    body: ProjectCreate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.create_project(session, auth.user, body)
    return ProjectResponse(
        message="Project created",
        project=await project_service.project_read(session, project),
    )


@router.get("/lead", response_model=LedProjectsResponse)
async def list_led_projects(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    projects = await project_service.list_led_projects(session, auth.user)
    return LedProjectsResponse(projects=projects, count=len(projects))


@router.get("/lead/members", response_model=MemberListResponse)
async def list_lead_team(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    members = await project_service.list_lead_team(session, auth.user)
    return MemberListResponse(members=members, count=len(members))


@router.get("/{projectId}", response_model=ProjectDetailResponse)
async def get_project(
    projectId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    project, tasks = await project_service.get_project_detail(session, auth.user, projectId)
    return ProjectDetailResponse(
        project=await project_service.project_read(session, project),
        tasks=project_service.task_summaries(tasks),
        task_count=len(tasks),
    )


@router.patch("/{projectId}", response_model=LeadReassignResponse)
async def reassign_lead(
    projectId: uuid.UUID,
    body: ProjectLeadUpdate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Hand the project to a new lead; their tasks and roles follow."""
    project, lead, moved = await project_service.reassign_lead(
        session, auth.user, projectId, body.lead_id
    )
    return LeadReassignResponse(
        message=f"Project lead changed to {lead.name}. {moved} task(s) reassigned.",
        reassigned_tasks_count=moved,
        project=LeadSummary(
            id=str(project.id),
            lead=lead.name,
            lead_email=lead.email,
            lead_id=str(lead.id),
        ),
    )


@router.post("/{projectId}/members", response_model=ProjectMembersResponse)
async def add_members(
    projectId: uuid.UUID,
    body: ProjectMemberAdd,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    added = await project_service.add_members(session, auth.user, projectId, body.user_ids)
    return ProjectMembersResponse(added=[str(uid) for uid in added])


@router.delete("/{projectId}/members/{userId}", response_model=APIResponse)
async def remove_member(
    projectId: uuid.UUID,
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await project_service.remove_member(session, auth.user, projectId, userId)
    return APIResponse(message="Member removed from project")


@router.patch("/{projectId}/status", response_model=ProjectResponse)
async def update_status(
    projectId: uuid.UUID,
    body: ProjectStatusUpdate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.update_project_status(session, auth.user, projectId, body.status)
    return ProjectResponse(
        message=f"Project status changed to {project.status}",
        project=await project_service.project_read(session, project),
    )


@router.delete("/{projectId}", response_model=ProjectDeleteResponse)
async def delete_project(
    projectId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    name, deleted = await project_service.delete_project(session, auth.user, projectId)
    return ProjectDeleteResponse(
        message=f'Project "{name}" and {deleted} associated task(s) deleted',
        deleted_tasks=deleted,
    )
