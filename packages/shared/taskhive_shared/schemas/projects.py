from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .common import APIResponse, CamelModel, ProjectStatus, TaskPriority, TaskStatus


class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    lead_id: UUID
    member_ids: List[UUID] = Field(default_factory=list)


class ProjectLeadUpdate(CamelModel):
    lead_id: Optional[UUID] = None


class ProjectMemberAdd(CamelModel):
    user_ids: List[UUID]


class ProjectMemberRead(CamelModel):
    id: str
    name: str
    email: str


class ProjectTaskRead(CamelModel):
    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    assignee_id: Optional[str] = None


class ProjectRead(CamelModel):
    id: str
    organization_id: str
    name: str
    description: str = ""
    status: ProjectStatus
    lead_id: str
    lead: str
    lead_email: str
    members: List[ProjectMemberRead] = []


class ProjectResponse(APIResponse):
    project: ProjectRead


class ProjectDetailResponse(APIResponse):
    project: ProjectRead
    tasks: List[ProjectTaskRead]
    task_count: int


class LeadSummary(CamelModel):
    id: str
    lead: str
    lead_email: str
    lead_id: str


class LeadReassignResponse(APIResponse):
    reassigned_tasks_count: int
    project: LeadSummary


class ProjectMembersResponse(APIResponse):
    added: List[str] = []


class ProjectStatusUpdate(CamelModel):
    status: Optional[str] = None


class ProjectDeleteResponse(APIResponse):
    deleted_tasks: int


class LedProjectRead(CamelModel):
    id: str
    name: str
    description: str = ""
    status: ProjectStatus
    lead: str
    lead_email: str
    lead_id: str
    member_count: int
    task_count: int
    created_at: datetime


class LedProjectsResponse(APIResponse):
    projects: List[LedProjectRead]
    count: int
