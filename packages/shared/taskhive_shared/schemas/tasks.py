from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .common import APIResponse, CamelModel, TaskPriority, TaskStatus


class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    project_id: UUID
    assigned_to_id: Optional[UUID] = None
    priority: TaskPriority = TaskPriority.MEDIUM


class TaskReassign(CamelModel):
    new_assignee_id: Optional[UUID] = None


class TaskRead(CamelModel):
    id: str
    organization_id: str
    project_id: Optional[str] = None
    title: str
    description: str = ""
    status: TaskStatus
    priority: TaskPriority
    assigned_to_id: Optional[str] = None
    created_at: datetime


class TaskResponse(APIResponse):
    task: TaskRead


class TaskListResponse(APIResponse):
    tasks: List[TaskRead]
    count: int


class TaskStatusUpdate(CamelModel):
    status: Optional[str] = None
