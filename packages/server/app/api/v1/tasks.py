"""
Task API endpoints.

POST   /api/v1/tasks                     - Create a task (Admin or project lead)
GET    /api/v1/tasks?projectId=          - List a project's tasks
PATCH  /api/v1/tasks/{taskId}/reassign   - Reassign a task (Admin or project lead)
PATCH  /api/v1/tasks/{taskId}/status     - Change task status (assignee, Admin or project lead)
DELETE /api/v1/tasks/{taskId}            - Delete a task
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import tasks as task_service
from taskhive_shared.schemas.common import APIResponse
from taskhive_shared.schemas.tasks import (
    TaskCreate,
    TaskListResponse,
    TaskReassign,
    TaskResponse,
    TaskStatusUpdate,
)

router = APIRouter()


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    body: TaskCreate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.create_task(session, auth.user, body)
    return TaskResponse(message="Task created", task=task_service.to_read(task))


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    projectId: uuid.UUID = Query(...),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    tasks = await task_service.list_project_tasks(session, auth.user, projectId)
    return TaskListResponse(tasks=task_service.to_read_many(tasks), count=len(tasks))


@router.patch("/{taskId}/reassign", response_model=TaskResponse)
async def reassign_task(
    taskId: uuid.UUID,
    body: TaskReassign,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.reassign_task(session, auth.user, taskId, body.new_assignee_id)
    return TaskResponse(message="Task reassigned", task=task_service.to_read(task))


@router.patch("/{taskId}/status", response_model=TaskResponse)
async def update_status(
    taskId: uuid.UUID,
    body: TaskStatusUpdate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.update_task_status(session, auth.user, taskId, body.status)
    return TaskResponse(message="Task status updated", task=task_service.to_read(task))


@router.delete("/{taskId}", response_model=APIResponse)
async def delete_task(
    taskId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await task_service.delete_task(session, auth.user, taskId)
    return APIResponse(message="Task deleted")
