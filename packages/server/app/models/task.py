"""Task model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    project_id: Optional[uuid.UUID] = Field(default=None, foreign_key="projects.id", index=True)
    assigned_to_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    status: str = Field(nullable=False, default="Todo")  # Todo | In Progress | Done | Blocked
    priority: str = Field(nullable=False, default="Medium")  # Low | Medium | High
