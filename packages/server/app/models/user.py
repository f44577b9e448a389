"""User model (Identity Store)."""

from typing import Optional
import uuid

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    name: str = Field(nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    password_hash: Optional[str] = Field(default=None)
    profile_picture: Optional[str] = None
    skills: list[str] = Field(default_factory=list, sa_type=JSON, nullable=False)

    # Denormalized role in the current organization
    role: str = Field(default="Member", nullable=False)
    # Legacy single-organization pointer, mirrors current_organization_id
    organization_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id", index=True)
    current_organization_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="organizations.id", index=True
    )

    @property
    def active_organization_id(self) -> Optional[uuid.UUID]:
        return self.current_organization_id or self.organization_id
