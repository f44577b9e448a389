"""Join request model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow

_PENDING_ONLY = sa.text("status = 'pending'")


class MemberRequest(UUIDMixin, SQLModel, table=True):
    __tablename__ = "member_requests"
    __table_args__ = (
        # At most one pending request per (user, organization)
        sa.Index(
            "uq_member_requests_pending",
            "user_id",
            "organization_id",
            unique=True,
            postgresql_where=_PENDING_ONLY,
            sqlite_where=_PENDING_ONLY,
        ),
        sa.Index("ix_member_requests_org_status", "organization_id", "status"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False)
    invite_code: str = Field(nullable=False)
    status: str = Field(default="pending", nullable=False)  # pending | approved | rejected
    requested_at: datetime = Field(
        default_factory=utcnow, nullable=False, sa_type=sa.DateTime(timezone=True)
    )
    processed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    processed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(
        default_factory=utcnow, nullable=False, sa_type=sa.DateTime(timezone=True)
    )
