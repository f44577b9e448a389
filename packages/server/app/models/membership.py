"""
Membership tables.

``organization_members`` is the organization's roster and the authoritative
record. ``user_organizations`` is the user-side projection of the same fact;
both are written only through ``app.services.membership``.
"""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskhive_shared.schemas.common import MemberStatus

from .base import utcnow


class OrganizationMember(SQLModel, table=True):
    __tablename__ = "organization_members"

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    role: str = Field(nullable=False)  # Admin | Lead | Member
    status: Optional[str] = Field(default=MemberStatus.ACTIVE.value)  # active | pending, NULL on legacy rows
    joined_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )

    @property
    def effective_status(self) -> MemberStatus:
        return MemberStatus.normalize(self.status)

    @property
    def is_active(self) -> bool:
        return self.effective_status == MemberStatus.ACTIVE


class UserOrganization(SQLModel, table=True):
    __tablename__ = "user_organizations"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", primary_key=True, index=True)
    role: str = Field(nullable=False)
    joined_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
