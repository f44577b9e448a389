"""Organization model (Organization Store)."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True)
    handle: str = Field(unique=True, nullable=False, index=True)
    admin_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    invite_code: str = Field(unique=True, nullable=False, index=True)
    # Bumped on every roster or role mutation; see services.membership.claim_organization
    version: int = Field(default=1, nullable=False)

    @property
    def logo(self) -> str:
        return self.name[:1].upper()
