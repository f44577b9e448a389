"""
Organization-related Pydantic schemas shared between server and clients.

Covers: org creation, invite lookup, join by invite code, leave, switching
the current organization and the membership reconciliation report.
"""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import Field

from .common import APIResponse, CamelModel, OrgSummary, Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=100, description="Organization display name")
    handle: str = Field(
        ...,
        min_length=2,
        max_length=50,
        pattern=r"^[a-z0-9-]+$",
        description="URL-safe org identifier (lowercase letters, numbers, hyphens)",
    )


class JoinOrgRequest(CamelModel):
    invite_code: Optional[str] = Field(default=None, max_length=32)


class SwitchOrgRequest(CamelModel):
    organization_id: Optional[uuid.UUID] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgCreateResponse(APIResponse):
    organization: OrgSummary
    token: str


class InvitePreview(CamelModel):
    id: str
    name: str
    handle: str
    member_count: int
    admin_name: str
    admin_email: Optional[str] = None


class InvitePreviewResponse(APIResponse):
    organization: InvitePreview


class MyOrgItem(OrgSummary):
    current: bool = False


class MyOrgsResponse(APIResponse):
    organizations: list[MyOrgItem]
    count: int


class JoinOrgResponse(APIResponse):
    organization: OrgSummary
    status: str = "pending"


class SwitchedTo(CamelModel):
    id: str
    name: str
    role: Role


class LeaveOrgResponse(APIResponse):
    switched_to: Optional[SwitchedTo] = None


class SwitchOrgResponse(APIResponse):
    organization: OrgSummary
    role: Role
    token: str


class ReconcileReport(CamelModel):
    organizations_processed: int = 0
    statuses_normalized: int = 0
    statuses_reset: int = 0
    owners_restored: int = 0
    projections_created: int = 0
    projections_updated: int = 0
    projections_removed: int = 0
    users_repointed: int = 0

    @property
    def total_repairs(self) -> int:
        return (
            self.statuses_normalized
            + self.statuses_reset
            + self.owners_restored
            + self.projections_created
            + self.projections_updated
            + self.projections_removed
            + self.users_repointed
        )


class ReconcileResponse(APIResponse):
    stats: ReconcileReport
