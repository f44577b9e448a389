"""Member management schemas: directory, role changes, removal."""

from __future__ import annotations

from typing import List, Optional

from pydantic import field_validator

from .common import APIResponse, CamelModel, Role
from .organizations import SwitchedTo


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RoleChangeRequest(CamelModel):
    """Change a member's role in the caller's current organization."""
    new_role: Optional[str] = None

    @field_validator("new_role")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MemberRead(CamelModel):
    id: str
    name: str
    email: str
    role: Role
    skills: List[str] = []
    projects: List[str] = []


class MemberListResponse(APIResponse):
    members: List[MemberRead]
    count: int


class RoleChangeUser(CamelModel):
    id: str
    name: str
    email: str
    role: Role
    previous_role: Role


class RoleChangeResponse(APIResponse):
    previous_role: Role
    new_role: Role
    user: RoleChangeUser


class MemberRemoveResponse(APIResponse):
    switched_to: Optional[SwitchedTo] = None
