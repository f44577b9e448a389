from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    ADMIN = "Admin"
    LEAD = "Lead"
    MEMBER = "Member"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "MemberStatus":
        """Roster rows written before the status column existed read as active.

        Any other unrecognized value reads as pending, so it never grants access.
        """
        if not value:
            return cls.ACTIVE
        try:
            return cls(value)
        except ValueError:
            return cls.PENDING

    @classmethod
    def is_known(cls, value: Optional[str]) -> bool:
        return value in {m.value for m in cls}


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProjectStatus(str, Enum):
    PLANNING = "Planning"
    IN_PROGRESS = "In Progress"
    CLOSED = "Closed"


class TaskStatus(str, Enum):
    TODO = "Todo"
    IN_PROGRESS = "In Progress"
    DONE = "Done"
    BLOCKED = "Blocked"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case is accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class APIResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[dict[str, Any]] = None


class UserSummary(CamelModel):
    id: str
    name: str
    email: str


class OrgSummary(CamelModel):
    id: str
    name: str
    handle: str
    logo: str
    invite_code: Optional[str] = None
    role: Optional[Role] = None
