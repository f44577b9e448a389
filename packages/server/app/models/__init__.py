# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .membership import OrganizationMember, UserOrganization  # noqa: F401
from .member_request import MemberRequest  # noqa: F401
from .project import Project, ProjectMember  # noqa: F401
from .task import Task  # noqa: F401
