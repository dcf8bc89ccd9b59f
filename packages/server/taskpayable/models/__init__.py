# SQLModel definitions: imported here to ensure metadata is populated.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .membership import OrganizationMembership  # noqa: F401
from .project import Project  # noqa: F401
from .assignments import ProjectAssignment  # noqa: F401
from .task import Task  # noqa: F401
from .invitation import InvitationLink  # noqa: F401
