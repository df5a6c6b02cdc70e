# Table models, imported so SQLModel.metadata is complete for Alembic and init_db.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .team import Team  # noqa: F401
from .membership import TeamMembership  # noqa: F401
from .task import Task  # noqa: F401
