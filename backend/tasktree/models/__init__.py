"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from tasktree.models.tasks import Task, TaskPriority, TaskStatus
from tasktree.models.users import User

__all__ = [
    "Task",
    "TaskPriority",
    "TaskStatus",
    "User",
]
