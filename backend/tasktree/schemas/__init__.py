"""Public schema exports shared across API route modules."""

from tasktree.schemas.health import HealthStatusResponse
from tasktree.schemas.pagination import TaskPage, TaskPageParams
from tasktree.schemas.tasks import (
    TaskCreate,
    TaskDeleteRead,
    TaskDescendantsRead,
    TaskDetailRead,
    TaskFilterParams,
    TaskRead,
    TaskStatsRead,
    TaskStatusUpdate,
    TaskUpdate,
)

__all__ = [
    "HealthStatusResponse",
    "TaskCreate",
    "TaskDeleteRead",
    "TaskDescendantsRead",
    "TaskDetailRead",
    "TaskFilterParams",
    "TaskPage",
    "TaskPageParams",
    "TaskRead",
    "TaskStatsRead",
    "TaskStatusUpdate",
    "TaskUpdate",
]
