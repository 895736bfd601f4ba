"""Typed failure conditions raised by the task engine.

Every expected failure of a task operation is one of these classes. Storage
faults are never wrapped: `SQLAlchemyError` propagates unchanged so the HTTP
layer can log it and answer with a generic 500.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import status

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID


class TaskError(Exception):
    """Base class for expected task-engine failures."""

    code = "task_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, object]:
        return {"code": self.code, "message": self.message}


class TaskNotFoundError(TaskError):
    """Task is missing, soft-deleted, or owned by another user.

    The three cases are reported identically so callers cannot probe for
    tasks that belong to someone else.
    """

    code = "task_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, task_id: UUID) -> None:
        super().__init__(f"Task {task_id} not found.")
        self.task_id = task_id


class TaskHierarchyError(TaskError):
    """Self-parenting, missing parent, or cycle creation attempt."""

    code = "hierarchy_violation"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, reason: str) -> None:
        super().__init__(f"Task hierarchy violation: {reason}")
        self.reason = reason


class TaskCompletionBlockedError(TaskError):
    """Pending→Done requested while a descendant is still pending."""

    code = "completion_blocked"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reason: str, *, pending_task_ids: Iterable[UUID] = ()) -> None:
        super().__init__(f"Task cannot be completed: {reason}")
        self.reason = reason
        self.pending_task_ids = sorted(pending_task_ids, key=str)

    def to_detail(self) -> dict[str, object]:
        detail = super().to_detail()
        detail["pending_task_ids"] = [str(task_id) for task_id in self.pending_task_ids]
        return detail


class TaskDeletionBlockedError(TaskError):
    """Deletion requested for a task that is already done."""

    code = "deletion_blocked"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reason: str) -> None:
        super().__init__(f"Task cannot be deleted: {reason}")
        self.reason = reason


class TaskValidationError(TaskError):
    """Structurally invalid input that reached the engine."""

    code = "validation_failed"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Task validation failed: {', '.join(self.errors)}")

    def to_detail(self) -> dict[str, object]:
        detail = super().to_detail()
        detail["errors"] = list(self.errors)
        return detail
