# ruff: noqa

from __future__ import annotations

from uuid import uuid4

import pytest

from conftest import add_task
from tasktree.models.tasks import TaskPriority, TaskStatus
from tasktree.schemas.tasks import TaskCreate, TaskUpdate
from tasktree.services.task_errors import (
    TaskHierarchyError,
    TaskNotFoundError,
    TaskValidationError,
)
from tasktree.services.tasks import (
    NO_UPDATES_MESSAGE,
    create_task,
    get_task,
    get_task_context,
    update_task,
)


@pytest.mark.asyncio
async def test_create_task_with_defaults(session, owner) -> None:
    task = await create_task(session, owner.id, TaskCreate(title="  Plan trip  "))

    assert task.title == "Plan trip"
    assert task.status == TaskStatus.PENDING.value
    assert task.priority == int(TaskPriority.MEDIUM)
    assert task.parent_id is None
    assert task.completed_at is None


@pytest.mark.asyncio
async def test_create_done_task_sets_completed_at(session, owner) -> None:
    task = await create_task(
        session,
        owner.id,
        TaskCreate(title="Already done", status=TaskStatus.DONE),
    )

    assert task.completed_at is not None


@pytest.mark.asyncio
async def test_create_task_under_missing_parent_fails(session, owner) -> None:
    with pytest.raises(TaskHierarchyError):
        await create_task(session, owner.id, TaskCreate(title="Orphan", parent_id=uuid4()))


@pytest.mark.asyncio
async def test_update_requires_at_least_one_field(session, owner) -> None:
    task = await add_task(session, owner.id, "Task")

    with pytest.raises(TaskValidationError) as exc:
        await update_task(session, owner.id, task.id, TaskUpdate())

    assert exc.value.errors == [NO_UPDATES_MESSAGE]


@pytest.mark.asyncio
async def test_update_moves_task_and_patches_fields(session, owner) -> None:
    new_parent = await add_task(session, owner.id, "New parent")
    task = await add_task(session, owner.id, "Task")

    updated = await update_task(
        session,
        owner.id,
        task.id,
        TaskUpdate(title="Renamed", priority=TaskPriority.CRITICAL, parent_id=new_parent.id),
    )

    assert updated.title == "Renamed"
    assert updated.priority == 1
    assert updated.parent_id == new_parent.id


@pytest.mark.asyncio
async def test_update_with_explicit_null_parent_detaches(session, owner) -> None:
    parent = await add_task(session, owner.id, "Parent")
    task = await add_task(session, owner.id, "Child", parent=parent)

    updated = await update_task(
        session,
        owner.id,
        task.id,
        TaskUpdate.model_validate({"parent_id": None}),
    )

    assert updated.parent_id is None


@pytest.mark.asyncio
async def test_update_rejects_move_under_descendant(session, owner) -> None:
    root = await add_task(session, owner.id, "Root")
    child = await add_task(session, owner.id, "Child", parent=root)

    with pytest.raises(TaskHierarchyError):
        await update_task(session, owner.id, root.id, TaskUpdate(parent_id=child.id))

    await session.refresh(root)
    assert root.parent_id is None


@pytest.mark.asyncio
async def test_get_task_context(session, owner) -> None:
    root = await add_task(session, owner.id, "Root")
    child = await add_task(session, owner.id, "Child", parent=root)
    await add_task(session, owner.id, "Leaf 1", parent=child)
    await add_task(session, owner.id, "Leaf 2", parent=child)

    task, ancestors, children_count = await get_task_context(session, owner.id, child.id)

    assert task.id == child.id
    assert [ancestor.id for ancestor in ancestors] == [root.id]
    assert children_count == 2


@pytest.mark.asyncio
async def test_get_task_missing(session, owner) -> None:
    with pytest.raises(TaskNotFoundError):
        await get_task(session, owner.id, uuid4())
