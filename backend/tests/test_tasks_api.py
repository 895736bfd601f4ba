# ruff: noqa: INP001
"""HTTP-level tests for the task routes, auth, and error envelopes."""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi import APIRouter, FastAPI
from fastapi_pagination import add_pagination
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from conftest import add_user
from tasktree.api.tasks import router as tasks_router
from tasktree.core import auth as auth_module
from tasktree.core.error_handling import REQUEST_ID_HEADER, install_error_handling
from tasktree.core.user_tokens import generate_user_token, hash_user_token
from tasktree.db.session import get_session


def _build_test_app(session_maker: async_sessionmaker[AsyncSession]) -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(tasks_router)
    app.include_router(api_v1)
    add_pagination(app)

    async def _override_get_session() -> AsyncSession:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[auth_module.get_session] = _override_get_session
    return app


async def _client_for(session_maker, email: str = "api@example.com") -> tuple[AsyncClient, dict]:
    token = generate_user_token()
    async with session_maker() as session:
        await add_user(session, email, token_hash=hash_user_token(token))
    client = AsyncClient(
        transport=ASGITransport(app=_build_test_app(session_maker)),
        base_url="http://testserver",
    )
    return client, {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_requests_without_valid_token_are_rejected(session_maker) -> None:
    client, _ = await _client_for(session_maker)
    async with client:
        missing = await client.get("/api/v1/tasks")
        invalid = await client.get(
            "/api/v1/tasks",
            headers={"Authorization": "Bearer not-a-real-token"},
        )

    assert missing.status_code == 401
    assert invalid.status_code == 401
    assert invalid.json()["request_id"] == invalid.headers[REQUEST_ID_HEADER]


@pytest.mark.asyncio
async def test_create_read_and_list_tasks(session_maker) -> None:
    client, headers = await _client_for(session_maker)
    async with client:
        root = await client.post("/api/v1/tasks", json={"title": "Root"}, headers=headers)
        assert root.status_code == 201
        root_id = root.json()["id"]

        child = await client.post(
            "/api/v1/tasks",
            json={"title": "Child", "parent_id": root_id, "priority": 1},
            headers=headers,
        )
        assert child.status_code == 201
        child_body = child.json()
        assert child_body["priority_label"] == "Critical"
        assert child_body["status"] == "pending"

        detail = await client.get(f"/api/v1/tasks/{child_body['id']}", headers=headers)
        assert detail.status_code == 200
        assert detail.json()["depth"] == 1
        assert detail.json()["ancestor_ids"] == [root_id]

        listing = await client.get(
            "/api/v1/tasks",
            params={"root_tasks_only": "true", "size": 5},
            headers=headers,
        )
        assert listing.status_code == 200
        body = listing.json()
        assert body["total"] == 1
        assert body["last_page"] == 1
        assert body["from"] == 1
        assert body["to"] == 1
        assert [item["id"] for item in body["items"]] == [root_id]


@pytest.mark.asyncio
async def test_completion_gate_over_http(session_maker) -> None:
    client, headers = await _client_for(session_maker)
    async with client:
        parent = (await client.post("/api/v1/tasks", json={"title": "P"}, headers=headers)).json()
        child = (
            await client.post(
                "/api/v1/tasks",
                json={"title": "C", "parent_id": parent["id"]},
                headers=headers,
            )
        ).json()

        blocked = await client.patch(f"/api/v1/tasks/{parent['id']}/complete", headers=headers)
        assert blocked.status_code == 409
        detail = blocked.json()["detail"]
        assert detail["code"] == "completion_blocked"
        assert detail["pending_task_ids"] == [child["id"]]

        done_child = await client.patch(
            f"/api/v1/tasks/{child['id']}/status",
            json={"status": "done"},
            headers=headers,
        )
        assert done_child.status_code == 200
        assert done_child.json()["completed_at"] is not None

        done_parent = await client.patch(f"/api/v1/tasks/{parent['id']}/complete", headers=headers)
        assert done_parent.status_code == 200
        assert done_parent.json()["status"] == "done"

        undeletable = await client.delete(f"/api/v1/tasks/{parent['id']}", headers=headers)
        assert undeletable.status_code == 409
        assert undeletable.json()["detail"]["code"] == "deletion_blocked"


@pytest.mark.asyncio
async def test_delete_cascades_and_hides_subtree(session_maker) -> None:
    client, headers = await _client_for(session_maker)
    async with client:
        root = (await client.post("/api/v1/tasks", json={"title": "R"}, headers=headers)).json()
        child = (
            await client.post(
                "/api/v1/tasks",
                json={"title": "C", "parent_id": root["id"]},
                headers=headers,
            )
        ).json()

        descendants = await client.get(f"/api/v1/tasks/{root['id']}/descendants", headers=headers)
        assert descendants.json()["descendant_ids"] == [child["id"]]

        deleted = await client.delete(f"/api/v1/tasks/{root['id']}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json()["deleted_count"] == 2

        gone = await client.get(f"/api/v1/tasks/{child['id']}", headers=headers)
        assert gone.status_code == 404
        assert gone.json()["detail"]["code"] == "task_not_found"


@pytest.mark.asyncio
async def test_reparent_cycle_is_rejected(session_maker) -> None:
    client, headers = await _client_for(session_maker)
    async with client:
        root = (await client.post("/api/v1/tasks", json={"title": "R"}, headers=headers)).json()
        child = (
            await client.post(
                "/api/v1/tasks",
                json={"title": "C", "parent_id": root["id"]},
                headers=headers,
            )
        ).json()

        resp = await client.patch(
            f"/api/v1/tasks/{root['id']}",
            json={"parent_id": child["id"]},
            headers=headers,
        )
        empty = await client.patch(f"/api/v1/tasks/{root['id']}", json={}, headers=headers)

    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "hierarchy_violation"
    assert empty.status_code == 422
    assert empty.json()["detail"]["errors"] == ["No updates provided"]


@pytest.mark.asyncio
async def test_invalid_filter_combinations_are_rejected(session_maker) -> None:
    client, headers = await _client_for(session_maker)
    async with client:
        toggles = await client.get(
            "/api/v1/tasks",
            params={"root_tasks_only": "true", "subtasks_only": "true"},
            headers=headers,
        )
        too_big = await client.get("/api/v1/tasks", params={"size": 101}, headers=headers)
        short_search = await client.get("/api/v1/tasks/search", params={"q": "a"}, headers=headers)

    assert toggles.status_code == 422
    assert too_big.status_code == 422
    assert short_search.status_code == 422
    assert short_search.json()["detail"]["code"] == "validation_failed"


@pytest.mark.asyncio
async def test_blank_search_filter_lists_everything(session_maker) -> None:
    client, headers = await _client_for(session_maker)
    async with client:
        for title in ("First", "Second"):
            await client.post("/api/v1/tasks", json={"title": title}, headers=headers)
        empty = await client.get("/api/v1/tasks", params={"search": ""}, headers=headers)
        spaces = await client.get("/api/v1/tasks", params={"search": "   "}, headers=headers)

    assert empty.status_code == 200
    assert empty.json()["total"] == 2
    assert spaces.status_code == 200
    assert spaces.json()["total"] == 2


@pytest.mark.asyncio
async def test_other_users_tasks_look_missing(session_maker) -> None:
    owner_client, owner_headers = await _client_for(session_maker, "owner@example.com")
    other_client, other_headers = await _client_for(session_maker, "other@example.com")
    async with owner_client, other_client:
        task = (
            await owner_client.post("/api/v1/tasks", json={"title": "Private"}, headers=owner_headers)
        ).json()

        foreign = await other_client.get(f"/api/v1/tasks/{task['id']}", headers=other_headers)
        missing = await other_client.get(f"/api/v1/tasks/{uuid4()}", headers=other_headers)

    assert foreign.status_code == missing.status_code == 404
    assert foreign.json()["detail"]["message"].startswith("Task ")


@pytest.mark.asyncio
async def test_stats_and_search_endpoints(session_maker) -> None:
    client, headers = await _client_for(session_maker)
    async with client:
        for title in ("Write report", "Read report", "Groceries"):
            await client.post("/api/v1/tasks", json={"title": title}, headers=headers)

        stats = await client.get("/api/v1/tasks/stats", headers=headers)
        search = await client.get("/api/v1/tasks/search", params={"q": "report"}, headers=headers)

    assert stats.status_code == 200
    body = stats.json()
    assert body["total"] == 3
    assert body["by_priority"]["Medium"] == 3
    assert body["most_common_priority"]["label"] == "Medium"
    assert body["productivity"]["level"] == "Poor"
    assert search.json()["total"] == 2
