# ruff: noqa

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from sqlalchemy.exc import OperationalError
from starlette.requests import Request

from tasktree.core import error_handling
from tasktree.core.error_handling import (
    REQUEST_ID_HEADER,
    _error_payload,
    _get_request_id,
    _http_exception_exception_handler,
    _request_validation_exception_handler,
    _response_validation_exception_handler,
    _task_error_exception_handler,
    install_error_handling,
)
from tasktree.services.task_errors import (
    TaskCompletionBlockedError,
    TaskNotFoundError,
    TaskValidationError,
)


def _app() -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    return app


def _assert_request_id(resp) -> str:
    body = resp.json()
    assert isinstance(body.get("request_id"), str) and body["request_id"]
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]
    return body["request_id"]


def test_request_validation_error_includes_request_id():
    app = _app()

    @app.get("/tasks")
    def list_tasks(size: int) -> dict[str, int]:
        return {"size": size}

    resp = TestClient(app).get("/tasks?size=abc")

    assert resp.status_code == 422
    assert isinstance(resp.json().get("detail"), list)
    _assert_request_id(resp)


def test_request_validation_error_handles_bytes_input_without_500():
    class Payload(BaseModel):
        title: str

    app = _app()

    @app.post("/tasks")
    def create(payload: Payload) -> dict[str, str]:
        return {"title": payload.title}

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.post(
        "/tasks",
        content=b"plain-text-body",
        headers={"content-type": "text/plain"},
    )

    assert resp.status_code == 422
    _assert_request_id(resp)


def test_http_exception_keeps_detail_and_request_id():
    app = _app()

    @app.get("/private")
    def private() -> None:
        raise HTTPException(status_code=401)

    resp = TestClient(app).get("/private")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Unauthorized"
    _assert_request_id(resp)


def test_task_error_renders_code_and_message():
    app = _app()
    task_id = uuid4()

    @app.get("/missing")
    def missing() -> None:
        raise TaskNotFoundError(task_id)

    resp = TestClient(app).get("/missing")

    assert resp.status_code == 404
    assert resp.json()["detail"] == {
        "code": "task_not_found",
        "message": f"Task {task_id} not found.",
    }
    _assert_request_id(resp)


def test_task_error_subclasses_add_their_own_detail():
    app = _app()
    pending = uuid4()

    @app.get("/blocked")
    def blocked() -> None:
        raise TaskCompletionBlockedError("All subtasks must be completed first", pending_task_ids=[pending])

    @app.get("/invalid")
    def invalid() -> None:
        raise TaskValidationError(["No updates provided"])

    client = TestClient(app)
    blocked_resp = client.get("/blocked")
    invalid_resp = client.get("/invalid")

    assert blocked_resp.status_code == 409
    assert blocked_resp.json()["detail"]["pending_task_ids"] == [str(pending)]
    assert invalid_resp.status_code == 422
    assert invalid_resp.json()["detail"]["errors"] == ["No updates provided"]


def test_storage_fault_returns_opaque_500_with_request_id():
    app = _app()

    @app.get("/db")
    def db() -> None:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/db")

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"
    _assert_request_id(resp)


def test_response_validation_error_returns_500_with_request_id():
    class Out(BaseModel):
        title: str = Field(min_length=1)

    app = _app()

    @app.get("/bad", response_model=Out)
    def bad() -> dict[str, str]:
        return {"title": ""}

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/bad")

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"
    _assert_request_id(resp)


def test_client_provided_request_id_is_preserved():
    app = _app()

    @app.get("/tasks")
    def list_tasks(size: int) -> dict[str, int]:
        return {"size": size}

    resp = TestClient(app).get("/tasks?size=abc", headers={REQUEST_ID_HEADER: "  req-123  "})

    assert resp.status_code == 422
    assert resp.json()["request_id"] == "req-123"
    assert resp.headers.get(REQUEST_ID_HEADER) == "req-123"


def test_oversized_client_request_id_is_replaced():
    app = _app()

    @app.get("/ok")
    def ok() -> dict[str, bool]:
        return {"ok": True}

    resp = TestClient(app).get("/ok", headers={REQUEST_ID_HEADER: "x" * 500})

    assert resp.status_code == 200
    assert resp.headers[REQUEST_ID_HEADER] != "x" * 500


def test_slow_request_emits_slow_log(monkeypatch: pytest.MonkeyPatch) -> None:
    warnings: list[tuple[str, dict[str, object]]] = []

    def _fake_warning(message: str, *args: object, **kwargs: object) -> None:
        _ = args
        extra = kwargs.get("extra")
        warnings.append((message, extra if isinstance(extra, dict) else {}))

    perf_ticks = iter((50.0, 50.5))

    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 100)
    monkeypatch.setattr(error_handling, "perf_counter", lambda: next(perf_ticks))
    monkeypatch.setattr(error_handling.logger, "warning", _fake_warning)

    app = _app()

    @app.get("/slow")
    def slow() -> dict[str, str]:
        return {"ok": "1"}

    resp = TestClient(app).get("/slow")

    assert resp.status_code == 200
    assert any(
        message == "http.request.slow"
        and extra.get("slow_threshold_ms") == 100
        and extra.get("status_code") == 200
        for message, extra in warnings
    )


def test_health_route_skips_request_logs_when_disabled(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    infos: list[str] = []
    monkeypatch.setattr(error_handling.settings, "request_log_include_health", False)
    monkeypatch.setattr(
        error_handling.logger,
        "info",
        lambda message, *args, **kwargs: infos.append(message),
    )

    app = _app()

    @app.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    resp = TestClient(app).get("/healthz")

    assert resp.status_code == 200
    assert isinstance(resp.headers.get(REQUEST_ID_HEADER), str)
    assert "http.request.complete" not in infos


def test_get_request_id_returns_none_for_missing_or_invalid_state() -> None:
    for state in ({}, {"request_id": 123}, {"request_id": ""}):
        req = Request({"type": "http", "headers": [], "state": state})
        assert _get_request_id(req) is None


def test_error_payload_omits_request_id_when_none() -> None:
    assert _error_payload(detail="x", request_id=None) == {"detail": "x"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("handler", "expected"),
    [
        (_request_validation_exception_handler, "Expected RequestValidationError"),
        (_response_validation_exception_handler, "Expected ResponseValidationError"),
        (_http_exception_exception_handler, "Expected StarletteHTTPException"),
        (_task_error_exception_handler, "Expected TaskError"),
    ],
)
async def test_exception_wrappers_reject_wrong_exception(handler, expected) -> None:
    req = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match=expected):
        await handler(req, Exception("x"))


def test_json_safe_covers_bytes_bytearray_and_fallback_str() -> None:
    assert error_handling._json_safe(b"\xff") == "\ufffd"
    assert error_handling._json_safe(bytearray(b"\xff")) == "\ufffd"
    assert error_handling._json_safe(memoryview(b"\xff")) == "\ufffd"
    assert error_handling._json_safe({"ids": (1, 2)}) == {"ids": [1, 2]}

    class Weird:
        def __str__(self) -> str:
            return "weird"

    assert error_handling._json_safe(Weird()) == "weird"
