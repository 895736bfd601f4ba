"""Request-id propagation, request logging, and JSON error envelopes."""

from __future__ import annotations

from time import perf_counter
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from fastapi import status
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse
from starlette.datastructures import MutableHeaders
from starlette.exceptions import HTTPException as StarletteHTTPException

from tasktree.core.config import settings
from tasktree.core.logging import get_logger
from tasktree.services.task_errors import TaskError

if TYPE_CHECKING:
    from fastapi import FastAPI
    from starlette.requests import Request
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "X-Request-Id"
_HEALTH_PATHS = frozenset({"/health", "/healthz", "/readyz"})
_MAX_REQUEST_ID_LENGTH = 128

logger = get_logger(__name__)


def _json_safe(value: object) -> object:
    """Coerce arbitrary validation payloads into JSON-serializable values."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    return str(value)


def _normalize_request_id(raw: str | None) -> str | None:
    if raw is None:
        return None
    cleaned = raw.strip()
    if not cleaned or len(cleaned) > _MAX_REQUEST_ID_LENGTH:
        return None
    return cleaned


def _get_request_id(request: Request) -> str | None:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    return None


def _error_payload(*, detail: object, request_id: str | None) -> dict[str, object]:
    payload: dict[str, object] = {"detail": detail}
    if request_id is not None:
        payload["request_id"] = request_id
    return payload


def _json_error(
    request: Request,
    *,
    status_code: int,
    detail: object,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = _get_request_id(request)
    response_headers = dict(headers or {})
    if request_id is not None:
        response_headers[REQUEST_ID_HEADER] = request_id
    return JSONResponse(
        status_code=status_code,
        content=_error_payload(detail=detail, request_id=request_id),
        headers=response_headers,
    )


class RequestContextMiddleware:
    """Assign a request id, echo it in responses, and log request timing."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        raw_header: str | None = None
        for name, value in scope.get("headers", []):
            if name.decode("latin-1").lower() == REQUEST_ID_HEADER.lower():
                raw_header = value.decode("latin-1")
                break
        request_id = _normalize_request_id(raw_header) or uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = int(message["status"])
                headers = MutableHeaders(scope=message)
                if REQUEST_ID_HEADER not in headers:
                    headers.append(REQUEST_ID_HEADER, request_id)
            await send(message)

        started = perf_counter()
        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            elapsed_ms = (perf_counter() - started) * 1000
            _log_request(
                method=str(scope.get("method", "")),
                path=str(scope.get("path", "")),
                status_code=status_code,
                elapsed_ms=elapsed_ms,
                request_id=request_id,
            )


def _log_request(
    *,
    method: str,
    path: str,
    status_code: int,
    elapsed_ms: float,
    request_id: str,
) -> None:
    if path in _HEALTH_PATHS and not settings.request_log_include_health:
        return
    extra = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(elapsed_ms, 2),
        "request_id": request_id,
    }
    threshold = settings.request_log_slow_ms
    if threshold and elapsed_ms >= threshold:
        logger.warning("http.request.slow", extra={**extra, "slow_threshold_ms": threshold})
        return
    logger.info("http.request.complete", extra=extra)


async def _request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return _json_error(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=_json_safe(exc.errors()),
    )


async def _response_validation_handler(
    request: Request,
    exc: ResponseValidationError,
) -> JSONResponse:
    logger.error(
        "http.response.validation_failed path=%s errors=%s",
        request.url.path,
        _json_safe(exc.errors()),
    )
    return _json_error(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


async def _http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    return _json_error(
        request,
        status_code=exc.status_code,
        detail=exc.detail,
        headers=dict(exc.headers) if exc.headers else None,
    )


async def _task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
    logger.info(
        "task.error code=%s path=%s message=%s",
        exc.code,
        request.url.path,
        exc.message,
    )
    return _json_error(request, status_code=exc.status_code, detail=exc.to_detail())


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "http.request.unhandled_error path=%s error_type=%s",
        request.url.path,
        type(exc).__name__,
    )
    return _json_error(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


# Starlette types handlers as `(Request, Exception)`; these wrappers narrow the type.


async def _request_validation_exception_handler(request: Request, exc: Exception) -> Any:
    if not isinstance(exc, RequestValidationError):
        msg = "Expected RequestValidationError"
        raise TypeError(msg)
    return await _request_validation_handler(request, exc)


async def _response_validation_exception_handler(request: Request, exc: Exception) -> Any:
    if not isinstance(exc, ResponseValidationError):
        msg = "Expected ResponseValidationError"
        raise TypeError(msg)
    return await _response_validation_handler(request, exc)


async def _http_exception_exception_handler(request: Request, exc: Exception) -> Any:
    if not isinstance(exc, StarletteHTTPException):
        msg = "Expected StarletteHTTPException"
        raise TypeError(msg)
    return await _http_exception_handler(request, exc)


async def _task_error_exception_handler(request: Request, exc: Exception) -> Any:
    if not isinstance(exc, TaskError):
        msg = "Expected TaskError"
        raise TypeError(msg)
    return await _task_error_handler(request, exc)


def install_error_handling(app: FastAPI) -> None:
    """Register request-id middleware and JSON exception handlers on *app*."""
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(RequestValidationError, _request_validation_exception_handler)
    app.add_exception_handler(ResponseValidationError, _response_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_exception_handler)
    app.add_exception_handler(TaskError, _task_error_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
