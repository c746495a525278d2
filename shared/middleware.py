"""FastAPI middleware for request correlation and problem-details errors.

Every response carries X-Request-ID. Every error response is
application/problem+json, carries the request id, is logged once and is
counted in api_requests_total with its real status code.
"""

import re
from collections.abc import Callable
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config import settings
from shared.exceptions import PROBLEM_BASE, ProblemDetailError
from shared.metrics import api_requests_total

logger = structlog.get_logger()

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

PROBLEM_JSON = "application/problem+json"
REQUEST_ID_HEADER = "X-Request-ID"

# Caller-supplied ids end up in logs and response headers
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a well-formed caller id, otherwise mint a UUID v4."""
    if header_value and _REQUEST_ID_PATTERN.match(header_value):
        return header_value
    return str(uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlate logs and responses of one exchange under a single request id."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Callable[..., Response]]
    ):
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request_id_var.set(rid)
        structlog.contextvars.bind_contextvars(
            request_id=rid, method=request.method, path=request.url.path
        )

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "method", "path")


def response_meta() -> dict[str, Any]:
    """Envelope metadata attached to every successful API response."""
    return {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }


def _endpoint_label(request: Request) -> str:
    """Name of the matched route (the endpoint function), the label success responses use too."""
    route = request.scope.get("route")
    return getattr(route, "name", None) or "unmatched"


def _problem_response(request: Request, body: dict[str, Any]) -> JSONResponse:
    status = body["status"]
    body = {**body, "instance": str(request.url.path), "request_id": request_id_var.get("")}
    api_requests_total.labels(
        endpoint=_endpoint_label(request), method=request.method, status_code=str(status)
    ).inc()
    log = logger.error if status >= 500 else logger.warning
    log("request_failed", status=status, title=body["title"], detail=body["detail"])
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_JSON)


async def problem_detail_handler(request: Request, exc: ProblemDetailError) -> JSONResponse:
    """Convert engine errors into RFC 9457 responses."""
    body: dict[str, Any] = {
        "type": exc.type_uri,
        "title": exc.title,
        "status": exc.status,
        "detail": exc.detail,
    }
    if exc.violations:
        body["violations"] = exc.violations
    return _problem_response(request, body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request-shape errors as problem details with one violation per offending field."""
    violations = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            or "(root)",
            "message": err.get("msg", "Validation error"),
            "constraint": err.get("type", "validation"),
        }
        for err in exc.errors()
    ]
    return _problem_response(
        request,
        {
            "type": f"{PROBLEM_BASE}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": f"Request body contains {len(violations)} validation error(s)",
            "violations": violations,
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _problem_response(
        request,
        {
            "type": "about:blank",
            "title": detail if isinstance(exc.detail, str) else "Error",
            "status": exc.status_code,
            "detail": detail,
        },
    )
