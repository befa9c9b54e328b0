# app/correlation.py
"""
Correlation ID middleware for request tracing.

Provides:
- X-Request-Id header handling (accepts client-provided or generates UUID4)
- Request state storage for downstream access
- A logging filter that stamps every record with the current request ID
"""
from __future__ import annotations

import logging
import re
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

MAX_REQUEST_ID_LENGTH = 64
# Alphanumeric, hyphens, underscores only (safe for logging)
SAFE_REQUEST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

_current_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def validate_request_id(request_id: Optional[str]) -> Optional[str]:
    """
    Validate a client-provided request ID.

    Returns:
        The request_id if valid, None otherwise.
    """
    if not request_id:
        return None
    if len(request_id) > MAX_REQUEST_ID_LENGTH:
        return None
    if not SAFE_REQUEST_ID_PATTERN.match(request_id):
        return None
    return request_id


def generate_request_id() -> str:
    """Generate a new UUID4 request ID."""
    return str(uuid.uuid4())


def get_request_id(request: Request) -> Optional[str]:
    """Get request ID from request state (if set by middleware)."""
    return getattr(request.state, "request_id", None)


class RequestIdLogFilter(logging.Filter):
    """Adds ``request_id`` to log records ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _current_request_id.get() or "-"
        return True


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that handles X-Request-Id for request correlation.

    - Reads X-Request-Id from incoming request (validates format)
    - Generates UUID4 if not provided or invalid
    - Stores in request.state.request_id and the logging context
    - Adds X-Request-Id to all responses
    """

    async def dispatch(self, request: Request, call_next):
        client_request_id = request.headers.get("x-request-id")
        request_id = validate_request_id(client_request_id) or generate_request_id()

        request.state.request_id = request_id
        token = _current_request_id.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _current_request_id.reset(token)

        response.headers["X-Request-Id"] = request_id
        return response
