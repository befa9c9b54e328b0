"""imagecheck API - FastAPI application entrypoint."""
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_config, log_config_snapshot
from app.correlation import CorrelationIdMiddleware, RequestIdLogFilter, get_request_id
from app.errors import ImageCheckError, InvalidInput
from app.routers import auth
from app.routers import detect
from app.routers import history
from persistence.db import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdLogFilter())
logger = logging.getLogger(__name__)

# Load and validate configuration at startup
_config = get_config()
log_config_snapshot(_config)

MAX_REQUEST_SIZE_BYTES = _config.max_request_size_bytes


def _error_body(request: Request, error: str, details=None, **extra) -> dict:
    body = {"error": error}
    if details:
        body["details"] = details
    body.update(extra)
    body["request_id"] = get_request_id(request) or "unknown"
    return body


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests exceeding size limit before reading the body."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                too_large = int(content_length) > MAX_REQUEST_SIZE_BYTES
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content=_error_body(request, InvalidInput.public_message, "Invalid Content-Length"),
                )
            if too_large:
                # Over the whole-request cap: InvalidInput body, status 413.
                return JSONResponse(
                    status_code=413,
                    content=_error_body(request, InvalidInput.public_message, "Request entity too large"),
                )
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


# Capture service start time for uptime reporting
_SERVICE_START_TIME = datetime.now(timezone.utc)

app = FastAPI(
    title="imagecheck",
    description="AI-generated image detection with per-user history",
    version=_config.service_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware stack (added in reverse execution order)
# 1. CorrelationId: First to run, wraps everything, adds X-Request-Id to responses
# 2. SecurityHeaders: Adds security headers to responses
# 3. RequestSizeLimit: Rejects oversized requests early
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# Error Mapping
# =============================================================================


@app.exception_handler(ImageCheckError)
async def handle_service_error(request: Request, exc: ImageCheckError):
    """Map the error taxonomy to stable status codes and bodies."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc}")
    extra = {"retryable": True} if exc.retryable else {}
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.public_message, exc.public_details(), **extra),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Body/query validation failures are InvalidInput (400)."""
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    details = "Invalid fields: " + ", ".join(fields) if fields else "Invalid request"
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content=_error_body(request, InvalidInput.public_message, details),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Anything unexpected degrades to a generic server fault."""
    logger.exception(f"Unhandled error: {type(exc).__name__}")
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "Internal server error"),
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(detect.router)
app.include_router(detect.router, prefix="/api")
app.include_router(history.router)
app.include_router(history.router, prefix="/api")
app.include_router(auth.router)


@app.on_event("startup")
async def startup_event():
    """Initialize database tables."""
    init_db()
    logger.info("Database initialized")


@app.get("/health")
async def health():
    """Health check with service observability."""
    return {
        "status": "healthy",
        "service": _config.service_name,
        "version": _config.service_version,
        "environment": _config.environment,
        "classifier_configured": _config.classifier_api_key_present,
        "started_at": _SERVICE_START_TIME.isoformat(),
    }
