# app/errors.py
"""
Error taxonomy for detection and history operations.

Every error carries the HTTP status it maps to and a stable public message.
Handlers in app.main turn these into ``{"error": ..., "details": ...}``
JSON bodies; nothing here is retried automatically.
"""

from __future__ import annotations

from typing import Optional


class ImageCheckError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500
    public_message: str = "Internal server error"
    retryable: bool = False

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    def public_details(self) -> Optional[str]:
        """Detail string safe to show to end users (None hides it)."""
        return None


class InvalidInput(ImageCheckError):
    """Malformed, missing, oversized or wrong-type submission."""

    status_code = 400
    public_message = "Invalid input"

    def public_details(self) -> Optional[str]:
        return str(self)


class Unauthorized(ImageCheckError):
    """No resolvable identity for an operation requiring one."""

    status_code = 401
    public_message = "Unauthorized"


class NotFoundOrForbidden(ImageCheckError):
    """Record absent or not owned by the caller (deliberately merged)."""

    status_code = 404
    public_message = "History not found or unauthorized"


class ClassifierUnavailable(ImageCheckError):
    """Network failure or timeout talking to the external classifier."""

    status_code = 503
    public_message = "Classifier unavailable, please try again"
    retryable = True


class ClassifierError(ImageCheckError):
    """Classifier answered with a non-success status."""

    status_code = 502
    public_message = "Classifier rejected the request"

    def __init__(self, status: int, body: str = ""):
        super().__init__(f"Classifier returned {status}")
        self.status = status
        self.body = body

    def public_details(self) -> Optional[str]:
        return f"Classifier returned {self.status}"


class NormalizationError(ImageCheckError):
    """Classifier response violated the expected contract."""

    status_code = 500
    public_message = "Failed to process image"
