# app/gateway.py
"""
Detection gateway.

Validates one detection request, sends it to the classifier, and
normalizes the answer. Owns no state beyond a single call and never
persists anything; saving a result to history is a separate user action.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from app.classifier.client import ClassifierClient, detect_image_type
from app.classifier.config import ALLOWED_IMAGE_TYPES, MAX_IMAGE_SIZE
from app.classifier.models import DetectionResult, UploadPayload, UrlPayload
from app.classifier.normalizer import normalize
from app.config import get_config
from app.errors import InvalidInput, NormalizationError

_logger = logging.getLogger(__name__)

# Declared types that tell us nothing about the actual format
_UNSPECIFIED_TYPES = ("", "application/octet-stream")

MAX_URL_LENGTH = 2048


@dataclass(frozen=True)
class DetectionRequest:
    """Client input: exactly one of upload or url must be set."""

    upload: Optional[UploadPayload] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class DetectionOutcome:
    """Normalized result plus the raw classifier payload for debugging."""

    result: DetectionResult
    raw_response: dict

    def to_dict(self) -> dict:
        data = self.result.to_dict()
        data["rawResponse"] = self.raw_response
        return data


def validate_upload(upload: UploadPayload, max_size: int = MAX_IMAGE_SIZE) -> UploadPayload:
    """
    Check an upload against the size limit and type allow-list.

    Returns the payload, with its content type resolved from magic bytes
    when the declared type is missing or generic.
    """
    if upload.size == 0:
        raise InvalidInput("Image file is empty")
    if upload.size > max_size:
        raise InvalidInput(
            f"Image exceeds maximum size of {max_size // (1024 * 1024)}MB"
        )

    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type in _UNSPECIFIED_TYPES:
        sniffed = detect_image_type(upload.content)
        if sniffed is None:
            raise InvalidInput("Could not determine image type")
        content_type = sniffed

    if content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidInput(f"Unsupported image type: {content_type}")

    if content_type != upload.content_type:
        upload = UploadPayload(
            content=upload.content,
            content_type=content_type,
            filename=upload.filename,
        )
    return upload


def validate_url(url: str) -> str:
    """Require a single absolute http(s) URL with a host."""
    url = (url or "").strip()
    if not url:
        raise InvalidInput("Image URL is empty")
    if len(url) > MAX_URL_LENGTH:
        raise InvalidInput("Image URL is too long")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidInput("Image URL must be an absolute http(s) URL")
    return url


class DetectionGateway:
    """
    Request-scoped orchestration of validate -> classify -> normalize.

    Usage:
        gateway = DetectionGateway(ClassifierClient.from_env())
        outcome = await gateway.detect(DetectionRequest(url="https://..."))
    """

    def __init__(self, client: ClassifierClient, max_upload_size: int = MAX_IMAGE_SIZE):
        self._client = client
        self._max_upload_size = max_upload_size

    def validate(self, request: DetectionRequest):
        """Return the classifier payload for a request or raise InvalidInput."""
        has_upload = request.upload is not None
        has_url = request.url is not None and request.url.strip() != ""

        if has_upload and has_url:
            raise InvalidInput("Provide either an image file or a URL, not both")
        if not has_upload and not has_url:
            raise InvalidInput("No image data provided")

        if has_upload:
            return validate_upload(request.upload, self._max_upload_size)
        return UrlPayload(url=validate_url(request.url))

    async def detect(self, request: DetectionRequest) -> DetectionOutcome:
        """
        Run one live classification.

        Raises:
            InvalidInput: Request rejected before any outbound call
            ClassifierUnavailable: Transport failure or timeout
            ClassifierError: Classifier returned a non-success status
            NormalizationError: Classifier response had the wrong shape
        """
        payload = self.validate(request)

        raw = await self._client.classify(payload)

        try:
            result = normalize(raw)
        except NormalizationError as e:
            _logger.error(f"Normalization failed: {e}; raw response: {raw!r}")
            raise

        _logger.info(
            f"Detection complete: verdict={result.verdict.value} "
            f"ai={result.ai_probability} real={result.real_probability}"
        )
        return DetectionOutcome(result=result, raw_response=raw)


def get_gateway() -> DetectionGateway:
    """FastAPI dependency: a gateway wired to the configured classifier."""
    return DetectionGateway(
        ClassifierClient.from_env(),
        max_upload_size=get_config().max_upload_size_bytes,
    )
