"""
HTTP client for the external image-authenticity classifier.

One outbound call per classify(). Uploads go as multipart, URLs as JSON.
No retries here: the classifier is metered, so resubmission is the
caller's decision.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import httpx

from .config import (
    get_classifier_api_key,
    get_timeout_seconds,
    get_upload_endpoint,
    get_url_endpoint,
)
from .models import UploadPayload, UrlPayload
from app.errors import ClassifierError, ClassifierUnavailable, NormalizationError

logger = logging.getLogger(__name__)

# Upstream error bodies are kept for diagnostics but bounded
MAX_ERROR_BODY_CHARS = 2000

DEFAULT_UPLOAD_FILENAME = "image.jpg"


def _bearer(api_key: str) -> str:
    """Build the Authorization header value, tolerating a pre-prefixed key."""
    api_key = api_key.strip()
    if api_key.lower().startswith("bearer "):
        return api_key
    return f"Bearer {api_key}"


class ClassifierClient:
    """
    Thin async wrapper around the two classifier endpoints.

    Args:
        upload_endpoint: URL accepting multipart file uploads
        url_endpoint: URL accepting {"url": ...} JSON
        api_key: Bearer credential
        timeout: Total timeout in seconds for one call
        transport: Optional httpx transport (tests inject MockTransport)
    """

    def __init__(
        self,
        upload_endpoint: str,
        url_endpoint: str,
        api_key: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upload_endpoint = upload_endpoint
        self.url_endpoint = url_endpoint
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls) -> "ClassifierClient":
        """Create a client from CLASSIFIER_* environment variables."""
        return cls(
            upload_endpoint=get_upload_endpoint(),
            url_endpoint=get_url_endpoint(),
            api_key=get_classifier_api_key(),
            timeout=get_timeout_seconds(),
        )

    async def classify(self, payload: Union[UploadPayload, UrlPayload]) -> dict:
        """
        Send one payload to the classifier and return its raw JSON.

        Raises:
            ClassifierUnavailable: Transport failure, timeout, or no API key
            ClassifierError: Classifier answered with a non-2xx status
            NormalizationError: 2xx answer that is not a JSON object
        """
        if not self._api_key or not self._api_key.strip():
            logger.error("Classifier API key not configured")
            raise ClassifierUnavailable("Classifier API key not configured")

        headers = {"Authorization": _bearer(self._api_key)}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                if isinstance(payload, UploadPayload):
                    logger.info(
                        f"Classifying upload: size={payload.size} type={payload.content_type}"
                    )
                    files = {
                        "file": (
                            payload.filename or DEFAULT_UPLOAD_FILENAME,
                            payload.content,
                            payload.content_type,
                        )
                    }
                    response = await client.post(
                        self.upload_endpoint, headers=headers, files=files
                    )
                else:
                    logger.info("Classifying remote URL")
                    response = await client.post(
                        self.url_endpoint, headers=headers, json={"url": payload.url}
                    )
        except httpx.TimeoutException as e:
            logger.warning(f"Classifier timed out after {self.timeout}s")
            raise ClassifierUnavailable(f"Classifier timed out: {e}")
        except httpx.TransportError as e:
            logger.warning(f"Classifier transport error: {type(e).__name__}")
            raise ClassifierUnavailable(f"Classifier unreachable: {e}")

        logger.info(f"Classifier responded with status {response.status_code}")

        if not response.is_success:
            body = response.text[:MAX_ERROR_BODY_CHARS]
            logger.error(f"Classifier API error {response.status_code}: {body}")
            raise ClassifierError(response.status_code, body)

        try:
            data = response.json()
        except ValueError:
            logger.error(
                f"Classifier returned a non-JSON body: {response.text[:MAX_ERROR_BODY_CHARS]}"
            )
            raise NormalizationError("Classifier returned a non-JSON body")

        if not isinstance(data, dict):
            logger.error(
                f"Classifier returned a non-object JSON body: {response.text[:MAX_ERROR_BODY_CHARS]}"
            )
            raise NormalizationError("Classifier returned JSON that is not an object")

        return data


def detect_image_type(image_bytes: bytes) -> Optional[str]:
    """Detect image MIME type from magic bytes, or None if unknown."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    elif image_bytes[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    elif image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    elif image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    elif image_bytes[:2] == b"BM":
        return "image/bmp"
    return None
