"""
Configuration for the external image classifier.

Environment variables:
- CLASSIFIER_UPLOAD_ENDPOINT: multipart upload endpoint
- CLASSIFIER_URL_ENDPOINT: JSON {url} endpoint
- CLASSIFIER_API_KEY: bearer credential sent with every call
- CLASSIFIER_TIMEOUT_SECONDS: hard timeout per classification (default: 30)
"""

import os

DEFAULT_UPLOAD_ENDPOINT = "http://api.deep3d.ai/v1/predict"
DEFAULT_URL_ENDPOINT = "http://api.deep3d.ai/v1/predict-url"
DEFAULT_TIMEOUT_SECONDS = 30.0


def get_upload_endpoint() -> str:
    """Get the classifier endpoint for file uploads."""
    return os.environ.get("CLASSIFIER_UPLOAD_ENDPOINT", DEFAULT_UPLOAD_ENDPOINT)


def get_url_endpoint() -> str:
    """Get the classifier endpoint for remote URLs."""
    return os.environ.get("CLASSIFIER_URL_ENDPOINT", DEFAULT_URL_ENDPOINT)


def get_classifier_api_key() -> str | None:
    """Get the classifier API key."""
    return os.environ.get("CLASSIFIER_API_KEY")


def is_classifier_configured() -> bool:
    """Check if the classifier API key is configured."""
    key = get_classifier_api_key()
    return key is not None and len(key.strip()) > 0


def get_timeout_seconds() -> float:
    """Get the classification timeout, falling back to the default on bad input."""
    raw = os.environ.get("CLASSIFIER_TIMEOUT_SECONDS")
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
    return value if value >= 1 else DEFAULT_TIMEOUT_SECONDS


# Maximum file size for image uploads (10MB)
MAX_IMAGE_SIZE = 10 * 1024 * 1024

# Allowed image MIME types
ALLOWED_IMAGE_TYPES = [
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/gif",
    "image/bmp",
]

# Label the classifier uses for synthetic images
ARTIFICIAL_LABEL = "artificial"
REAL_LABEL = "real"
