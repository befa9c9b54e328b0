"""
External image classifier integration.

Calls the remote authenticity classifier and normalizes its response
into a DetectionResult.
"""

from .client import ClassifierClient, detect_image_type
from .config import ALLOWED_IMAGE_TYPES, MAX_IMAGE_SIZE, is_classifier_configured
from .models import DetectionResult, SourceMeta, UploadPayload, UrlPayload, Verdict
from .normalizer import normalize

__all__ = [
    "ALLOWED_IMAGE_TYPES",
    "MAX_IMAGE_SIZE",
    "ClassifierClient",
    "DetectionResult",
    "SourceMeta",
    "UploadPayload",
    "UrlPayload",
    "Verdict",
    "detect_image_type",
    "is_classifier_configured",
    "normalize",
]
