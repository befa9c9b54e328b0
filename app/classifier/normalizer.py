"""
Classifier response normalization.

Turns the classifier's loosely typed JSON into a DetectionResult. Any
shape violation raises NormalizationError; nothing is defaulted silently
except the fields that are documented as optional (processing time and
image metadata).
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from app.classifier.config import ARTIFICIAL_LABEL, REAL_LABEL
from app.classifier.models import DetectionResult, SourceMeta, Verdict
from app.errors import NormalizationError

# Anything that cannot be part of a plain decimal number
_DECORATION = re.compile(r"[^0-9.+\-]")

_TWO_PLACES = Decimal("0.01")

_LABELS = {
    ARTIFICIAL_LABEL: Verdict.AI,
    REAL_LABEL: Verdict.REAL,
}


def parse_percentage(value: Any, field_name: str) -> float:
    """
    Parse a percentage that may arrive as "85.42%" or as a number.

    Returns a float rounded half-up to two decimals in [0, 100].
    """
    if value is None or isinstance(value, bool):
        raise NormalizationError(f"{field_name} is missing or not numeric")

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise NormalizationError(f"{field_name} is not finite")
        text = repr(value)
    elif isinstance(value, str):
        text = _DECORATION.sub("", value)
    else:
        raise NormalizationError(f"{field_name} has unsupported type {type(value).__name__}")

    if not text:
        raise NormalizationError(f"{field_name} is empty after stripping")

    try:
        number = Decimal(text)
    except InvalidOperation:
        raise NormalizationError(f"{field_name}={value!r} is not numeric")

    if not number.is_finite():
        raise NormalizationError(f"{field_name} is not finite")

    rounded = number.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    if rounded < 0 or rounded > 100:
        raise NormalizationError(f"{field_name}={rounded} is outside [0, 100]")

    return float(rounded)


def map_label(label: Any) -> Verdict:
    """Map the classifier's predicted label onto a Verdict."""
    if not isinstance(label, str):
        raise NormalizationError("predicted_label is missing")

    verdict = _LABELS.get(label.strip().lower())
    if verdict is None:
        raise NormalizationError(f"Unrecognized predicted_label {label!r}")
    return verdict


def _parse_processing_time(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise NormalizationError("processing_time_ms is not numeric")
    try:
        number = float(value)
    except ValueError:
        raise NormalizationError(f"processing_time_ms={value!r} is not numeric")
    if not math.isfinite(number) or number < 0:
        raise NormalizationError(f"processing_time_ms={value!r} is out of range")
    return number


def _parse_dimension(value: Any) -> int:
    if isinstance(value, bool):
        raise NormalizationError("size entries must be integers")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise NormalizationError(f"size entry {value!r} is not a non-negative integer")
    return value


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _parse_meta(meta: Any) -> SourceMeta:
    if meta is None:
        return SourceMeta()
    if not isinstance(meta, dict):
        raise NormalizationError("meta_info is not an object")

    width = height = 0
    size = meta.get("size")
    if size is not None:
        if not isinstance(size, (list, tuple)) or len(size) != 2:
            raise NormalizationError("meta_info.size must be [width, height]")
        width, height = _parse_dimension(size[0]), _parse_dimension(size[1])

    return SourceMeta(
        filename=_optional_str(meta.get("filename")),
        format=_optional_str(meta.get("original_format")),
        width=width,
        height=height,
    )


def normalize(raw: Any) -> DetectionResult:
    """
    Normalize a raw classifier response into a DetectionResult.

    Expected shape:
        {"results": {"prediction_info": {"real": "14.58%",
                                         "artificial": "85.42%",
                                         "predicted_label": "artificial",
                                         "processing_time_ms": 1288.52},
                     "meta_info": {"filename": ..., "original_format": ...,
                                   "size": [800, 1066]}}}

    Raises:
        NormalizationError: If required fields are absent or malformed
    """
    if not isinstance(raw, dict):
        raise NormalizationError("Classifier response is not an object")

    results = raw.get("results")
    if not isinstance(results, dict):
        raise NormalizationError("Classifier response has no results")

    prediction = results.get("prediction_info")
    if not isinstance(prediction, dict):
        raise NormalizationError("Classifier response has no prediction_info")

    return DetectionResult(
        ai_probability=parse_percentage(prediction.get("artificial"), "artificial"),
        real_probability=parse_percentage(prediction.get("real"), "real"),
        verdict=map_label(prediction.get("predicted_label")),
        processing_time_ms=_parse_processing_time(prediction.get("processing_time_ms")),
        source_meta=_parse_meta(results.get("meta_info")),
    )
