"""
Canonical detection types.

DetectionResult is what the gateway hands back to callers and what history
records embed. Payload types describe the two kinds of classifier input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Verdict(str, Enum):
    """Final call on an image."""

    AI = "AI"
    REAL = "REAL"


@dataclass(frozen=True)
class SourceMeta:
    """Image metadata reported by the classifier."""

    filename: Optional[str] = None
    format: Optional[str] = None
    width: int = 0
    height: int = 0

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "format": self.format,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class DetectionResult:
    """
    Normalized classifier verdict.

    Probabilities are percentages in [0, 100] with two decimal places.
    They are not required to sum to 100.
    """

    ai_probability: float
    real_probability: float
    verdict: Verdict
    processing_time_ms: float = 0.0
    source_meta: SourceMeta = field(default_factory=SourceMeta)

    def to_dict(self) -> dict:
        """Convert to the public detection response shape."""
        meta = self.source_meta
        return {
            "aiProbability": self.ai_probability,
            "realProbability": self.real_probability,
            "final": self.verdict.value,
            "processingTime": self.processing_time_ms,
            "metaInfo": {
                "filename": meta.filename,
                "format": meta.format,
                "dimensions": [meta.width, meta.height],
                "width": meta.width,
                "height": meta.height,
            },
        }


@dataclass(frozen=True)
class UploadPayload:
    """Binary image upload."""

    content: bytes
    content_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UrlPayload:
    """Remote image reference."""

    url: str
