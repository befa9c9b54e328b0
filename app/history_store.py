# app/history_store.py
"""
Owner-scoped history of detection results.

Every operation takes the caller's resolved Identity and filters by it at
the storage boundary. Owner fields are never read from client input.

Records are created once, read many times, deleted at most once by their
owner, and never updated in place.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from uuid import uuid4

from app.classifier.models import DetectionResult, SourceMeta, Verdict
from app.errors import InvalidInput, NotFoundOrForbidden
from auth.models import Identity
from persistence import history as history_db

_logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50

# Retained uploads are stored inline (base64 data URL of up to 10MB)
MAX_IMAGE_REF_LENGTH = 14 * 1024 * 1024


class ImageKind(str, Enum):
    UPLOAD = "upload"
    URL = "url"


@dataclass(frozen=True)
class ImageRef:
    """
    Where the analyzed image came from.

    For uploads payload_or_url is an opaque reference to retained image
    data (or None if not retained); for URL submissions it is the URL.
    """
    kind: ImageKind
    payload_or_url: Optional[str] = None


@dataclass(frozen=True)
class HistoryDraft:
    """What the client asks to save. Ownership is not part of it."""
    image_ref: ImageRef
    result: DetectionResult


@dataclass(frozen=True)
class HistoryRecord:
    """A persisted detection result."""
    id: str
    owner_id: str
    owner_email: str
    owner_display_name: str
    image_ref: ImageRef
    result: DetectionResult
    created_at: datetime

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        meta = self.result.source_meta
        return {
            "_id": self.id,
            "id": self.id,
            "userId": self.owner_id,
            "userEmail": self.owner_email,
            "userName": self.owner_display_name,
            "imageType": self.image_ref.kind.value,
            "imageUrl": self.image_ref.payload_or_url,
            "aiProbability": self.result.ai_probability,
            "realProbability": self.result.real_probability,
            "finalResult": self.result.verdict.value,
            "processingTime": self.result.processing_time_ms,
            "imageMetadata": meta.to_dict(),
            "createdAt": _format_timestamp(self.created_at),
        }

    def to_document(self) -> dict:
        """Storage form of the record."""
        meta = self.result.source_meta
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "owner_email": self.owner_email,
            "owner_display_name": self.owner_display_name,
            "image_ref": {
                "kind": self.image_ref.kind.value,
                "payload_or_url": self.image_ref.payload_or_url,
            },
            "result": {
                "ai_probability": self.result.ai_probability,
                "real_probability": self.result.real_probability,
                "verdict": self.result.verdict.value,
                "processing_time_ms": self.result.processing_time_ms,
                "source_meta": meta.to_dict(),
            },
            "created_at": _format_timestamp(self.created_at),
        }

    @classmethod
    def from_document(cls, doc: dict) -> HistoryRecord:
        result = doc["result"]
        meta = result.get("source_meta") or {}
        return cls(
            id=doc["id"],
            owner_id=doc["owner_id"],
            owner_email=doc["owner_email"],
            owner_display_name=doc["owner_display_name"],
            image_ref=ImageRef(
                kind=ImageKind(doc["image_ref"]["kind"]),
                payload_or_url=doc["image_ref"].get("payload_or_url"),
            ),
            result=DetectionResult(
                ai_probability=result["ai_probability"],
                real_probability=result["real_probability"],
                verdict=Verdict(result["verdict"]),
                processing_time_ms=result.get("processing_time_ms", 0.0),
                source_meta=SourceMeta(
                    filename=meta.get("filename"),
                    format=meta.get("format"),
                    width=meta.get("width", 0),
                    height=meta.get("height", 0),
                ),
            ),
            created_at=datetime.fromisoformat(doc["created_at"]),
        )


@dataclass
class HistoryPage:
    """One page of an owner's history, newest first."""
    records: List[HistoryRecord] = field(default_factory=list)
    total: int = 0
    limit: int = DEFAULT_LIMIT
    skip: int = 0

    @property
    def has_more(self) -> bool:
        return self.total > self.skip + self.limit

    def to_dict(self) -> dict:
        return {
            "success": True,
            "data": [record.to_dict() for record in self.records],
            "pagination": {
                "total": self.total,
                "limit": self.limit,
                "skip": self.skip,
                "hasMore": self.has_more,
            },
        }


def _format_timestamp(value: datetime) -> str:
    # Fixed precision keeps lexicographic order equal to time order
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def coerce_limit(value: Any, default: int = DEFAULT_LIMIT) -> int:
    """Non-negative integer limit; anything else falls back to the default."""
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return default
    if not isinstance(value, int) or value < 0:
        return default
    return value


def coerce_skip(value: Any) -> int:
    """Non-negative integer offset; anything else becomes 0."""
    return coerce_limit(value, default=0)


def _check_probability(value: float, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{name} must be a number")
    if not math.isfinite(value) or value < 0 or value > 100:
        raise InvalidInput(f"{name} must be between 0 and 100")
    return round(float(value), 2)


def _validated_draft(draft: HistoryDraft) -> HistoryDraft:
    """Reject drafts that would produce a record with bad required fields."""
    result = draft.result
    if not isinstance(result.verdict, Verdict):
        raise InvalidInput("final must be AI or REAL")

    processing = result.processing_time_ms
    if isinstance(processing, bool) or not isinstance(processing, (int, float)):
        raise InvalidInput("processingTime must be a number")
    if not math.isfinite(processing) or processing < 0:
        raise InvalidInput("processingTime must be non-negative")

    meta = result.source_meta
    if meta.width < 0 or meta.height < 0:
        raise InvalidInput("Image dimensions must be non-negative")

    ref = draft.image_ref
    if ref.payload_or_url is not None and len(ref.payload_or_url) > MAX_IMAGE_REF_LENGTH:
        raise InvalidInput("Stored image reference is too large")
    if ref.kind == ImageKind.URL and not ref.payload_or_url:
        raise InvalidInput("imageUrl is required for URL submissions")

    return HistoryDraft(
        image_ref=ref,
        result=DetectionResult(
            ai_probability=_check_probability(result.ai_probability, "aiProbability"),
            real_probability=_check_probability(result.real_probability, "realProbability"),
            verdict=result.verdict,
            processing_time_ms=float(processing),
            source_meta=meta,
        ),
    )


class HistoryStore:
    """
    Owner-scoped CRUD over persisted detection records.

    Backed by persistence.history; every call commits before returning,
    so a list() always sees acknowledged append()/remove() calls.
    """

    def append(self, identity: Identity, draft: HistoryDraft) -> HistoryRecord:
        """
        Persist a new record owned by identity.

        Raises:
            InvalidInput: If the draft carries out-of-range values
        """
        draft = _validated_draft(draft)
        record = HistoryRecord(
            id=str(uuid4()),
            owner_id=identity.id,
            owner_email=identity.email,
            owner_display_name=identity.display_name,
            image_ref=draft.image_ref,
            result=draft.result,
            created_at=datetime.now(timezone.utc),
        )

        history_db.insert_document(
            record_id=record.id,
            owner_id=record.owner_id,
            owner_email=record.owner_email,
            created_at=_format_timestamp(record.created_at),
            verdict=record.result.verdict.value,
            document=record.to_document(),
        )

        _logger.info(f"Saved history record {record.id} for user {identity.id}")
        return record

    def list(self, identity: Identity, limit: Any = DEFAULT_LIMIT, skip: Any = 0) -> HistoryPage:
        """
        Get one page of identity's records, newest first.

        Non-numeric or negative limit falls back to 50; skip to 0.
        """
        limit = coerce_limit(limit)
        skip = coerce_skip(skip)

        docs = history_db.list_documents(identity.id, identity.email, limit=limit, skip=skip)
        total = history_db.count_documents(identity.id, identity.email)

        return HistoryPage(
            records=[HistoryRecord.from_document(doc) for doc in docs],
            total=total,
            limit=limit,
            skip=skip,
        )

    def get(self, identity: Identity, record_id: str) -> HistoryRecord:
        """
        Get one of identity's records.

        Raises:
            NotFoundOrForbidden: If absent or owned by someone else
        """
        doc = history_db.get_document(record_id, identity.id, identity.email)
        if doc is None:
            raise NotFoundOrForbidden()
        return HistoryRecord.from_document(doc)

    def remove(self, identity: Identity, record_id: str) -> bool:
        """
        Delete a record if id, owner id and owner email all match.

        Raises:
            NotFoundOrForbidden: If no such record is owned by identity
                (including one that was already deleted)
        """
        if not record_id:
            raise NotFoundOrForbidden()

        if not history_db.delete_document(record_id, identity.id, identity.email):
            _logger.info(f"Delete refused for record {record_id} (user {identity.id})")
            raise NotFoundOrForbidden()

        return True

    def stats(self, identity: Identity) -> dict:
        """Counts of identity's records by verdict."""
        counts = history_db.count_by_verdict(identity.id, identity.email)
        ai = counts.get(Verdict.AI.value, 0)
        real = counts.get(Verdict.REAL.value, 0)
        return {"total": ai + real, "ai": ai, "real": real}


# Module-level singleton store
_store: Optional[HistoryStore] = None


def get_history_store() -> HistoryStore:
    """Get the global history store singleton."""
    global _store
    if _store is None:
        _store = HistoryStore()
    return _store
