"""
History endpoints.

All routes require a resolved identity and are scoped to it. Owner fields
in request bodies are ignored; ownership always comes from the session.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.classifier.models import DetectionResult, SourceMeta, Verdict
from app.config import get_config
from app.errors import InvalidInput
from app.history_store import (
    HistoryDraft,
    HistoryStore,
    ImageKind,
    ImageRef,
    coerce_limit,
    coerce_skip,
    get_history_store,
)
from auth.middleware import get_required_identity
from auth.models import Identity

router = APIRouter(tags=["history"])


# =============================================================================
# Request Schemas
# =============================================================================


class MetaInfoIn(BaseModel):
    filename: Optional[str] = None
    format: Optional[str] = None
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)


class DetectionResultIn(BaseModel):
    aiProbability: float = Field(ge=0, le=100)
    realProbability: float = Field(ge=0, le=100)
    final: Literal["AI", "REAL"]
    processingTime: float = Field(default=0, ge=0)
    metaInfo: Optional[MetaInfoIn] = None


class SaveHistoryRequest(BaseModel):
    imageType: Literal["upload", "url"]
    imageUrl: Optional[str] = None
    result: DetectionResultIn

    def to_draft(self) -> HistoryDraft:
        meta = self.result.metaInfo or MetaInfoIn()
        return HistoryDraft(
            image_ref=ImageRef(kind=ImageKind(self.imageType), payload_or_url=self.imageUrl),
            result=DetectionResult(
                ai_probability=self.result.aiProbability,
                real_probability=self.result.realProbability,
                verdict=Verdict(self.result.final),
                processing_time_ms=self.result.processingTime,
                source_meta=SourceMeta(
                    filename=meta.filename,
                    format=meta.format,
                    width=meta.width,
                    height=meta.height,
                ),
            ),
        )


# =============================================================================
# Routes
# =============================================================================


@router.get("/history")
async def list_history(
    limit: Optional[str] = None,
    skip: Optional[str] = None,
    identity: Identity = Depends(get_required_identity),
    store: HistoryStore = Depends(get_history_store),
):
    """
    Get the caller's history, newest first.

    Non-numeric or missing limit means 50; limit is capped at
    HISTORY_MAX_LIMIT. Non-numeric skip means 0.

    Response:
        {
            "success": true,
            "data": [...],
            "pagination": {"total", "limit", "skip", "hasMore"}
        }
    """
    page_limit = min(coerce_limit(limit), get_config().history_max_limit)
    page = store.list(identity, limit=page_limit, skip=coerce_skip(skip))
    return page.to_dict()


@router.post("/history", status_code=201)
async def save_history(
    body: SaveHistoryRequest,
    identity: Identity = Depends(get_required_identity),
    store: HistoryStore = Depends(get_history_store),
):
    """Save one detection result to the caller's history."""
    record = store.append(identity, body.to_draft())
    return {"success": True, "data": record.to_dict()}


@router.get("/history/stats")
async def history_stats(
    identity: Identity = Depends(get_required_identity),
    store: HistoryStore = Depends(get_history_store),
):
    """Counts of the caller's records by verdict."""
    return {"success": True, "data": store.stats(identity)}


@router.get("/history/{record_id}")
async def get_history_item(
    record_id: str,
    identity: Identity = Depends(get_required_identity),
    store: HistoryStore = Depends(get_history_store),
):
    """Get one of the caller's records."""
    record = store.get(identity, record_id)
    return {"success": True, "data": record.to_dict()}


@router.delete("/history")
async def delete_history(
    id: Optional[str] = None,
    identity: Identity = Depends(get_required_identity),
    store: HistoryStore = Depends(get_history_store),
):
    """
    Delete one of the caller's records.

    404 when the record does not exist or belongs to someone else.
    """
    if not id or not id.strip():
        raise InvalidInput("History ID is required")

    store.remove(identity, id.strip())
    return {"success": True, "message": "History deleted successfully"}
