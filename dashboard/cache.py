"""
Locally cached history page.

The dashboard owns exactly one HistoryCache for the active view. It is
mutated only through the methods below; every mutation bumps ``version``
so callers can tell whether anything changed since a snapshot was taken.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

DEFAULT_PAGE_LIMIT = 50

VERDICT_FILTERS = ("all", "ai", "real")


def record_id(record: dict) -> str:
    """ID of a wire-format history record."""
    return record.get("_id") or record.get("id")


@dataclass
class CachedPage:
    """A history page as returned by GET /history."""

    records: List[dict] = field(default_factory=list)
    total: int = 0
    limit: int = DEFAULT_PAGE_LIMIT
    skip: int = 0

    @property
    def has_more(self) -> bool:
        return self.total > self.skip + self.limit

    @classmethod
    def from_response(cls, body: dict) -> CachedPage:
        """Build from a ``{data, pagination}`` response body."""
        pagination = body.get("pagination") or {}
        records = list(body.get("data") or [])
        return cls(
            records=records,
            total=int(pagination.get("total", len(records))),
            limit=int(pagination.get("limit", DEFAULT_PAGE_LIMIT)),
            skip=int(pagination.get("skip", 0)),
        )


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable copy of the cache at one version."""

    version: int
    records: Tuple[dict, ...]
    total: int
    limit: int
    skip: int


class HistoryCache:
    """
    Versioned local copy of one history page.

    Usage:
        cache = HistoryCache()
        cache.replace(page)
        snap = cache.snapshot()
        cache.remove_local("abc")
        cache.restore(snap)
    """

    def __init__(self, page: Optional[CachedPage] = None):
        self._records: List[dict] = []
        self._total = 0
        self._limit = DEFAULT_PAGE_LIMIT
        self._skip = 0
        self._version = 0
        if page is not None:
            self.replace(page)

    # -- reads ---------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    @property
    def total(self) -> int:
        return self._total

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def skip(self) -> int:
        return self._skip

    @property
    def records(self) -> List[dict]:
        """Records in display order (a copy of the list)."""
        return list(self._records)

    def ids(self) -> List[str]:
        return [record_id(r) for r in self._records]

    def contains(self, rid: str) -> bool:
        return self.index_of(rid) is not None

    def index_of(self, rid: str) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record_id(record) == rid:
                return index
        return None

    def filtered(self, verdict_filter: str = "all") -> List[dict]:
        """Records matching the dashboard filter (all, ai or real)."""
        verdict_filter = verdict_filter.lower()
        if verdict_filter not in VERDICT_FILTERS:
            raise ValueError(f"Unknown filter: {verdict_filter}")
        if verdict_filter == "all":
            return self.records
        wanted = verdict_filter.upper()
        return [r for r in self._records if r.get("finalResult") == wanted]

    def counts(self) -> dict:
        """Dashboard counters for the cached page."""
        ai = sum(1 for r in self._records if r.get("finalResult") == "AI")
        real = sum(1 for r in self._records if r.get("finalResult") == "REAL")
        return {"total": self._total, "ai": ai, "real": real}

    # -- mutations -----------------------------------------------------------

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(
            version=self._version,
            records=tuple(copy.deepcopy(self._records)),
            total=self._total,
            limit=self._limit,
            skip=self._skip,
        )

    def restore(self, snapshot: CacheSnapshot) -> None:
        """Put the cache back exactly as it was when snapshot was taken."""
        self._records = copy.deepcopy(list(snapshot.records))
        self._total = snapshot.total
        self._limit = snapshot.limit
        self._skip = snapshot.skip
        self._bump()

    def replace(self, page: CachedPage, hide_ids: Iterable[str] = ()) -> None:
        """
        Replace contents with a freshly fetched page.

        Records in hide_ids (deletes still in flight) are left out and
        subtracted from the total.
        """
        hidden = set(hide_ids)
        records = [r for r in page.records if record_id(r) not in hidden]
        dropped = len(page.records) - len(records)
        self._records = copy.deepcopy(records)
        self._total = max(0, page.total - dropped)
        self._limit = page.limit
        self._skip = page.skip
        self._bump()

    def remove_local(self, rid: str) -> Tuple[int, dict]:
        """
        Drop one record and decrement the total.

        Returns:
            (index, record) of the removed entry

        Raises:
            KeyError: If rid is not cached
        """
        index = self.index_of(rid)
        if index is None:
            raise KeyError(rid)
        record = self._records.pop(index)
        self._total = max(0, self._total - 1)
        self._bump()
        return index, record

    def reinsert(self, index: int, record: dict) -> None:
        """Put a removed record back at its old position."""
        if self.contains(record_id(record)):
            return
        self._records.insert(min(index, len(self._records)), record)
        self._total += 1
        self._bump()

    def _bump(self) -> None:
        self._version += 1
