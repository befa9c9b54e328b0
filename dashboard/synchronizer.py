"""
Optimistic delete synchronizer for the history dashboard.

A delete removes the record from the local cache first, then asks the
backend. On success the cache is refreshed in the background; on failure
the cache goes back to exactly what it was before the delete.

    Idle -> Pending -> Committed
                    -> RolledBack
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Set

from app.errors import NotFoundOrForbidden
from dashboard.backend import HistoryBackend
from dashboard.cache import CachedPage, HistoryCache

_logger = logging.getLogger(__name__)

Notify = Callable[[str, str], None]

DELETE_SUCCESS_MESSAGE = "Image deleted successfully"
DELETE_FAILED_MESSAGE = "Failed to delete image"
REFRESH_FAILED_MESSAGE = "Failed to refresh history"


class MutationState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class DuplicateMutation(Exception):
    """A delete for this record is already in flight."""

    def __init__(self, record_id: str):
        super().__init__(f"Delete already pending for {record_id}")
        self.record_id = record_id


class UnknownRecord(KeyError):
    """The record is not in the local cache."""


@dataclass(frozen=True)
class MutationResult:
    record_id: str
    state: MutationState
    reconciled: bool = False
    error: Optional[Exception] = None

    @property
    def committed(self) -> bool:
        return self.state == MutationState.COMMITTED


@dataclass
class _PendingDelete:
    index: int
    record: dict
    version_after_remove: int


class OptimisticDeleteSynchronizer:
    """
    Keeps a HistoryCache consistent with a HistoryBackend across deletes.

    Args:
        cache: The cache this synchronizer mutates
        backend: Where durable changes go
        notify: Optional callback ``notify(level, message)`` with level
            "success" or "error"
    """

    def __init__(
        self,
        cache: HistoryCache,
        backend: HistoryBackend,
        notify: Optional[Notify] = None,
    ):
        self.cache = cache
        self._backend = backend
        self._notify = notify
        self._pending: Dict[str, _PendingDelete] = {}
        self._refresh_tasks: Set[asyncio.Task] = set()
        # Bumped whenever a delete starts or finishes. A page fetched across
        # a bump may predate that delete and is discarded.
        self._generation = 0

    def state_of(self, record_id: str) -> MutationState:
        """Idle unless a delete for record_id is in flight."""
        if record_id in self._pending:
            return MutationState.PENDING
        return MutationState.IDLE

    async def load(self, limit: Optional[int] = None, skip: Optional[int] = None) -> CachedPage:
        """
        Fetch a page from the backend into the cache.

        The page is not applied if a delete started or finished while it
        was in flight; the returned page is then informational only.
        """
        generation = self._generation
        page = await self._backend.list(
            limit=self.cache.limit if limit is None else limit,
            skip=self.cache.skip if skip is None else skip,
        )
        if generation != self._generation:
            _logger.debug("Discarding history page fetched before a newer delete")
            return page
        self.cache.replace(page, hide_ids=self._pending.keys())
        return page

    async def delete(self, record_id: str) -> MutationResult:
        """
        Optimistically delete one record.

        Returns:
            MutationResult in state COMMITTED or ROLLED_BACK

        Raises:
            DuplicateMutation: A delete for record_id is still pending
            UnknownRecord: record_id is not in the cache
        """
        if record_id in self._pending:
            raise DuplicateMutation(record_id)
        if not self.cache.contains(record_id):
            raise UnknownRecord(record_id)

        snapshot = self.cache.snapshot()
        index, record = self.cache.remove_local(record_id)
        self._pending[record_id] = _PendingDelete(
            index=index, record=record, version_after_remove=self.cache.version
        )
        self._generation += 1

        try:
            await self._backend.remove(record_id)
        except NotFoundOrForbidden:
            _logger.info(f"Delete of {record_id} reconciled: already gone on server")
            result = MutationResult(record_id, MutationState.COMMITTED, reconciled=True)
        except asyncio.CancelledError:
            self._rollback(record_id, snapshot)
            raise
        except Exception as e:
            _logger.warning(f"Delete of {record_id} failed, rolling back: {type(e).__name__}: {e}")
            self._rollback(record_id, snapshot)
            self._emit("error", DELETE_FAILED_MESSAGE)
            return MutationResult(record_id, MutationState.ROLLED_BACK, error=e)
        else:
            result = MutationResult(record_id, MutationState.COMMITTED)

        del self._pending[record_id]
        self._generation += 1
        self._emit("success", DELETE_SUCCESS_MESSAGE)
        self._schedule_refresh()
        return result

    async def settle(self) -> None:
        """Wait for outstanding background refreshes."""
        while self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks))

    def _rollback(self, record_id: str, snapshot) -> None:
        pending = self._pending.pop(record_id)
        self._generation += 1
        if self.cache.version == pending.version_after_remove:
            self.cache.restore(snapshot)
        else:
            # Other changes landed since; put back only this record.
            self.cache.reinsert(pending.index, pending.record)

    def _schedule_refresh(self) -> None:
        task = asyncio.get_running_loop().create_task(self._refresh())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh(self) -> None:
        try:
            await self.load()
        except Exception as e:
            _logger.warning(f"History refresh failed: {type(e).__name__}: {e}")
            self._emit("error", REFRESH_FAILED_MESSAGE)

    def _emit(self, level: str, message: str) -> None:
        if self._notify is not None:
            self._notify(level, message)
