"""
Dashboard-side history cache and optimistic delete synchronization.
"""

from dashboard.backend import (
    HistoryBackend,
    HistoryRequestError,
    HttpHistoryBackend,
    StoreBackend,
)
from dashboard.cache import CachedPage, CacheSnapshot, HistoryCache
from dashboard.synchronizer import (
    DuplicateMutation,
    MutationResult,
    MutationState,
    OptimisticDeleteSynchronizer,
    UnknownRecord,
)

__all__ = [
    "CachedPage",
    "CacheSnapshot",
    "DuplicateMutation",
    "HistoryBackend",
    "HistoryCache",
    "HistoryRequestError",
    "HttpHistoryBackend",
    "MutationResult",
    "MutationState",
    "OptimisticDeleteSynchronizer",
    "StoreBackend",
    "UnknownRecord",
]
