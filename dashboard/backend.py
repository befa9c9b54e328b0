"""
History backends used by the dashboard synchronizer.

The synchronizer never touches durable state itself; it goes through a
HistoryBackend. HttpHistoryBackend talks to the HTTP API, StoreBackend
calls a HistoryStore in-process for one identity.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.errors import ImageCheckError, NotFoundOrForbidden, Unauthorized
from app.history_store import HistoryStore
from auth.models import Identity
from dashboard.cache import CachedPage

_logger = logging.getLogger(__name__)


class HistoryRequestError(ImageCheckError):
    """History API call failed (transport error or unexpected status)."""

    status_code = 502
    public_message = "History request failed"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class HistoryBackend(ABC):
    """
    Contract the synchronizer relies on.

    remove() must raise NotFoundOrForbidden when the record is gone or not
    owned, and any other exception for every other failure.
    """

    @abstractmethod
    async def list(self, limit: int, skip: int) -> CachedPage:
        """Fetch one page of the caller's history."""

    @abstractmethod
    async def remove(self, record_id: str) -> None:
        """Delete one of the caller's records."""


class HttpHistoryBackend(HistoryBackend):
    """
    Backend over GET/DELETE /history.

    Args:
        base_url: API root, e.g. "https://imagecheck.example.com"
        session_token: Session ID from /api/auth/login (sent as bearer)
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use ASGITransport)
    """

    def __init__(
        self,
        base_url: str,
        session_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {session_token}"}
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, params: dict) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method, "/history", params=params, headers=self._headers
                )
        except httpx.HTTPError as e:
            raise HistoryRequestError(f"History request failed: {type(e).__name__}")

        if response.status_code == 401:
            raise Unauthorized("Session expired or missing")
        if response.status_code == 404:
            raise NotFoundOrForbidden()
        if not response.is_success:
            raise HistoryRequestError(
                f"History API returned {response.status_code}",
                status=response.status_code,
            )
        return response

    async def list(self, limit: int, skip: int) -> CachedPage:
        response = await self._request("GET", {"limit": limit, "skip": skip})
        try:
            body = response.json()
        except ValueError:
            raise HistoryRequestError("History API returned a non-JSON body")
        return CachedPage.from_response(body)

    async def remove(self, record_id: str) -> None:
        await self._request("DELETE", {"id": record_id})


class StoreBackend(HistoryBackend):
    """In-process backend bound to one identity."""

    def __init__(self, store: HistoryStore, identity: Identity):
        self._store = store
        self._identity = identity

    async def list(self, limit: int, skip: int) -> CachedPage:
        page = self._store.list(self._identity, limit=limit, skip=skip)
        body = page.to_dict()
        return CachedPage.from_response(body)

    async def remove(self, record_id: str) -> None:
        self._store.remove(self._identity, record_id)
