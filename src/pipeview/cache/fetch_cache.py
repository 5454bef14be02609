"""Fetch cache — memoized, coalesced REST reads keyed by resource URL."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pipeview.client.http import Fetcher

logger = logging.getLogger(__name__)


class FetchCache:
    """Caches REST payloads and shares in-flight requests between callers.

    At most one request per key is outstanding at any time. Only successful
    payloads are cached; a failure clears the in-flight marker and is raised
    to every caller waiting on it, with no automatic retry.
    """

    def __init__(self, fetcher: Fetcher) -> None:
        self._fetcher = fetcher
        self._entries: dict[str, Any] = {}
        self._inflight: dict[str, asyncio.Task[Any]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def is_inflight(self, key: str) -> bool:
        return key in self._inflight

    def invalidate(self, key: str) -> None:
        """Forget a cached payload so the next fetch_if_absent goes to the backend."""
        self._entries.pop(key, None)

    async def _request(self, url: str, text: bool) -> Any:
        if text:
            return await self._fetcher.get_text(url)
        return await self._fetcher.get_json(url)

    async def _load(self, key: str, url: str, text: bool) -> Any:
        try:
            payload = await self._request(url, text)
            self._entries[key] = payload
            return payload
        finally:
            self._inflight.pop(key, None)

    async def fetch_if_absent(self, key: str, url: str, *, text: bool = False) -> Any:
        """Return the cached payload for ``key``, fetching ``url`` only if needed.

        Concurrent callers for the same absent key await one shared request.

        Raises:
            TransportError: the shared request failed.
        """
        if key in self._entries:
            return self._entries[key]

        task = self._inflight.get(key)
        if task is None:
            logger.debug("Fetching %s", url)
            task = asyncio.ensure_future(self._load(key, url, text))
            self._inflight[key] = task
        else:
            logger.debug("Joining in-flight fetch for %s", key)

        # A cancelled caller must not cancel the request other callers share.
        return await asyncio.shield(task)

    async def fetch_always(self, url: str, *, text: bool = False) -> Any:
        """Fetch ``url`` without reading or writing the cache."""
        return await self._request(url, text)
