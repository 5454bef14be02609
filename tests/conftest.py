"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pipeview.cache.fetch_cache import FetchCache
from pipeview.errors import TransportError
from pipeview.store.dispatch import Store

BASE_URL = "http://ci.test/blue"


class FakeFetcher:
    """In-memory Fetcher: canned payloads per URL, optional gates to hold a request open."""

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.calls: list[str] = []
        self.gates: dict[str, list[asyncio.Event]] = {}

    def hold(self, url: str) -> asyncio.Event:
        """Block the next not-yet-held request for url until the returned event is set.

        Calling hold() twice gates two successive requests independently.
        """
        gate = asyncio.Event()
        self.gates.setdefault(url, []).append(gate)
        return gate

    async def _respond(self, url: str) -> Any:
        self.calls.append(url)
        pending = self.gates.get(url)
        if pending:
            await pending.pop(0).wait()
        if url not in self.responses:
            raise TransportError(url, "Not Found", status_code=404)
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    async def get_json(self, url: str) -> Any:
        return await self._respond(url)

    async def get_text(self, url: str) -> str:
        return await self._respond(url)


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def cache(fetcher: FakeFetcher) -> FetchCache:
    return FetchCache(fetcher)


@pytest.fixture
def store() -> Store:
    return Store()
