"""HTTP client for the CI backend REST API."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from pipeview.errors import TransportError

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Protocol for the read-only REST access the cache layer needs."""

    async def get_json(self, url: str) -> Any: ...

    async def get_text(self, url: str) -> str: ...


class BackendClient:
    """Thin wrapper around httpx.AsyncClient that raises TransportError.

    Retry and backoff are left to the transport; a failed request is
    reported once and never repeated here.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise TransportError(url, str(e) or type(e).__name__) from e

        if response.status_code < 200 or response.status_code >= 300:
            raise TransportError(url, response.reason_phrase, status_code=response.status_code)
        return response

    async def get_json(self, url: str) -> Any:
        response = await self._get(url)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(url, f"invalid JSON body: {e}", status_code=response.status_code) from e

    async def get_text(self, url: str) -> str:
        response = await self._get(url)
        return response.text
