"""Tests for FetchCache — memoization, request coalescing and failure handling."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeFetcher, settle
from pipeview.cache.fetch_cache import FetchCache
from pipeview.errors import TransportError

URL = "http://ci.test/blue/rest/organizations/jenkins/pipelines/demo/runs/"


class TestFetchIfAbsent:
    @pytest.mark.asyncio
    async def test_first_call_fetches_and_caches(self, fetcher: FakeFetcher, cache: FetchCache) -> None:
        fetcher.responses[URL] = [{"id": "1"}]

        assert await cache.fetch_if_absent(URL, URL) == [{"id": "1"}]
        assert URL in cache
        assert fetcher.calls == [URL]

    @pytest.mark.asyncio
    async def test_cached_key_issues_no_request(self, fetcher: FakeFetcher, cache: FetchCache) -> None:
        fetcher.responses[URL] = [{"id": "1"}]
        await cache.fetch_if_absent(URL, URL)
        fetcher.responses[URL] = [{"id": "2"}]

        assert await cache.fetch_if_absent(URL, URL) == [{"id": "1"}]
        assert fetcher.calls == [URL]

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_request(
        self, fetcher: FakeFetcher, cache: FetchCache
    ) -> None:
        fetcher.responses[URL] = [{"id": "1"}]
        gate = fetcher.hold(URL)

        first = asyncio.create_task(cache.fetch_if_absent(URL, URL))
        second = asyncio.create_task(cache.fetch_if_absent(URL, URL))
        await settle()
        assert cache.is_inflight(URL)

        gate.set()
        results = await asyncio.gather(first, second)

        assert results == [[{"id": "1"}], [{"id": "1"}]]
        assert fetcher.calls == [URL]
        assert not cache.is_inflight(URL)

    @pytest.mark.asyncio
    async def test_key_is_independent_of_url(self, fetcher: FakeFetcher, cache: FetchCache) -> None:
        fetcher.responses[URL] = "payload"
        await cache.fetch_if_absent("runs:demo", URL)

        assert await cache.fetch_if_absent("runs:demo", "http://elsewhere/") == "payload"
        assert fetcher.calls == [URL]

    @pytest.mark.asyncio
    async def test_text_mode(self, fetcher: FakeFetcher, cache: FetchCache) -> None:
        fetcher.responses[URL] = "line 1\nline 2\n"
        assert await cache.fetch_if_absent(URL, URL, text=True) == "line 1\nline 2\n"


class TestFetchFailure:
    @pytest.mark.asyncio
    async def test_failure_is_raised_and_not_cached(self, fetcher: FakeFetcher, cache: FetchCache) -> None:
        with pytest.raises(TransportError) as exc_info:
            await cache.fetch_if_absent(URL, URL)

        assert exc_info.value.status_code == 404
        assert URL not in cache
        assert not cache.is_inflight(URL)

    @pytest.mark.asyncio
    async def test_failure_is_not_retried_but_next_call_fetches_again(
        self, fetcher: FakeFetcher, cache: FetchCache
    ) -> None:
        with pytest.raises(TransportError):
            await cache.fetch_if_absent(URL, URL)
        assert fetcher.calls == [URL]

        fetcher.responses[URL] = ["ok"]
        assert await cache.fetch_if_absent(URL, URL) == ["ok"]
        assert fetcher.calls == [URL, URL]

    @pytest.mark.asyncio
    async def test_every_waiting_caller_sees_the_failure(
        self, fetcher: FakeFetcher, cache: FetchCache
    ) -> None:
        gate = fetcher.hold(URL)
        first = asyncio.create_task(cache.fetch_if_absent(URL, URL))
        second = asyncio.create_task(cache.fetch_if_absent(URL, URL))
        await settle()
        gate.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        assert all(isinstance(r, TransportError) for r in results)
        assert fetcher.calls == [URL]

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_request(
        self, fetcher: FakeFetcher, cache: FetchCache
    ) -> None:
        fetcher.responses[URL] = ["ok"]
        gate = fetcher.hold(URL)
        first = asyncio.create_task(cache.fetch_if_absent(URL, URL))
        second = asyncio.create_task(cache.fetch_if_absent(URL, URL))
        await settle()

        first.cancel()
        gate.set()

        assert await second == ["ok"]
        assert URL in cache


class TestFetchAlwaysAndInvalidate:
    @pytest.mark.asyncio
    async def test_fetch_always_bypasses_cache(self, fetcher: FakeFetcher, cache: FetchCache) -> None:
        fetcher.responses[URL] = ["old"]
        await cache.fetch_if_absent(URL, URL)
        fetcher.responses[URL] = ["new"]

        assert await cache.fetch_always(URL) == ["new"]
        assert cache.get(URL) == ["old"]
        assert fetcher.calls == [URL, URL]

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, fetcher: FakeFetcher, cache: FetchCache) -> None:
        fetcher.responses[URL] = ["old"]
        await cache.fetch_if_absent(URL, URL)
        fetcher.responses[URL] = ["new"]

        cache.invalidate(URL)
        assert await cache.fetch_if_absent(URL, URL) == ["new"]

    def test_invalidate_unknown_key_is_noop(self, cache: FetchCache) -> None:
        cache.invalidate("missing")
        assert "missing" not in cache
