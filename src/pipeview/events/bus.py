"""Event feed — Redis Streams transport for job lifecycle events."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Protocol

import redis.asyncio as aioredis
from pydantic import ValidationError

from pipeview.models.events import JobEvent

logger = logging.getLogger(__name__)


class EventFeed(Protocol):
    """Protocol for the push channel delivering job lifecycle events."""

    async def emit(self, event: JobEvent) -> None: ...

    def subscribe(self, last_id: str = "$") -> AsyncIterator[JobEvent]: ...


class RedisEventFeed:
    """Lifecycle events carried on one Redis stream (XADD/XREAD)."""

    def __init__(self, redis: aioredis.Redis, stream: str = "pipeview:events") -> None:
        self._redis = redis
        self._stream = stream

    async def emit(self, event: JobEvent) -> None:
        """Append an event to the stream."""
        payload = event.model_dump_json(by_alias=True)
        await self._redis.xadd(self._stream, {"data": payload})

    async def subscribe(self, last_id: str = "$") -> AsyncIterator[JobEvent]:
        """Yield events from the stream, blocking on new entries.

        Starts after last_id. The default "$" only delivers events added from
        now on; pass "0" to read the stream from the beginning. Entries that
        do not parse as a JobEvent are logged and skipped.
        """
        current_id = last_id
        while True:
            entries = await self._redis.xread({self._stream: current_id}, block=5000, count=50)
            if not entries:
                continue
            for _stream_name, messages in entries:
                for msg_id, fields in messages:
                    current_id = msg_id
                    raw = fields.get(b"data") or fields.get("data")
                    if not raw:
                        continue
                    if isinstance(raw, bytes):
                        raw = raw.decode()
                    try:
                        event = JobEvent.model_validate_json(raw)
                    except ValidationError as e:
                        logger.warning("Skipping malformed event %s: %s", msg_id, e)
                        continue
                    yield event
