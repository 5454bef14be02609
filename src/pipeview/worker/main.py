"""Sync worker — keeps a dashboard state in step with the backend.

Usage: python -m pipeview.worker.main --pipeline demo --pipeline other
"""

from __future__ import annotations

import argparse
import asyncio
import logging

import redis.asyncio as aioredis

from pipeview.actions import DashboardActions
from pipeview.cache.fetch_cache import FetchCache
from pipeview.client.http import BackendClient
from pipeview.config.bootstrap import load_bootstrap_config
from pipeview.events.bus import EventFeed, RedisEventFeed
from pipeview.reconcile.runs import RunReconciler
from pipeview.store.dispatch import Store
from pipeview.store.state import DashboardState

logger = logging.getLogger(__name__)


def _log_version(state: DashboardState) -> None:
    logger.debug(
        "State v%d: %d pipelines with runs, %d messages",
        state.version, len(state.runs), len(state.messages),
    )


async def consume_events(
    feed: EventFeed,
    reconciler: RunReconciler,
    last_id: str = "$",
    limit: int | None = None,
) -> int:
    """Feed stream events into the reconciler; returns how many were handled.

    One failing event is logged and does not stop the loop.
    """
    handled = 0
    async for event in feed.subscribe(last_id=last_id):
        try:
            await reconciler.handle_event(event)
        except Exception:
            logger.exception(
                "Failed to reconcile %s for %s", event.jenkins_event, event.blueocean_job_name,
            )
        handled += 1
        if limit is not None and handled >= limit:
            break
    return handled


async def run_worker(pipelines: list[str], from_start: bool = False) -> None:
    """Load the named pipelines, then follow the lifecycle event stream."""
    cfg = load_bootstrap_config()
    logging.basicConfig(level=getattr(logging, cfg.log_level), format="%(asctime)s %(name)s %(levelname)s %(message)s")

    logger.info("Worker starting for %s against %s", ", ".join(pipelines), cfg.base_url)

    redis_client = aioredis.from_url(cfg.redis_url)
    client = BackendClient(timeout=cfg.http_timeout)
    store = Store()
    unsubscribe = store.subscribe(_log_version)

    cache = FetchCache(client)
    actions = DashboardActions(store, cache, cfg.base_url, cfg.organization)
    reconciler = RunReconciler(store, cache, cfg.base_url, cfg.organization)
    feed = RedisEventFeed(redis_client, cfg.event_stream)

    try:
        await actions.fetch_pipelines_if_needed(cfg.organization)
        known = {p.name: p for p in store.get_state().pipelines or ()}
        multi_branch = [n for n in pipelines if n in known and known[n].is_multi_branch]

        # Events are only reconciled for pipelines whose runs are already loaded.
        await asyncio.gather(
            *(actions.fetch_runs_if_needed(name) for name in pipelines),
            *(actions.fetch_branches_if_needed(name) for name in multi_branch),
        )
        for message in store.get_state().messages:
            logger.warning("Startup: %s", message.message)

        await consume_events(feed, reconciler, last_id="0" if from_start else "$")
    finally:
        unsubscribe()
        store.dispose()
        await client.aclose()
        await redis_client.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="pipeview sync worker")
    parser.add_argument(
        "--pipeline", action="append", required=True, help="Pipeline to track (repeatable)",
    )
    parser.add_argument(
        "--from-start", action="store_true", help="Replay the event stream from its first entry",
    )
    args = parser.parse_args()
    asyncio.run(run_worker(args.pipeline, args.from_start))


if __name__ == "__main__":
    main()
