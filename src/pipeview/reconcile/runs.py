"""Run-state reconciler — merges job lifecycle events into cached run and branch collections.

The REST API can lag behind the event stream: a run reported as started may
still come back as QUEUED when fetched straight away. The lifecycle phase
implied by the event therefore wins over the fetched ``state``; every other
field comes from the fetch.

Each fetch is a suspension point. The run collection is looked up again
from the store after every fetch, so writes made by other events while the
request was in flight are never lost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pipeview.addressing import branch_url, run_url
from pipeview.cache.fetch_cache import FetchCache
from pipeview.errors import ReconciliationMiss, TransportError
from pipeview.models.events import (
    JenkinsEvent,
    JobEvent,
    RunState,
    implied_state,
    later_state,
)
from pipeview.models.records import Branch, Message, Run
from pipeview.models.transitions import (
    SetCurrentRuns,
    SetRuns,
    UpdateBranch,
    UpdateMessages,
)
from pipeview.store.dispatch import Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunLookup:
    """Run collection of the event's pipeline and the index of the event's run in it."""

    runs: tuple[Run, ...]
    index: int | None = None

    @property
    def run(self) -> Run | None:
        return self.runs[self.index] if self.index is not None else None


class RunReconciler:
    """Applies job lifecycle events to the run and branch slices of a Store."""

    def __init__(
        self,
        store: Store,
        cache: FetchCache,
        base_url: str,
        organization: str = "jenkins",
    ) -> None:
        self._store = store
        self._cache = cache
        self._base_url = base_url
        self._organization = organization

    async def handle_event(self, event: JobEvent) -> None:
        """Route one event to the run and branch reconcilers.

        Events about pipelines whose runs or branches were never loaded are
        dropped.
        """
        try:
            if event.jenkins_event == JenkinsEvent.JOB_RUN_QUEUED:
                self.process_job_queued(event)
            elif event.jenkins_event == JenkinsEvent.JOB_RUN_STARTED:
                await self.update_run_state(event, by_queue_id=True)
            else:
                await self.update_run_state(event, by_queue_id=False)
        except ReconciliationMiss as e:
            logger.debug("Run event dropped: %s", e)

        try:
            await self.update_branch_state(event)
        except ReconciliationMiss as e:
            logger.debug("Branch event dropped: %s", e)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def lookup(self, event: JobEvent, *, by_queue_id: bool) -> RunLookup:
        """Read the event's run collection fresh from the store and locate its run.

        The preferred key (queue id or run id) is tried first, then the other
        one, so neither a provisional run nor a run already listed by the
        backend gets a second entry.

        Raises:
            ReconciliationMiss: no runs are loaded for the event's pipeline.
        """
        runs = self._store.get_state().runs.get(event.blueocean_job_name)
        if runs is None:
            raise ReconciliationMiss(f"no runs loaded for {event.blueocean_job_name!r}")

        candidates = self._candidates(event, runs)
        keys = [("job_run_queue_id", event.job_run_queue_id), ("id", event.jenkins_object_id)]
        if not by_queue_id:
            keys.reverse()

        for attr, value in keys:
            if value is None:
                continue
            for i in candidates:
                if getattr(runs[i], attr) == value:
                    return RunLookup(runs, i)

        return RunLookup(runs)

    @staticmethod
    def _candidates(event: JobEvent, runs: tuple[Run, ...]) -> list[int]:
        return [
            i for i, run in enumerate(runs)
            if not event.blueocean_is_multi_branch or run.pipeline == event.blueocean_branch_name
        ]

    def process_job_queued(self, event: JobEvent) -> None:
        """Insert a provisional run for a newly queued job, once per queue id."""
        if event.job_run_queue_id is None:
            raise ReconciliationMiss("queued event carries no queue id")

        found = self.lookup(event, by_queue_id=True)
        if found.run is not None and found.run.job_run_queue_id == event.job_run_queue_id:
            return

        provisional = Run(
            job_run_queueId=event.job_run_queue_id,
            pipeline=event.run_pipeline,
            state=RunState.QUEUED.value,
            result="UNKNOWN",
        )
        logger.info(
            "Queued run %s for %s", event.job_run_queue_id, event.blueocean_job_name,
        )
        self._write_runs(event, (provisional, *found.runs))

    async def update_run_state(self, event: JobEvent, *, by_queue_id: bool) -> None:
        """Re-fetch the event's run and merge it into the collection.

        On transport failure a best-effort run is built from the event itself
        and a diagnostic message is recorded.
        """
        found = self.lookup(event, by_queue_id=by_queue_id)

        if event.jenkins_object_id is None:
            # Nothing to fetch; only an existing provisional entry can be advanced.
            if found.run is None:
                raise ReconciliationMiss(
                    f"{event.jenkins_event} for {event.blueocean_job_name!r} matches no run"
                )
            self._merge_run(event, by_queue_id, fetched=None)
            return

        url = run_url(
            self._base_url,
            event.blueocean_job_name,
            event.jenkins_object_id,
            branch=event.blueocean_branch_name if event.blueocean_is_multi_branch else None,
            organization=self._organization,
        )
        try:
            payload = await self._cache.fetch_always(url)
            fetched: Run | None = Run.model_validate(payload)
        except TransportError as e:
            logger.warning("Error getting run data from REST endpoint %s: %s", url, e)
            self._report(e)
            fetched = None

        self._merge_run(event, by_queue_id, fetched)

    def _merge_run(self, event: JobEvent, by_queue_id: bool, fetched: Run | None) -> None:
        found = self.lookup(event, by_queue_id=by_queue_id)
        existing = found.run

        if fetched is not None:
            run = fetched
            if run.job_run_queue_id is None and existing is not None:
                run = run.model_copy(update={"job_run_queue_id": existing.job_run_queue_id})
        else:
            base = existing or Run(
                job_run_queueId=event.job_run_queue_id,
                pipeline=event.run_pipeline,
            )
            update: dict[str, object] = {}
            if event.job_run_status is not None:
                update["result"] = event.job_run_status
            if event.jenkins_object_id is not None:
                update["id"] = event.jenkins_object_id
            run = base.model_copy(update=update)

        matches = self._same_run(event, found.runs, run)
        if run.job_run_queue_id is None:
            queue_id = next(
                (found.runs[i].job_run_queue_id for i in matches if found.runs[i].job_run_queue_id),
                None,
            )
            if queue_id is not None:
                run = run.model_copy(update={"job_run_queue_id": queue_id})
                matches = self._same_run(event, found.runs, run)
        if found.index is not None and found.index not in matches:
            matches = sorted([found.index, *matches])

        # A further-along entry also keeps its result.
        state = implied_state(event)
        result = run.result
        for i in matches:
            prior = found.runs[i]
            merged = later_state(prior.state, state)
            if merged != state:
                result = prior.result
            state = merged
        run = run.model_copy(update={"state": state.value, "result": result})

        if matches:
            if len(matches) > 1:
                logger.debug("Collapsing %d entries for run %s", len(matches), run.id)
            dropped = set(matches[1:])
            new_runs = tuple(
                run if i == matches[0] else r
                for i, r in enumerate(found.runs)
                if i not in dropped
            )
        else:
            new_runs = (run, *found.runs)

        logger.info(
            "Run %s of %s is now %s",
            run.id or run.job_run_queue_id, event.blueocean_job_name, run.state,
        )
        self._write_runs(event, new_runs)

    def _same_run(self, event: JobEvent, runs: tuple[Run, ...], run: Run) -> list[int]:
        """Indices of every entry sharing the run's id or queue id, lowest first."""
        return [
            i for i in self._candidates(event, runs)
            if (run.id is not None and runs[i].id == run.id)
            or (run.job_run_queue_id is not None and runs[i].job_run_queue_id == run.job_run_queue_id)
        ]

    def _write_runs(self, event: JobEvent, runs: tuple[Run, ...]) -> None:
        if event.blueocean_is_for_current_job:
            self._store.dispatch(SetCurrentRuns(runs=runs))
        self._store.dispatch(SetRuns(pipeline=event.blueocean_job_name, runs=runs))

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def _find_branch(self, event: JobEvent) -> Branch:
        branches = self._store.get_state().branches.get(event.blueocean_job_name) or ()
        branch = next((b for b in branches if b.name == event.blueocean_branch_name), None)
        if branch is None:
            raise ReconciliationMiss(
                f"branch {event.blueocean_branch_name!r} of {event.blueocean_job_name!r} not loaded"
            )
        return branch

    async def update_branch_state(self, event: JobEvent) -> None:
        """Refresh the branch an event on a multi-branch pipeline refers to."""
        if not event.blueocean_is_multi_branch:
            return

        branch = self._find_branch(event)
        url = branch_url(self._base_url, branch.organization, event.blueocean_job_name, branch.name)
        try:
            payload = await self._cache.fetch_always(url)
        except TransportError as e:
            logger.warning("Error getting branch data from REST endpoint %s: %s", url, e)
            self._report(e)
            return

        fetched = Branch.model_validate(payload)
        if fetched.latest_run is not None:
            cached = self._find_branch(event).latest_run
            claimed = implied_state(event)
            if cached is not None and cached.id == fetched.latest_run.id:
                state = later_state(cached.state, claimed)
            else:
                state = claimed
            fetched = fetched.model_copy(
                update={"latest_run": fetched.latest_run.model_copy(update={"state": state.value})}
            )

        self._store.dispatch(UpdateBranch(pipeline=event.blueocean_job_name, branch=fetched))

    def _report(self, error: TransportError) -> None:
        self._store.dispatch(UpdateMessages(message=Message(type="ERROR", message=str(error))))
