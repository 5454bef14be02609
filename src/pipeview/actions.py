"""Dashboard actions — fetch REST resources on demand and publish them to the store.

Keyed resources (runs and branches per pipeline, nodes, steps and logs per
URL) go through ``FetchCache.fetch_if_absent`` so each is requested at most
once. Transport failures never escape an action: they are logged and
recorded as diagnostic messages.
"""

from __future__ import annotations

import logging

from pipeview.addressing import (
    NavigationContext,
    branches_url,
    log_url,
    node_base_url,
    pipelines_url,
    runs_url,
    steps_base_url,
)
from pipeview.cache.fetch_cache import FetchCache
from pipeview.errors import TransportError
from pipeview.models.records import (
    Branch,
    LogChunk,
    Message,
    NodeModel,
    NodesInformation,
    Pipeline,
    Run,
)
from pipeview.models.transitions import (
    ClearCurrentBranches,
    ClearCurrentRuns,
    ClearPipeline,
    ClearPipelines,
    SetBranches,
    SetCurrentBranches,
    SetCurrentRuns,
    SetLogs,
    SetNode,
    SetNodes,
    SetPipeline,
    SetPipelines,
    SetRuns,
    SetSteps,
    UpdateMessages,
)
from pipeview.store.dispatch import Store

logger = logging.getLogger(__name__)


class DashboardActions:
    """UI-driven reads: pipelines, runs, branches, nodes, steps and logs."""

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

    def _report(self, error: TransportError) -> None:
        logger.error("REST request failed: %s", error)
        self._store.dispatch(UpdateMessages(message=Message(type="ERROR", message=str(error))))

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def clear_pipelines(self) -> None:
        self._store.dispatch(ClearPipelines())

    def clear_pipeline(self) -> None:
        self._store.dispatch(ClearPipeline())

    async def fetch_pipelines(self, organization: str | None = None) -> None:
        """Unconditionally fetch and replace the pipeline list."""
        url = pipelines_url(self._base_url, organization)
        try:
            payload = await self._cache.fetch_always(url)
        except TransportError as e:
            self._report(e)
            return
        pipelines = tuple(Pipeline.model_validate(p) for p in payload)
        self._store.dispatch(SetPipelines(pipelines=pipelines))

    async def fetch_pipelines_if_needed(self, organization: str | None = None) -> None:
        if self._store.get_state().pipelines is None:
            await self.fetch_pipelines(organization)

    async def set_pipeline(self, name: str) -> None:
        """Select a pipeline by name, loading the pipeline list first if necessary."""
        self._store.dispatch(ClearPipeline())
        await self.fetch_pipelines_if_needed()
        self._store.dispatch(SetPipeline(name=name))

    # ------------------------------------------------------------------
    # Runs and branches
    # ------------------------------------------------------------------

    async def fetch_runs_if_needed(self, pipeline: str) -> None:
        """Publish the runs of a pipeline as current, fetching them on first use."""
        self._store.dispatch(ClearCurrentRuns())
        cached = self._store.get_state().runs.get(pipeline)
        if cached is not None:
            self._store.dispatch(SetCurrentRuns(runs=cached))
            return

        url = runs_url(self._base_url, pipeline, self._organization)
        try:
            payload = await self._cache.fetch_if_absent(url, url)
        except TransportError as e:
            self._report(e)
            return
        runs = tuple(Run.model_validate(r) for r in payload)
        self._store.dispatch(SetCurrentRuns(runs=runs))
        self._store.dispatch(SetRuns(pipeline=pipeline, runs=runs))

    async def fetch_branches_if_needed(self, pipeline: str) -> None:
        """Publish the branches of a pipeline as current, fetching them on first use."""
        self._store.dispatch(ClearCurrentBranches())
        cached = self._store.get_state().branches.get(pipeline)
        if cached is not None:
            self._store.dispatch(SetCurrentBranches(branches=cached))
            return

        url = branches_url(self._base_url, pipeline, self._organization)
        try:
            payload = await self._cache.fetch_if_absent(url, url)
        except TransportError as e:
            self._report(e)
            return
        branches = tuple(Branch.model_validate(b) for b in payload)
        self._store.dispatch(SetCurrentBranches(branches=branches))
        self._store.dispatch(SetBranches(pipeline=pipeline, branches=branches))

    # ------------------------------------------------------------------
    # Nodes and steps
    # ------------------------------------------------------------------

    async def _nodes_information(self, ctx: NavigationContext) -> NodesInformation | None:
        url = node_base_url(ctx)
        cached = self._store.get_state().nodes.get(url)
        if cached is not None:
            return cached
        try:
            payload = await self._cache.fetch_if_absent(url, url)
        except TransportError as e:
            self._report(e)
            return None
        information = NodesInformation.from_payload(payload, url)
        self._store.dispatch(SetNodes(information=information))
        return information

    async def fetch_nodes(self, ctx: NavigationContext) -> None:
        """Load a run's nodes, pick the node to show and load its steps.

        Without an explicit node the focused node is shown, falling back to
        the last node of the run.
        """
        information = await self._nodes_information(ctx)
        if information is None:
            return

        node_model: NodeModel | None
        if ctx.node is None:
            node_model = next((n for n in information.model if n.is_focused), None)
            if node_model is None and information.model:
                node_model = information.model[-1]
            node = node_model.id if node_model is not None else None
        else:
            node_model = next((n for n in information.model if n.id == ctx.node), None)
            node = ctx.node

        self._store.dispatch(SetNode(node=node_model))
        await self.fetch_steps(ctx.model_copy(update={"node": node}))

    async def set_node(self, ctx: NavigationContext) -> None:
        """Point the detail view at ``ctx.node``, loading the run's nodes if needed."""
        cached = self._store.get_state().nodes.get(node_base_url(ctx))
        if cached is None:
            await self.fetch_nodes(ctx)
            return
        node_model = next((n for n in cached.model if n.id == ctx.node), None)
        self._store.dispatch(SetNode(node=node_model))

    def clean_node_pointer(self) -> None:
        self._store.dispatch(SetNode(node=None))

    async def fetch_steps(self, ctx: NavigationContext) -> None:
        url = steps_base_url(ctx)
        if url in self._store.get_state().steps:
            return
        try:
            payload = await self._cache.fetch_if_absent(url, url)
        except TransportError as e:
            self._report(e)
            return
        self._store.dispatch(SetSteps(information=NodesInformation.from_payload(payload, url)))

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def fetch_log(self, ctx: NavigationContext, *, active: bool = False) -> None:
        """Load the log of a run or node.

        A fetched log is kept for good unless ``active`` is set: logs of runs
        still in progress keep growing and are re-fetched on every call.
        """
        url = log_url(ctx)
        if active:
            self._cache.invalidate(url)
        elif url in self._store.get_state().logs:
            return

        try:
            text = await self._cache.fetch_if_absent(url, url, text=True)
        except TransportError as e:
            self._report(e)
            return
        self._store.dispatch(SetLogs(chunk=LogChunk(text=text, log_url=url)))
