"""Dashboard state container — immutable snapshots and the pure reducer.

reduce(state, transition) -> state. No IO. The input snapshot is never
modified; keyed slices are rebuilt with only the affected key replaced, so
untouched slices keep their identity and the UI can compare by reference.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, field_validator

from pipeview.errors import UnknownTransitionError
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
    Transition,
    UpdateBranch,
    UpdateMessages,
)


class DashboardState(BaseModel):
    """One version of everything the dashboard knows.

    Keyed slices are read-only mappings; a new version always gets a new
    mapping, so an old snapshot never sees later writes.
    """

    model_config = ConfigDict(frozen=True, validate_default=True)

    version: int = 0
    messages: tuple[Message, ...] = ()

    pipelines: tuple[Pipeline, ...] | None = None
    pipeline: Pipeline | None = None

    # Keyed slices: pipeline name -> collection
    runs: Mapping[str, tuple[Run, ...]] = {}
    branches: Mapping[str, tuple[Branch, ...]] = {}
    current_runs: tuple[Run, ...] | None = None
    current_branches: tuple[Branch, ...] | None = None

    # Keyed slices: resource URL -> payload
    node: NodeModel | None = None
    nodes: Mapping[str, NodesInformation] = {}
    steps: Mapping[str, NodesInformation] = {}
    logs: Mapping[str, LogChunk] = {}

    @field_validator("runs", "branches", "nodes", "steps", "logs")
    @classmethod
    def read_only_slices(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))


def _set(state: DashboardState, **fields: Any) -> DashboardState:
    return state.model_copy(update=fields)


def _with_key(mapping: Mapping[str, Any], key: str, value: Any) -> Mapping[str, Any]:
    updated = dict(mapping)
    updated[key] = value
    return MappingProxyType(updated)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _update_messages(state: DashboardState, t: UpdateMessages) -> DashboardState:
    if t.message is None:
        return state
    return _set(state, messages=(*state.messages, t.message))


def _clear_pipelines(state: DashboardState, t: ClearPipelines) -> DashboardState:
    return _set(state, pipelines=None)


def _set_pipelines(state: DashboardState, t: SetPipelines) -> DashboardState:
    return _set(state, pipelines=t.pipelines)


def _set_pipeline(state: DashboardState, t: SetPipeline) -> DashboardState:
    if not state.pipelines:
        return _set(state, pipeline=None)
    match = next((p for p in state.pipelines if p.name == t.name), None)
    return _set(state, pipeline=match)


def _clear_pipeline(state: DashboardState, t: ClearPipeline) -> DashboardState:
    return _set(state, pipeline=None)


def _set_current_runs(state: DashboardState, t: SetCurrentRuns) -> DashboardState:
    return _set(state, current_runs=t.runs)


def _clear_current_runs(state: DashboardState, t: ClearCurrentRuns) -> DashboardState:
    return _set(state, current_runs=None)


def _set_runs(state: DashboardState, t: SetRuns) -> DashboardState:
    return _set(state, runs=_with_key(state.runs, t.pipeline, t.runs))


def _set_current_branches(state: DashboardState, t: SetCurrentBranches) -> DashboardState:
    return _set(state, current_branches=t.branches)


def _clear_current_branches(state: DashboardState, t: ClearCurrentBranches) -> DashboardState:
    return _set(state, current_branches=None)


def _set_branches(state: DashboardState, t: SetBranches) -> DashboardState:
    return _set(state, branches=_with_key(state.branches, t.pipeline, t.branches))


def _update_branch(state: DashboardState, t: UpdateBranch) -> DashboardState:
    """Replace one branch by name and mirror the collection into current_branches."""
    job_branches = state.branches.get(t.pipeline)
    if job_branches is None:
        return state
    updated = tuple(t.branch if b.name == t.branch.name else b for b in job_branches)
    return _set(
        state,
        branches=_with_key(state.branches, t.pipeline, updated),
        current_branches=updated,
    )


def _set_node(state: DashboardState, t: SetNode) -> DashboardState:
    return _set(state, node=t.node)


def _set_nodes(state: DashboardState, t: SetNodes) -> DashboardState:
    info = t.information
    return _set(state, nodes=_with_key(state.nodes, info.nodes_base_url, info))


def _set_steps(state: DashboardState, t: SetSteps) -> DashboardState:
    info = t.information
    return _set(state, steps=_with_key(state.steps, info.nodes_base_url, info))


def _set_logs(state: DashboardState, t: SetLogs) -> DashboardState:
    return _set(state, logs=_with_key(state.logs, t.chunk.log_url, t.chunk))


_HANDLERS: dict[str, Callable[[DashboardState, Any], DashboardState]] = {
    "update_messages": _update_messages,
    "clear_pipelines": _clear_pipelines,
    "set_pipelines": _set_pipelines,
    "set_pipeline": _set_pipeline,
    "clear_pipeline": _clear_pipeline,
    "set_current_runs": _set_current_runs,
    "clear_current_runs": _clear_current_runs,
    "set_runs": _set_runs,
    "set_current_branches": _set_current_branches,
    "clear_current_branches": _clear_current_branches,
    "set_branches": _set_branches,
    "update_branch": _update_branch,
    "set_node": _set_node,
    "set_nodes": _set_nodes,
    "set_steps": _set_steps,
    "set_logs": _set_logs,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def reduce(state: DashboardState, transition: Transition) -> DashboardState:
    """Apply one transition and return the resulting snapshot.

    Raises:
        UnknownTransitionError: the transition kind has no handler.
    """
    kind = getattr(transition, "kind", None)
    handler = _HANDLERS.get(kind) if isinstance(kind, str) else None
    if handler is None:
        raise UnknownTransitionError(f"Unknown transition kind: {kind!r}")
    return handler(state, transition)
