"""Transitions accepted by the state container, one model per kind."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from pipeview.models.records import (
    Branch,
    LogChunk,
    Message,
    NodeModel,
    NodesInformation,
    Pipeline,
    Run,
)


class _Transition(BaseModel):
    model_config = ConfigDict(frozen=True)


class UpdateMessages(_Transition):
    kind: Literal["update_messages"] = "update_messages"
    message: Message | None = None


class ClearPipelines(_Transition):
    kind: Literal["clear_pipelines"] = "clear_pipelines"


class SetPipelines(_Transition):
    kind: Literal["set_pipelines"] = "set_pipelines"
    pipelines: tuple[Pipeline, ...]


class SetPipeline(_Transition):
    kind: Literal["set_pipeline"] = "set_pipeline"
    name: str


class ClearPipeline(_Transition):
    kind: Literal["clear_pipeline"] = "clear_pipeline"


class SetCurrentRuns(_Transition):
    kind: Literal["set_current_runs"] = "set_current_runs"
    runs: tuple[Run, ...]


class ClearCurrentRuns(_Transition):
    kind: Literal["clear_current_runs"] = "clear_current_runs"


class SetRuns(_Transition):
    kind: Literal["set_runs"] = "set_runs"
    pipeline: str
    runs: tuple[Run, ...]


class SetCurrentBranches(_Transition):
    kind: Literal["set_current_branches"] = "set_current_branches"
    branches: tuple[Branch, ...]


class ClearCurrentBranches(_Transition):
    kind: Literal["clear_current_branches"] = "clear_current_branches"


class SetBranches(_Transition):
    kind: Literal["set_branches"] = "set_branches"
    pipeline: str
    branches: tuple[Branch, ...]


class UpdateBranch(_Transition):
    kind: Literal["update_branch"] = "update_branch"
    pipeline: str
    branch: Branch


class SetNode(_Transition):
    kind: Literal["set_node"] = "set_node"
    node: NodeModel | None = None


class SetNodes(_Transition):
    kind: Literal["set_nodes"] = "set_nodes"
    information: NodesInformation


class SetSteps(_Transition):
    kind: Literal["set_steps"] = "set_steps"
    information: NodesInformation


class SetLogs(_Transition):
    kind: Literal["set_logs"] = "set_logs"
    chunk: LogChunk


Transition = Annotated[
    Union[
        UpdateMessages,
        ClearPipelines,
        SetPipelines,
        SetPipeline,
        ClearPipeline,
        SetCurrentRuns,
        ClearCurrentRuns,
        SetRuns,
        SetCurrentBranches,
        ClearCurrentBranches,
        SetBranches,
        UpdateBranch,
        SetNode,
        SetNodes,
        SetSteps,
        SetLogs,
    ],
    Field(discriminator="kind"),
]
