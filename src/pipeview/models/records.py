"""Record models for the REST resources held in the dashboard state.

Records are frozen; updates go through ``model_copy(update=...)`` so only the
named fields change and every other field, including unknown backend fields
kept as extras, is carried over untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

_ERROR_RESULTS = frozenset({"FAILURE", "UNSTABLE", "ABORTED"})


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="allow", coerce_numbers_to_str=True,
    )


class Pipeline(_Record):
    name: str
    organization: str = "jenkins"
    is_multi_branch: bool = Field(default=False, alias="isMultiBranch")

    @model_validator(mode="before")
    @classmethod
    def detect_multi_branch(cls, data: Any) -> Any:
        # The REST listing marks multi-branch pipelines by their branch names only.
        if isinstance(data, dict) and "branchNames" in data and "isMultiBranch" not in data:
            return {**data, "isMultiBranch": True}
        return data


class Run(_Record):
    """A pipeline run.

    ``id`` is assigned by the backend once the run starts. Until then a
    provisional run is identified by its queue id.
    """

    id: str | None = None
    job_run_queue_id: str | None = Field(default=None, alias="job_run_queueId")
    pipeline: str | None = None  # branch name on multi-branch pipelines
    state: str | None = None
    result: str | None = None

    @property
    def is_provisional(self) -> bool:
        return self.id is None and self.job_run_queue_id is not None


class Branch(_Record):
    name: str
    organization: str = "jenkins"
    latest_run: Run | None = Field(default=None, alias="latestRun")


class NodeModel(_Record):
    """One stage/parallel node of a run's execution graph, as shown in the UI."""

    id: str
    display_name: str = Field(default="", alias="displayName")
    state: str | None = None
    result: str | None = None
    is_focused: bool = Field(default=False, alias="isFocused")
    is_completed: bool = False
    is_running: bool = False
    is_error: bool = False


class NodesInformation(_Record):
    """Node (or step) list of a run plus the URL it was fetched from."""

    model: tuple[NodeModel, ...] = ()
    nodes_base_url: str
    is_finished: bool = True
    has_result_error: bool = False

    @classmethod
    def from_payload(cls, payload: list[dict[str, Any]], nodes_base_url: str) -> NodesInformation:
        """Build node models from a raw node/step listing.

        The focused node is the first running one; failing that, the first
        one that ended in error.
        """
        nodes = []
        for item in payload:
            state = item.get("state")
            result = item.get("result")
            nodes.append({
                "id": str(item.get("id")),
                "displayName": item.get("displayName", ""),
                "state": state,
                "result": result,
                "is_completed": state in ("FINISHED", "SKIPPED"),
                "is_running": state == "RUNNING",
                "is_error": result in _ERROR_RESULTS,
            })

        focused = next((n for n in nodes if n["is_running"]), None)
        if focused is None:
            focused = next((n for n in nodes if n["is_error"]), None)
        if focused is not None:
            focused["isFocused"] = True

        return cls(
            model=tuple(NodeModel.model_validate(n) for n in nodes),
            nodes_base_url=nodes_base_url,
            is_finished=all(n["is_completed"] for n in nodes),
            has_result_error=any(n["is_error"] for n in nodes),
        )


class LogChunk(_Record):
    text: str
    log_url: str


class Message(_Record):
    """User-visible diagnostic entry."""

    type: str = "ERROR"
    message: str
