"""Job lifecycle events received from the push channel."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JenkinsEvent(str, Enum):
    JOB_RUN_QUEUED = "job_run_queued"
    JOB_RUN_STARTED = "job_run_started"
    JOB_RUN_ENDED = "job_run_ended"


class RunState(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"


_LIFECYCLE_ORDER = {RunState.QUEUED: 0, RunState.RUNNING: 1, RunState.FINISHED: 2}


class JobEvent(BaseModel):
    """A job run lifecycle notification.

    ``jenkins_event`` is kept as a plain string: the stream carries other
    event kinds too, and every kind other than ``job_run_ended`` is treated
    as evidence that the run is active.
    """

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True,
    )

    jenkins_event: str
    blueocean_job_name: str
    blueocean_branch_name: str | None = None
    blueocean_is_multi_branch: bool = False
    blueocean_is_for_current_job: bool = False
    job_run_queue_id: str | None = Field(default=None, alias="job_run_queueId")
    jenkins_object_id: str | None = None
    job_run_status: str | None = None

    @property
    def run_pipeline(self) -> str:
        """Value of ``Run.pipeline`` for runs this event refers to."""
        if self.blueocean_is_multi_branch:
            return self.blueocean_branch_name or ""
        return self.blueocean_job_name


def implied_state(event: JobEvent) -> RunState:
    """Lifecycle phase the event claims for its run."""
    if event.jenkins_event == JenkinsEvent.JOB_RUN_ENDED:
        return RunState.FINISHED
    if event.jenkins_event == JenkinsEvent.JOB_RUN_QUEUED:
        return RunState.QUEUED
    return RunState.RUNNING


def later_state(current: str | None, claimed: RunState) -> RunState:
    """Return whichever of two lifecycle phases is further along.

    Backend states outside QUEUED/RUNNING/FINISHED never hold back the
    claimed phase.
    """
    try:
        current_phase = RunState(current)
    except ValueError:
        return claimed
    if _LIFECYCLE_ORDER[current_phase] > _LIFECYCLE_ORDER[claimed]:
        return current_phase
    return claimed
