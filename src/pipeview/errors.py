"""Error taxonomy shared by the fetch, reconcile and store layers."""

from __future__ import annotations


class PipeviewError(Exception):
    """Base class for all pipeview errors."""


class TransportError(PipeviewError):
    """A backend request failed: non-2xx status or a network failure."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        self.url = url
        self.reason = reason
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"{status_code} {reason} for {url}")
        else:
            super().__init__(f"{reason} for {url}")


class ReconciliationMiss(PipeviewError):
    """An event refers to a run or branch collection that was never loaded."""


class UnknownTransitionError(PipeviewError):
    """The state container was handed a transition kind it has no handler for."""
