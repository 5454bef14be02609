"""Store — the dispatch boundary that owns the current DashboardState."""

from __future__ import annotations

import logging
from typing import Callable

from pipeview.models.transitions import Transition
from pipeview.store.state import DashboardState, reduce

logger = logging.getLogger(__name__)

Listener = Callable[[DashboardState], None]


class Store:
    """Holds the current snapshot and is the only place new versions are made.

    Dispatch is synchronous and never touches the network. Each accepted
    transition yields a new snapshot with ``version`` incremented by one.
    """

    def __init__(self, initial: DashboardState | None = None) -> None:
        self._state = initial if initial is not None else DashboardState()
        self._listeners: list[Listener] = []
        self._disposed = False

    def get_state(self) -> DashboardState:
        return self._state

    def dispatch(self, transition: Transition) -> DashboardState:
        """Reduce the transition into a new snapshot and notify listeners."""
        if self._disposed:
            raise RuntimeError("Store has been disposed")
        new_state = reduce(self._state, transition)
        new_state = new_state.model_copy(update={"version": self._state.version + 1})
        self._state = new_state
        logger.debug("Applied %s -> version %d", transition.kind, new_state.version)

        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("State listener failed for %s", transition.kind)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispose(self) -> None:
        self._listeners.clear()
        self._disposed = True
