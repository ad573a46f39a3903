"""Lifecycle state tracking."""

import logging
from enum import Enum

from minimal_server.errors import LifecycleError

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    """Phases a server run moves through."""

    STARTING = "starting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    DRAINING = "draining"
    TERMINATED = "terminated"


# Allowed moves; shutdown can be requested before the listener is up
_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.STARTING: frozenset({
        LifecycleState.SERVING,
        LifecycleState.SHUTTING_DOWN,
        LifecycleState.TERMINATED,
    }),
    LifecycleState.SERVING: frozenset({
        LifecycleState.SHUTTING_DOWN,
        LifecycleState.TERMINATED,
    }),
    LifecycleState.SHUTTING_DOWN: frozenset({
        LifecycleState.DRAINING,
        LifecycleState.TERMINATED,
    }),
    LifecycleState.DRAINING: frozenset({LifecycleState.TERMINATED}),
    LifecycleState.TERMINATED: frozenset(),
}


class LifecycleStatus:
    """Current lifecycle phase of one server run."""

    def __init__(self):
        self._state = LifecycleState.STARTING

    @property
    def state(self) -> LifecycleState:
        return self._state

    def is_shutting_down(self) -> bool:
        """Check if shutdown is in progress or finished."""
        return self._state in (
            LifecycleState.SHUTTING_DOWN,
            LifecycleState.DRAINING,
            LifecycleState.TERMINATED,
        )

    def transition(self, target: LifecycleState) -> None:
        """Move to ``target``.

        Raises:
            LifecycleError: if ``target`` is not reachable from the current state
        """
        if target not in _TRANSITIONS[self._state]:
            raise LifecycleError(
                f"invalid lifecycle transition {self._state.value} -> {target.value}"
            )
        logger.info(
            "lifecycle_transition",
            extra={"from_state": self._state.value, "to_state": target.value},
        )
        self._state = target
