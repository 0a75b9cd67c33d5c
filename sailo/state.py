"""Workspace lifecycle states and the transitions allowed between them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class State(str, Enum):
    """Lifecycle state of a workspace."""

    CREATING = "creating"
    RUNNING = "running"
    STOPPED = "stopped"
    SHIPPING = "shipping"
    ARCHIVED = "archived"
    FAILED = "failed"
    REMOVED = "removed"

    def __str__(self) -> str:
        return self.value


class InvalidTransitionError(ValueError):
    """Raised when a workspace is moved to a state it cannot reach."""


#   CREATING -> RUNNING -> STOPPED -> RUNNING (restart)
#      |           |           |
#    FAILED    SHIPPING     REMOVED
#                  |
#              ARCHIVED
_VALID_TRANSITIONS: dict[State, frozenset[State]] = {
    State.CREATING: frozenset({State.RUNNING, State.FAILED}),
    State.RUNNING: frozenset({State.STOPPED, State.SHIPPING, State.FAILED, State.REMOVED}),
    State.STOPPED: frozenset({State.RUNNING, State.REMOVED}),
    State.SHIPPING: frozenset({State.ARCHIVED, State.FAILED}),
    State.ARCHIVED: frozenset({State.REMOVED}),
    State.FAILED: frozenset({State.REMOVED}),
}


def can_transition(from_state, to_state) -> bool:
    """Return whether moving from from_state to to_state is allowed."""
    try:
        source, target = State(from_state), State(to_state)
    except ValueError:
        return False
    return target in _VALID_TRANSITIONS.get(source, frozenset())


@dataclass
class Workspace:
    """Metadata of an isolated agent workspace."""

    id: str
    task: str = ""
    state: State = State.CREATING
    branch: str = ""
    container_id: str = ""
    ports: dict[int, int] = field(default_factory=dict)  # container port -> host port
    from_branch: str = ""
    created_at: str = ""
    updated_at: str = ""

    def transition(self, to) -> None:
        """Move to state to, or raise InvalidTransitionError."""
        if not can_transition(self.state, to):
            raise InvalidTransitionError(f"invalid state transition: {self.state} → {to}")
        self.state = State(to)