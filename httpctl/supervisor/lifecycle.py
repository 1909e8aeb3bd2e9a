"""
Lifecycle states of a managed service and the outcome records returned by
supervisor operations.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional, Tuple


class LifecycleState(Enum):
    """Observed phase of a managed service."""
    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    FAILED = "failed"


# States in which a start request is never issued.
RUNNING_STATES = frozenset({LifecycleState.STARTING, LifecycleState.ACTIVE})
# States in which a stop request is never issued.
HALTED_STATES = frozenset({LifecycleState.STOPPED, LifecycleState.STOPPING})


class Action(Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"


class ErrorKind(Enum):
    TRANSITION_FAILED = "transition_failed"
    NO_SUCH_SUBORDINATE = "no_such_subordinate"


@dataclass(frozen=True)
class ErrorInfo:
    """A failure reported by a supervisor operation."""
    kind: ErrorKind
    message: str
    code: Optional[str] = None
    action: Optional[Action] = None

    def __str__(self) -> str:
        prefix = f"[{self.code}] " if self.code else ""
        return f"{prefix}{self.message}"


@dataclass(frozen=True)
class OperationOutcome:
    """
    The result of one supervisor operation.

    `phases` is only populated for a restart and holds the stop and start
    outcomes in the order they ran.
    """
    action: Action
    skipped: bool = False
    errors: Tuple[ErrorInfo, ...] = ()
    note: Optional[str] = None
    phases: Tuple["OperationOutcome", ...] = ()

    @property
    def error(self) -> Optional[ErrorInfo]:
        return self.errors[0] if self.errors else None

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def combine(cls, action: Action, phases: Tuple["OperationOutcome", ...]) -> "OperationOutcome":
        """Merges phase outcomes: skipped only if every phase skipped, errors unioned."""
        errors = tuple(err for phase in phases for err in phase.errors)
        notes = [phase.note for phase in phases if phase.note]
        return cls(
            action=action,
            skipped=all(phase.skipped for phase in phases),
            errors=errors,
            note=" ".join(notes) or None,
            phases=phases,
        )
