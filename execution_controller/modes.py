"""Transfer state machine states and step outcomes."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class MachineState(Enum):
    IDLE = "IDLE"
    STEP_IN_FLIGHT = "STEP_IN_FLIGHT"
    STEP_COMPLETE = "STEP_COMPLETE"
    SETTLED = "SETTLED"
    ABORTED = "ABORTED"
    FAILED = "FAILED"


class StepPhase(Enum):
    BUILT = "BUILT"
    SIGNED = "SIGNED"
    SUBMITTED = "SUBMITTED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    REJECTED = "REJECTED"
    SIGNER_UNAVAILABLE = "SIGNER_UNAVAILABLE"
    TIMEOUT_PENDING_UNKNOWN = "TIMEOUT_PENDING_UNKNOWN"


@dataclass(frozen=True)
class StepResult:
    step_index: int
    description: str
    phases: Tuple[StepPhase, ...]
    operation_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def outcome(self) -> StepPhase:
        return self.phases[-1]

    @property
    def acknowledged(self) -> bool:
        return self.outcome == StepPhase.ACKNOWLEDGED

    @property
    def submitted(self) -> bool:
        return StepPhase.SUBMITTED in self.phases

    @property
    def retry_safe(self) -> bool:
        """The step left no trace on the ledger and can be reissued."""
        return self.outcome in (StepPhase.REJECTED, StepPhase.SIGNER_UNAVAILABLE)


@dataclass(frozen=True)
class Transition:
    state: MachineState
    cursor: int
