from .config import TransferConfig, load_transfer_config
from .controller import TransferOutcome, TransferStateMachine, TransferSummary
from .executor import StepExecutor
from .modes import MachineState, StepPhase, StepResult, Transition

__all__ = [
    "MachineState",
    "StepExecutor",
    "StepPhase",
    "StepResult",
    "TransferConfig",
    "TransferOutcome",
    "TransferStateMachine",
    "TransferSummary",
    "Transition",
    "load_transfer_config",
]
