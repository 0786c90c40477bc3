from .errors import (
    ConfigurationError,
    CredentialConflict,
    InvalidAddress,
    InvalidAmount,
    InvalidResumeStep,
    NetworkUnreachable,
    Rejected,
    SelfTransfer,
    SignerUnavailable,
    TimeoutPendingUnknown,
    TransferError,
)
from .fees import carried_fee_units, fee_multiplier, hop_count, required_debit, total_fee
from .guard import format_display, to_base_units, to_display_units
from .models import ChainClass, Direction, StepDefinition, StepKind, TransferIntent, TransferPlan
from .planner import PlanValidationError, TransferPlanner, build_intent, validate_plan

__all__ = [
    "ChainClass",
    "ConfigurationError",
    "CredentialConflict",
    "Direction",
    "InvalidAddress",
    "InvalidAmount",
    "InvalidResumeStep",
    "NetworkUnreachable",
    "PlanValidationError",
    "Rejected",
    "SelfTransfer",
    "SignerUnavailable",
    "StepDefinition",
    "StepKind",
    "TimeoutPendingUnknown",
    "TransferError",
    "TransferIntent",
    "TransferPlan",
    "TransferPlanner",
    "build_intent",
    "carried_fee_units",
    "fee_multiplier",
    "format_display",
    "hop_count",
    "required_debit",
    "to_base_units",
    "to_display_units",
    "total_fee",
    "validate_plan",
]
