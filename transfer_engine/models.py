"""Domain models for cross-chain transfers."""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class Direction(Enum):
    SEND_OUT = "SEND_OUT"
    RECEIVE_IN = "RECEIVE_IN"


class ChainClass(Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"

    @property
    def alias(self) -> str:
        return _CHAIN_ALIASES[self]


_CHAIN_ALIASES = {
    ChainClass.PRIMARY: "P",
    ChainClass.SECONDARY: "X",
}


class StepKind(Enum):
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"


@dataclass(frozen=True)
class TransferIntent:
    """Operator request, fixed before any step runs.

    Amounts and fees are in base units.
    """

    direction: Direction
    destination: ChainClass
    amount: int
    fee: int
    source_address: str
    destination_address: str


@dataclass(frozen=True)
class StepDefinition:
    index: int
    kind: StepKind
    chain: ChainClass
    counterpart: ChainClass
    amount: int
    owner: str
    description: str


@dataclass(frozen=True)
class TransferPlan:
    intent: TransferIntent
    steps: Tuple[StepDefinition, ...]
    total_fee: int
    total_debit: int

    @property
    def terminal_step(self) -> int:
        return len(self.steps)
