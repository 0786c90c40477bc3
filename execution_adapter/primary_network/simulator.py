"""In-memory ledger that applies operations without network calls."""

import itertools
from collections import defaultdict, deque
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple

from loguru import logger

from transfer_engine.errors import NetworkUnreachable, Rejected, TimeoutPendingUnknown
from transfer_engine.models import ChainClass, StepKind

from .models import SignedOperation, SubmissionReceipt, SubmissionStatus, UnsignedOperation


class Fault(Enum):
    REJECT = "REJECT"
    TIMEOUT = "TIMEOUT"
    TIMEOUT_APPLIED = "TIMEOUT_APPLIED"
    UNREACHABLE = "UNREACHABLE"


class SimulatedLedger:
    """Balances per chain and address plus the shared memory between chains.

    Every operation burns one ``fee`` on the chain it is issued on. Exports
    move value into shared memory addressed to the destination chain and
    owner; imports sweep that memory into the owner's balance.
    """

    def __init__(self, network_id: int = 12345, fee: int = 1_000_000) -> None:
        self.network_id = network_id
        self.fee = fee
        self._balances: Dict[Tuple[ChainClass, str], int] = defaultdict(int)
        self._shared: Dict[Tuple[ChainClass, str], int] = defaultdict(int)
        self._faults: Dict[ChainClass, Deque[Optional[Fault]]] = defaultdict(deque)
        self._applied: List[SignedOperation] = []
        self._seen: set = set()
        self._nonces = itertools.count(1)
        self.submission_count = 0

    def fund(self, chain: ChainClass, address: str, amount: int) -> None:
        self._balances[(chain, address)] += amount

    def balance(self, chain: ChainClass, address: str) -> int:
        return self._balances[(chain, address)]

    def pending_import(self, chain: ChainClass, owner: str) -> int:
        return self._shared[(chain, owner)]

    def inject(self, chain: ChainClass, fault: Fault, after: int = 0) -> None:
        """Make a later submission on ``chain`` fail with ``fault``.

        ``after`` submissions on the chain go through untouched first.
        """
        self._faults[chain].extend([None] * after)
        self._faults[chain].append(fault)

    @property
    def applied(self) -> Tuple[SignedOperation, ...]:
        return tuple(self._applied)

    def client(self, chain: ChainClass) -> "SimulatedChainClient":
        return SimulatedChainClient(self, chain)

    def clients(self) -> Dict[ChainClass, "SimulatedChainClient"]:
        return {chain: self.client(chain) for chain in ChainClass}

    def next_nonce(self) -> str:
        return f"{next(self._nonces):016x}"

    def submit(self, operation: SignedOperation) -> SubmissionReceipt:
        self.submission_count += 1
        chain = operation.unsigned.chain
        fault = self._faults[chain].popleft() if self._faults[chain] else None

        if fault == Fault.UNREACHABLE:
            raise NetworkUnreachable(f"Simulated {chain.alias}-Chain endpoint is unreachable.")
        if fault == Fault.REJECT:
            raise Rejected(f"Simulated rejection of {operation.operation_id}.")
        if fault == Fault.TIMEOUT:
            raise TimeoutPendingUnknown(f"Simulated timeout verifying {operation.operation_id}.")

        self._apply(operation)

        if fault == Fault.TIMEOUT_APPLIED:
            raise TimeoutPendingUnknown(f"Simulated timeout verifying {operation.operation_id}.")
        if chain == ChainClass.PRIMARY:
            status = SubmissionStatus.COMMITTED
        else:
            status = SubmissionStatus.ACCEPTED
        return SubmissionReceipt(operation_id=operation.operation_id, chain=chain, status=status)

    def _apply(self, operation: SignedOperation) -> None:
        unsigned = operation.unsigned
        if not operation.signature:
            raise Rejected("Operation is not signed.")
        if unsigned.network_id != self.network_id:
            raise Rejected(f"Operation targets network {unsigned.network_id}.")
        if operation.operation_id in self._seen:
            raise Rejected(f"Operation {operation.operation_id} was already issued.")

        if unsigned.kind == StepKind.EXPORT:
            self._apply_export(unsigned)
        else:
            self._apply_import(unsigned)

        self._seen.add(operation.operation_id)
        self._applied.append(operation)
        logger.debug(
            f"Simulated ledger applied {unsigned.kind.value} on {unsigned.chain.alias}-Chain "
            f"for {unsigned.amount}"
        )

    def _apply_export(self, unsigned: UnsignedOperation) -> None:
        source = (unsigned.chain, unsigned.payer)
        cost = unsigned.amount + self.fee
        if self._balances[source] < cost:
            raise Rejected(
                f"Insufficient funds on {unsigned.chain.alias}-Chain: "
                f"need {cost}, have {self._balances[source]}."
            )
        self._balances[source] -= cost
        self._shared[(unsigned.counterpart, unsigned.owner)] += unsigned.amount

    def _apply_import(self, unsigned: UnsignedOperation) -> None:
        key = (unsigned.chain, unsigned.owner)
        available = self._shared[key]
        if available <= self.fee:
            raise Rejected(f"No importable funds on {unsigned.chain.alias}-Chain.")
        self._shared[key] = 0
        self._balances[key] += available - self.fee


class SimulatedChainClient:
    """Chain client view of one chain on a simulated ledger."""

    def __init__(self, ledger: SimulatedLedger, chain: ChainClass) -> None:
        self.chain = chain
        self._ledger = ledger

    def build_export(
        self, destination: ChainClass, amount: int, owner: str, payer: str
    ) -> UnsignedOperation:
        return self._build(StepKind.EXPORT, destination, amount, owner, payer)

    def build_import(self, source: ChainClass, owner: str, amount: int) -> UnsignedOperation:
        return self._build(StepKind.IMPORT, source, amount, owner, owner)

    def submit(self, operation: SignedOperation, timeout: float) -> SubmissionReceipt:
        if operation.unsigned.chain != self.chain:
            raise Rejected("Operation issued on the wrong chain.")
        return self._ledger.submit(operation)

    def _build(
        self, kind: StepKind, counterpart: ChainClass, amount: int, owner: str, payer: str
    ) -> UnsignedOperation:
        if counterpart == self.chain:
            raise ValueError("An operation must cross to another chain.")
        return UnsignedOperation(
            kind=kind,
            chain=self.chain,
            counterpart=counterpart,
            amount=amount,
            owner=owner,
            network_id=self._ledger.network_id,
            payer=payer,
            nonce=self._ledger.next_nonce(),
        )
