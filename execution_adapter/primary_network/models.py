"""Chain adapter models for unsigned operations and submission receipts."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict
import hashlib
import json

from transfer_engine.models import ChainClass, StepKind


@dataclass(frozen=True)
class ChainEndpoint:
    network: str
    chain: ChainClass
    uri: str

    @property
    def alias(self) -> str:
        return self.chain.alias


@dataclass(frozen=True)
class NetworkSettings:
    name: str
    network_id: int
    api_endpoint: str
    hrp: str
    tx_fee: int
    endpoints: Dict[ChainClass, ChainEndpoint]

    def endpoint(self, chain: ChainClass) -> ChainEndpoint:
        return self.endpoints[chain]


@dataclass(frozen=True)
class UnsignedOperation:
    kind: StepKind
    chain: ChainClass
    counterpart: ChainClass
    amount: int
    owner: str
    network_id: int
    payer: str = ""
    nonce: str = ""

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("ascii")

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "chain": self.chain.alias,
            "counterpart": self.counterpart.alias,
            "amount": self.amount,
            "owner": self.owner,
            "network_id": self.network_id,
            "payer": self.payer,
            "nonce": self.nonce,
        }

    @property
    def operation_id(self) -> str:
        return hashlib.sha256(self.to_bytes()).hexdigest()


@dataclass(frozen=True)
class SignedOperation:
    unsigned: UnsignedOperation
    signature: str

    @property
    def operation_id(self) -> str:
        return self.unsigned.operation_id

    def to_dict(self) -> Dict[str, object]:
        return {"unsigned": self.unsigned.to_dict(), "signature": self.signature}


class SubmissionStatus(Enum):
    COMMITTED = "Committed"
    ACCEPTED = "Accepted"


@dataclass(frozen=True)
class SubmissionReceipt:
    operation_id: str
    chain: ChainClass
    status: SubmissionStatus
