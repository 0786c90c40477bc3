from .client import ChainClient, JsonRpcChainClient, build_clients, urlopen_transport
from .models import (
    ChainEndpoint,
    NetworkSettings,
    SignedOperation,
    SubmissionReceipt,
    SubmissionStatus,
    UnsignedOperation,
)
from .networks import SUPPORTED_NETWORKS, resolve_network
from .simulator import Fault, SimulatedChainClient, SimulatedLedger

__all__ = [
    "ChainClient",
    "ChainEndpoint",
    "Fault",
    "JsonRpcChainClient",
    "NetworkSettings",
    "SUPPORTED_NETWORKS",
    "SignedOperation",
    "SimulatedChainClient",
    "SimulatedLedger",
    "SubmissionReceipt",
    "SubmissionStatus",
    "UnsignedOperation",
    "build_clients",
    "resolve_network",
    "urlopen_transport",
]
