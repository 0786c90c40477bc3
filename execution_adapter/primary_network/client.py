"""Chain clients that build, submit and confirm operations."""

from __future__ import annotations

import itertools
import json
import secrets
import socket
import time
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, Optional, Protocol

from loguru import logger

from transfer_engine.errors import NetworkUnreachable, Rejected, TimeoutPendingUnknown
from transfer_engine.models import ChainClass, StepKind

from .models import (
    ChainEndpoint,
    NetworkSettings,
    SignedOperation,
    SubmissionReceipt,
    SubmissionStatus,
    UnsignedOperation,
)


class ChainClient(Protocol):
    chain: ChainClass

    def build_export(
        self, destination: ChainClass, amount: int, owner: str, payer: str
    ) -> UnsignedOperation:
        ...

    def build_import(self, source: ChainClass, owner: str, amount: int) -> UnsignedOperation:
        ...

    def submit(self, operation: SignedOperation, timeout: float) -> SubmissionReceipt:
        ...


Transport = Callable[[str, bytes, float], bytes]

_ACCEPTED_STATUSES = {status.value for status in SubmissionStatus}
_REJECTED_STATUSES = {"Rejected", "Dropped", "Aborted"}
_RPC_NAMESPACES = {
    ChainClass.PRIMARY: "platform",
    ChainClass.SECONDARY: "avm",
}


def urlopen_transport(url: str, body: bytes, timeout: float) -> bytes:
    request = urllib.request.Request(
        url,
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(request, timeout=timeout) as response:
        return response.read()


class JsonRpcChainClient:
    """JSON-RPC 2.0 client for one chain of a network."""

    def __init__(
        self,
        endpoint: ChainEndpoint,
        network_id: int,
        transport: Optional[Transport] = None,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.chain = endpoint.chain
        self._endpoint = endpoint
        self._network_id = network_id
        self._transport = transport or urlopen_transport
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._ids = itertools.count(1)

    def build_export(
        self, destination: ChainClass, amount: int, owner: str, payer: str
    ) -> UnsignedOperation:
        return self._build(StepKind.EXPORT, destination, amount, owner, payer)

    def build_import(self, source: ChainClass, owner: str, amount: int) -> UnsignedOperation:
        return self._build(StepKind.IMPORT, source, amount, owner, owner)

    def submit(self, operation: SignedOperation, timeout: float) -> SubmissionReceipt:
        if operation.unsigned.chain != self.chain:
            raise Rejected(
                f"Operation for the {operation.unsigned.chain.alias}-Chain "
                f"cannot be issued on the {self.chain.alias}-Chain."
            )

        deadline = self._clock() + timeout
        encoded = json.dumps(operation.to_dict(), sort_keys=True).encode("utf-8").hex()
        result = self._call("issueTx", {"tx": encoded, "encoding": "hex"}, deadline)
        tx_id = result.get("txID", operation.operation_id)
        logger.info(f"Issued {operation.unsigned.kind.value} on {self.chain.alias}-Chain: {tx_id}")

        while True:
            try:
                status = self._call("getTxStatus", {"txID": tx_id}, deadline).get("status", "")
            except Rejected as exc:
                # The transaction was issued; a failed status query says nothing about it.
                raise TimeoutPendingUnknown(f"Cannot verify transaction {tx_id}: {exc}") from exc
            if status in _ACCEPTED_STATUSES:
                return SubmissionReceipt(
                    operation_id=tx_id,
                    chain=self.chain,
                    status=SubmissionStatus(status),
                )
            if status in _REJECTED_STATUSES:
                raise Rejected(f"Transaction {tx_id} was {status.lower()} by the network.")
            if self._clock() + self._poll_interval > deadline:
                raise TimeoutPendingUnknown(
                    f"Timeout verifying transaction {tx_id}; last status '{status or 'Unknown'}'."
                )
            self._sleep(self._poll_interval)

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
            network_id=self._network_id,
            payer=payer,
            nonce=secrets.token_hex(8),
        )

    def _call(self, method: str, params: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise TimeoutPendingUnknown(f"Deadline passed before {method} was sent.")

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": f"{_RPC_NAMESPACES[self.chain]}.{method}",
            "params": params,
        }
        body = json.dumps(payload).encode("utf-8")

        try:
            raw = self._transport(self._endpoint.uri, body, remaining)
        except (socket.timeout, TimeoutError) as exc:
            raise TimeoutPendingUnknown(f"Timeout calling {method} on {self._endpoint.uri}.") from exc
        except urllib.error.URLError as exc:
            if isinstance(getattr(exc, "reason", None), (socket.timeout, TimeoutError)):
                raise TimeoutPendingUnknown(
                    f"Timeout calling {method} on {self._endpoint.uri}."
                ) from exc
            raise NetworkUnreachable(f"Cannot reach {self._endpoint.uri}: {exc}") from exc
        except OSError as exc:
            raise NetworkUnreachable(f"Cannot reach {self._endpoint.uri}: {exc}") from exc

        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise TimeoutPendingUnknown(f"{method} returned invalid JSON.") from exc
        if not isinstance(data, dict):
            raise TimeoutPendingUnknown(f"{method} returned an unexpected response.")

        if "error" in data:
            error = data["error"]
            if isinstance(error, dict):
                message = error.get("message", "unknown error")
            else:
                message = str(error)
            raise Rejected(f"{method} failed: {message}")
        result = data.get("result")
        if not isinstance(result, dict):
            raise TimeoutPendingUnknown(f"{method} returned an unexpected response.")
        return result


def build_clients(
    settings: NetworkSettings, transport: Optional[Transport] = None
) -> Dict[ChainClass, JsonRpcChainClient]:
    return {
        chain: JsonRpcChainClient(
            endpoint=settings.endpoint(chain),
            network_id=settings.network_id,
            transport=transport,
        )
        for chain in ChainClass
    }
