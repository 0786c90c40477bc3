"""Local-first FastAPI shell for previewing and running transfers."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from execution_adapter.primary_network.client import ChainClient, build_clients
from execution_adapter.primary_network.models import NetworkSettings
from execution_adapter.primary_network.networks import SUPPORTED_NETWORKS, resolve_network
from execution_controller.config import TransferConfig, load_transfer_config
from execution_controller.controller import TransferStateMachine, TransferSummary
from execution_controller.executor import StepExecutor
from transfer_engine.errors import (
    ConfigurationError,
    SignerUnavailable,
    TransferError,
)
from transfer_engine.guard import format_display
from transfer_engine.models import ChainClass, Direction
from transfer_engine.planner import PlanValidationError, build_intent
from wallet_core.keystore import FileKeyStore, KeyStore
from wallet_core.models import SignerSelection, SigningContext, format_address, parse_address
from wallet_core.signer import open_signing_authority

DEFAULT_KEYSTORE = Path.home() / ".chain-transfer" / "keys.json"

ClientFactory = Callable[[NetworkSettings], Mapping[ChainClass, ChainClient]]

_DIRECTIONS = {"send": Direction.SEND_OUT, "receive": Direction.RECEIVE_IN}
_DESTINATIONS = {"p": ChainClass.PRIMARY, "x": ChainClass.SECONDARY}

app = FastAPI(title="Chain Transfer", description="Local-first transfer shell")

_STATE: Dict[str, object] = {}


def _reset_state(
    keystore: Optional[KeyStore] = None,
    client_factory: ClientFactory = build_clients,
    config: Optional[TransferConfig] = None,
    network_config: Optional[str] = None,
) -> None:
    _STATE["keystore"] = keystore or FileKeyStore(DEFAULT_KEYSTORE)
    _STATE["client_factory"] = client_factory
    _STATE["config"] = config or load_transfer_config()
    _STATE["network_config"] = network_config


class PreviewRequest(BaseModel):
    network: str
    direction: str
    destination: str
    amount: str
    sender_address: str
    receiver_address: Optional[str] = None
    resume_step: int = 0


class ExecuteRequest(BaseModel):
    network: str
    direction: str
    destination: str
    amount: str
    key_name: str
    passphrase: str
    receiver_address: Optional[str] = None
    resume_step: int = 0
    confirm: bool = False


@app.middleware("http")
async def _local_only(request: Request, call_next):
    client = request.client
    if client is not None:
        host = client.host
        if host not in {"127.0.0.1", "::1", "testclient"}:
            return JSONResponse({"error": "Remote access disabled."}, status_code=403)
    return await call_next(request)


async def _handle_errors(request: Request, exc: Exception):
    return JSONResponse({"error": str(exc)}, status_code=400)


async def _handle_signer_errors(request: Request, exc: Exception):
    return JSONResponse({"error": str(exc)}, status_code=401)


for _exc_class in (TransferError, PlanValidationError, ValueError):
    app.add_exception_handler(_exc_class, _handle_errors)
app.add_exception_handler(SignerUnavailable, _handle_signer_errors)


@app.get("/networks")
def list_networks():
    networks = []
    for name in SUPPORTED_NETWORKS:
        settings = _resolve(name)
        networks.append(
            {
                "name": settings.name,
                "network_id": settings.network_id,
                "api_endpoint": settings.api_endpoint,
                "tx_fee": settings.tx_fee,
            }
        )
    return {"networks": networks}


@app.post("/transfer/preview")
def preview_transfer(payload: PreviewRequest):
    settings = _resolve(payload.network)
    direction, destination = _route(payload.direction, payload.destination)
    sender = parse_address(payload.sender_address)
    receiver = _receiver(direction, payload.receiver_address, sender)

    intent = build_intent(
        direction=direction,
        destination=destination,
        display_amount=payload.amount,
        fee=settings.tx_fee,
        source_address=sender,
        destination_address=receiver,
    )
    summary = _machine(settings, clients={}).summarize(intent, resume_step=payload.resume_step)
    return _summary_to_dict(summary)


@app.post("/transfer/execute")
def execute_transfer(payload: ExecuteRequest):
    if not payload.confirm:
        raise HTTPException(status_code=409, detail="Explicit confirmation required.")

    settings = _resolve(payload.network)
    direction, destination = _route(payload.direction, payload.destination)
    authority = open_signing_authority(
        SignerSelection.from_options(key_name=payload.key_name),
        keystore=_STATE["keystore"],
        passphrase=payload.passphrase,
    )
    own_address = authority.addresses()[0]
    receiver = _receiver(direction, payload.receiver_address, own_address)

    intent = build_intent(
        direction=direction,
        destination=destination,
        display_amount=payload.amount,
        fee=settings.tx_fee,
        source_address=own_address,
        destination_address=receiver,
    )
    client_factory = _STATE["client_factory"]
    outcome = _machine(settings, clients=client_factory(settings)).run(
        intent,
        SigningContext(authority=authority, chains=frozenset(ChainClass)),
        resume_step=payload.resume_step,
    )
    logger.info(f"Web transfer finished in {outcome.state.value} at cursor {outcome.cursor}")
    return {
        "state": outcome.state.value,
        "cursor": outcome.cursor,
        "resume_step": outcome.resume_step,
        "ambiguous": outcome.ambiguous,
        "steps": [
            {
                "index": result.step_index,
                "description": result.description,
                "outcome": result.outcome.value,
                "operation_id": result.operation_id,
                "error": result.error,
            }
            for result in outcome.results
        ],
        "report": list(outcome.report()),
    }


def _resolve(name: str) -> NetworkSettings:
    return resolve_network(name, _STATE["network_config"])


def _route(direction: str, destination: str):
    try:
        return _DIRECTIONS[direction.lower()], _DESTINATIONS[destination.lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown route {direction}/{destination}.") from exc


def _receiver(direction: Direction, receiver_address: Optional[str], own_address: str) -> str:
    if direction == Direction.RECEIVE_IN:
        return own_address
    if not receiver_address:
        raise ValueError("receiver_address is required for a send.")
    return parse_address(receiver_address)


def _machine(settings: NetworkSettings, clients: Mapping[ChainClass, ChainClient]) -> TransferStateMachine:
    config = _STATE["config"]
    if not isinstance(config, TransferConfig):
        raise ConfigurationError("Web shell is not configured.")

    return TransferStateMachine(
        config=config,
        executor=StepExecutor(clients=clients, request_timeout=config.request_timeout_seconds),
        confirm=_confirmed_by_request,
        address_formatter=lambda chain, address: format_address(chain.alias, settings.hrp, address),
    )


def _confirmed_by_request(summary: TransferSummary) -> bool:
    # Execute requests are gated on `confirm: true` before a machine is built.
    return True


def _summary_to_dict(summary: TransferSummary) -> Dict[str, object]:
    steps: List[Dict[str, object]] = [
        {
            "index": step.index,
            "kind": step.kind.value,
            "chain": step.chain.alias,
            "counterpart": step.counterpart.alias,
            "amount": step.amount,
            "description": step.description,
        }
        for step in summary.steps[summary.resume_step:]
    ]
    return {
        "direction": summary.intent.direction.value,
        "destination": summary.intent.destination.alias,
        "amount": summary.intent.amount,
        "total_fee": summary.total_fee,
        "total_debit": summary.total_debit,
        "total_debit_display": format_display(summary.total_debit),
        "resume_step": summary.resume_step,
        "steps": steps,
        "lines": list(summary.lines()),
    }


_reset_state()
