"""Operator CLI for cross-chain transfers."""

from __future__ import annotations

import argparse
import getpass
import json
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from execution_adapter.primary_network.client import ChainClient, build_clients
from execution_adapter.primary_network.models import NetworkSettings
from execution_adapter.primary_network.networks import SUPPORTED_NETWORKS, resolve_network
from execution_controller.config import load_transfer_config
from execution_controller.controller import TransferStateMachine, TransferSummary
from execution_controller.executor import StepExecutor
from execution_controller.modes import MachineState
from transfer_engine.errors import CredentialConflict, TransferError
from transfer_engine.guard import format_display, to_base_units, validate_resume_step
from transfer_engine.models import ChainClass, Direction
from transfer_engine.planner import PlanValidationError, build_intent
from wallet_core.hardware import DeviceOpener, open_device
from wallet_core.keystore import FileKeyStore, KeyStore, MemoryKeyStore
from wallet_core.models import SignerSelection, SigningContext, format_address, parse_address
from wallet_core.signer import KeyManager, PassphraseEncryptor, open_signing_authority

DEFAULT_KEYSTORE = Path.home() / ".chain-transfer" / "keys.json"
MEMORY_KEYSTORE_PREFIX = "mem://"

ClientFactory = Callable[[NetworkSettings], Mapping[ChainClass, ChainClient]]


@dataclass
class CliRuntime:
    """Collaborators the CLI talks to; tests swap these out."""

    client_factory: ClientFactory = build_clients
    device_opener: DeviceOpener = open_device
    input_fn: Callable[[str], str] = input
    secret_fn: Callable[[str], str] = getpass.getpass
    sleep: Callable[[float], None] = time.sleep
    memory_keystores: Dict[str, MemoryKeyStore] = field(default_factory=dict)


def main(argv: Optional[List[str]] = None, runtime: Optional[CliRuntime] = None) -> int:
    runtime = runtime or CliRuntime()
    parser = argparse.ArgumentParser(prog="chain-transfer")
    parser.add_argument("--log-level", default="INFO")
    subparsers = parser.add_subparsers(dest="command", required=True)

    key_parser = subparsers.add_parser("key")
    key_sub = key_parser.add_subparsers(dest="key_command", required=True)

    key_create = key_sub.add_parser("create")
    key_create.add_argument("--keystore", default=str(DEFAULT_KEYSTORE))
    key_create.add_argument("--name", required=True)
    key_create.add_argument("--passphrase")
    key_create.set_defaults(func=_key_create)

    key_list = key_sub.add_parser("list")
    key_list.add_argument("--keystore", default=str(DEFAULT_KEYSTORE))
    key_list.add_argument("--network", default="local")
    key_list.add_argument("--network-config")
    key_list.add_argument("--json", action="store_true")
    key_list.set_defaults(func=_key_list)

    transfer = subparsers.add_parser("transfer")
    transfer.add_argument("-s", "--send", action="store_true")
    transfer.add_argument("-g", "--receive", action="store_true")
    transfer.add_argument("--fund-p-chain", action="store_true")
    transfer.add_argument("--fund-x-chain", action="store_true")
    transfer.add_argument("-k", "--key")
    transfer.add_argument("-i", "--ledger", type=int)
    transfer.add_argument("-a", "--target-addr")
    transfer.add_argument("-o", "--amount")
    transfer.add_argument("-r", "--receive-recovery-step", type=int, default=0)
    transfer.add_argument("--force", action="store_true")
    transfer.add_argument("--network", choices=SUPPORTED_NETWORKS)
    transfer.add_argument("--network-config")
    transfer.add_argument("--config")
    transfer.add_argument("--keystore", default=str(DEFAULT_KEYSTORE))
    transfer.add_argument("--passphrase")
    transfer.set_defaults(func=_transfer)

    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        return args.func(args, runtime)
    except (TransferError, PlanValidationError, ValueError, EOFError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="{time:HH:mm:ss} | {level: <8} | {message}")


def _key_create(args: argparse.Namespace, runtime: CliRuntime) -> int:
    passphrase = args.passphrase
    if passphrase is None:
        passphrase = runtime.secret_fn("Passphrase for the new key: ")
    manager = KeyManager(keystore=_open_keystore(args.keystore, runtime), encryptor=PassphraseEncryptor())
    record = manager.create_key(args.name, passphrase)
    print(f"{record.name} {record.address}")
    return 0


def _key_list(args: argparse.Namespace, runtime: CliRuntime) -> int:
    settings = resolve_network(args.network, args.network_config)
    records = _open_keystore(args.keystore, runtime).list_records()
    rows = [
        {
            "name": record.name,
            "p_chain": format_address(ChainClass.PRIMARY.alias, settings.hrp, record.address),
            "x_chain": format_address(ChainClass.SECONDARY.alias, settings.hrp, record.address),
        }
        for record in records
    ]
    if args.json:
        print(json.dumps(rows, indent=2))
    else:
        for row in rows:
            print(f"{row['name']} {row['p_chain']} {row['x_chain']}")
    return 0


def _transfer(args: argparse.Namespace, runtime: CliRuntime) -> int:
    if args.send and args.receive:
        raise ValueError("only one of --send, --receive flags should be selected")
    if args.fund_p_chain and args.fund_x_chain:
        raise ValueError("only one of --fund-p-chain, --fund-x-chain flags should be selected")
    selection_key = args.key
    selection_index = args.ledger
    if selection_key and selection_index is not None:
        raise CredentialConflict("only one between a key name or a ledger index must be given")

    network_name = args.network or _capture_list(
        runtime, "Network", list(SUPPORTED_NETWORKS)
    )
    settings = resolve_network(network_name, args.network_config)
    config = load_transfer_config(args.config, skip_confirmation=True if args.force else None)

    direction = _resolve_direction(args, runtime)
    destination = _resolve_destination(args, runtime)
    validate_resume_step(direction, destination, args.receive_recovery_step)

    if not selection_key and selection_index is None:
        goal = "sender" if direction == Direction.SEND_OUT else "receiver"
        option = _capture_list(runtime, f"Credential for the {goal} address", ["Stored key", "Ledger"])
        if option == "Ledger":
            selection_index = int(runtime.input_fn("Ledger index to use: ").strip())
        else:
            selection_key = runtime.input_fn("Key name: ").strip()
    selection = SignerSelection.from_options(selection_key, selection_index)

    amount = args.amount
    if amount is None:
        verb = "send" if direction == Direction.SEND_OUT else "receive"
        amount = runtime.input_fn(f"Amount to {verb}: ").strip()
    to_base_units(amount)

    passphrase = args.passphrase
    if selection.key_name and passphrase is None:
        passphrase = runtime.secret_fn(f"Passphrase for key '{selection.key_name}': ")

    authority = open_signing_authority(
        selection,
        keystore=_open_keystore(args.keystore, runtime),
        passphrase=passphrase or "",
        device_opener=runtime.device_opener,
        timeout=config.signer_timeout_seconds,
    )
    own_address = authority.addresses()[0]

    if direction == Direction.SEND_OUT:
        target = args.target_addr
        if not target:
            target = runtime.input_fn(f"Receiver {destination.alias}-Chain address: ").strip()
        receiver = parse_address(target)
    else:
        receiver = own_address

    intent = build_intent(
        direction=direction,
        destination=destination,
        display_amount=amount,
        fee=settings.tx_fee,
        source_address=own_address,
        destination_address=receiver,
    )

    machine = TransferStateMachine(
        config=config,
        executor=StepExecutor(
            clients=runtime.client_factory(settings),
            request_timeout=config.request_timeout_seconds,
        ),
        confirm=lambda summary: _confirm_transfer(runtime, summary),
        notify=print,
        sleep=runtime.sleep,
        address_formatter=lambda chain, address: format_address(chain.alias, settings.hrp, address),
    )
    outcome = machine.run(
        intent,
        SigningContext(authority=authority, chains=frozenset(ChainClass)),
        resume_step=args.receive_recovery_step,
    )
    if outcome.state == MachineState.FAILED:
        return 1
    return 0


def _resolve_direction(args: argparse.Namespace, runtime: CliRuntime) -> Direction:
    if args.send:
        return Direction.SEND_OUT
    if args.receive:
        return Direction.RECEIVE_IN
    option = _capture_list(runtime, "Step of the transfer", ["Send", "Receive"])
    return Direction.SEND_OUT if option == "Send" else Direction.RECEIVE_IN


def _resolve_destination(args: argparse.Namespace, runtime: CliRuntime) -> ChainClass:
    if args.fund_p_chain:
        return ChainClass.PRIMARY
    if args.fund_x_chain:
        return ChainClass.SECONDARY
    option = _capture_list(runtime, "Destination Chain", ["P-Chain", "X-Chain"])
    return ChainClass.PRIMARY if option == "P-Chain" else ChainClass.SECONDARY


def _open_keystore(location: str, runtime: CliRuntime) -> KeyStore:
    if location.startswith(MEMORY_KEYSTORE_PREFIX):
        return runtime.memory_keystores.setdefault(location, MemoryKeyStore())
    return FileKeyStore(Path(location).expanduser())


def _capture_list(runtime: CliRuntime, prompt: str, options: Sequence[str]) -> str:
    choices = ", ".join(f"{index}) {option}" for index, option in enumerate(options, start=1))
    response = runtime.input_fn(f"{prompt} [{choices}]: ").strip()
    for index, option in enumerate(options, start=1):
        if response == str(index) or response.lower() == option.lower():
            return option
    raise ValueError(f"Invalid choice for {prompt}: {response!r}")


def _confirm_transfer(runtime: CliRuntime, summary: TransferSummary) -> bool:
    response = runtime.input_fn(
        f"Confirm transfer of {format_display(summary.intent.amount)} "
        f"(debits {format_display(summary.total_debit)}) [y/N]: "
    )
    return response.strip().lower() in {"y", "yes"}


if __name__ == "__main__":
    raise SystemExit(main())
