"""Hardware signing devices, bounded by an operator-facing timeout."""

import threading
from typing import Callable, Dict, Protocol, Sequence, Tuple, TypeVar

from loguru import logger

from transfer_engine.errors import SignerUnavailable

from .models import parse_address

T = TypeVar("T")


class HardwareDevice(Protocol):
    def addresses(self, indices: Sequence[int]) -> Tuple[str, ...]:
        ...

    def sign(self, payload: bytes, index: int) -> str:
        ...


DeviceOpener = Callable[[], HardwareDevice]


def open_device() -> HardwareDevice:
    raise SignerUnavailable(
        "No hardware transport is installed; pass a device opener to use a hardware signer."
    )


class HardwareSigner:
    """Signs on a device; every device call waits at most ``timeout`` seconds."""

    is_hardware = True

    def __init__(self, device: HardwareDevice, index: int, timeout: float) -> None:
        self._device = device
        self._index = index
        self._timeout = timeout
        self._addresses = _bounded(
            lambda: tuple(parse_address(address) for address in device.addresses([index])),
            timeout,
            "reading device addresses",
        )
        if not self._addresses:
            raise SignerUnavailable(f"Device returned no address for index {index}.")

    @classmethod
    def open(cls, index: int, opener: DeviceOpener, timeout: float) -> "HardwareSigner":
        device = _bounded(opener, timeout, "opening device")
        return cls(device=device, index=index, timeout=timeout)

    def addresses(self) -> Tuple[str, ...]:
        return self._addresses

    def sign(self, payload: bytes) -> str:
        logger.info("Waiting for the operation to be approved on the hardware device")
        return _bounded(
            lambda: self._device.sign(payload, self._index),
            self._timeout,
            "signing",
        )


def _bounded(call: Callable[[], T], timeout: float, action: str) -> T:
    # Daemon thread: a device stuck awaiting approval must not keep the process alive.
    outcome: Dict[str, object] = {}

    def target() -> None:
        try:
            outcome["value"] = call()
        except Exception as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=target, name="hardware-signer", daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        raise SignerUnavailable(f"Hardware device timed out after {timeout:g}s while {action}.")
    error = outcome.get("error")
    if isinstance(error, SignerUnavailable):
        raise error
    if error is not None:
        raise SignerUnavailable(f"Hardware device failed while {action}: {error}") from error
    return outcome["value"]
