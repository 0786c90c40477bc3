"""Domain models for the wallet core."""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional

from transfer_engine.errors import CredentialConflict, InvalidAddress, SignerUnavailable
from transfer_engine.models import ChainClass

if TYPE_CHECKING:
    from .signer import SigningAuthority

_SHORT_ID = re.compile(r"^[0-9a-f]{40}$")


@dataclass(frozen=True)
class SignerSelection:
    """Which credential source signs: a named key or a hardware index."""

    key_name: Optional[str] = None
    hardware_index: Optional[int] = None

    @staticmethod
    def from_options(
        key_name: Optional[str] = None, hardware_index: Optional[int] = None
    ) -> "SignerSelection":
        if key_name and hardware_index is not None:
            raise CredentialConflict("Only one of a key name or a hardware index may be given.")
        if not key_name and hardware_index is None:
            raise SignerUnavailable("A key name or a hardware index is required.")
        if hardware_index is not None and hardware_index < 0:
            raise SignerUnavailable("Hardware index must be non-negative.")
        return SignerSelection(key_name=key_name or None, hardware_index=hardware_index)

    @property
    def uses_hardware(self) -> bool:
        return self.hardware_index is not None


@dataclass(frozen=True)
class EncryptedPayload:
    ciphertext: str
    salt: str
    nonce: str
    mac: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "ciphertext": self.ciphertext,
            "salt": self.salt,
            "nonce": self.nonce,
            "mac": self.mac,
        }

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "EncryptedPayload":
        return EncryptedPayload(
            ciphertext=data["ciphertext"],
            salt=data["salt"],
            nonce=data["nonce"],
            mac=data["mac"],
        )


@dataclass(frozen=True)
class KeyRecord:
    name: str
    address: str
    created_at: str
    encrypted_key: EncryptedPayload

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "address": self.address,
            "created_at": self.created_at,
            "encrypted_key": self.encrypted_key.to_dict(),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "KeyRecord":
        return KeyRecord(
            name=data["name"],
            address=data["address"],
            created_at=data["created_at"],
            encrypted_key=EncryptedPayload.from_dict(data["encrypted_key"]),
        )


@dataclass(frozen=True)
class SigningContext:
    """A signing authority bound to the chains one transfer signs for."""

    authority: "SigningAuthority"
    chains: FrozenSet[ChainClass]

    def sign(self, chain: ChainClass, payload: bytes) -> str:
        if chain not in self.chains:
            raise SignerUnavailable(f"Signer is not bound to the {chain.alias}-Chain.")
        return self.authority.sign(payload)

    @property
    def address(self) -> str:
        return self.authority.addresses()[0]


def format_address(chain_alias: str, hrp: str, short_id: str) -> str:
    return f"{chain_alias}-{hrp}1{normalize_short_id(short_id)}"


def parse_address(text: str) -> str:
    """Return the short id of a formatted (``P-hrp1<hex>``) or bare address."""
    value = text.strip()
    if "-" in value:
        value = value.split("-", 1)[1]
    if len(value) > 40 and value[-41] == "1":
        value = value[-40:]
    return normalize_short_id(value)


def normalize_short_id(value: str) -> str:
    lowered = value.lower()
    if lowered.startswith("0x"):
        lowered = lowered[2:]
    if not _SHORT_ID.match(lowered):
        raise InvalidAddress(f"Invalid address: {value}")
    return lowered
