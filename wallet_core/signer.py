"""Signing authorities backed by stored keys or hardware devices."""

from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Tuple
import base64
import hashlib
import hmac
import secrets

from loguru import logger

from transfer_engine.errors import CredentialConflict, SignerUnavailable

from .hardware import DeviceOpener, HardwareSigner, open_device
from .keystore import KeyStore
from .models import EncryptedPayload, KeyRecord, SignerSelection


class SigningAuthority(Protocol):
    is_hardware: bool

    def addresses(self) -> Tuple[str, ...]:
        ...

    def sign(self, payload: bytes) -> str:
        ...


class Encryptor(Protocol):
    def encrypt(self, plaintext: bytes, passphrase: str) -> EncryptedPayload:
        ...

    def decrypt(self, payload: EncryptedPayload, passphrase: str) -> bytes:
        ...


class PassphraseEncryptor:
    """Deterministic stream cipher wrapper for local key storage."""

    def __init__(
        self,
        iterations: int = 200_000,
        salt_provider: Optional[Callable[[int], bytes]] = None,
        nonce_provider: Optional[Callable[[int], bytes]] = None,
    ) -> None:
        self._iterations = iterations
        self._salt_provider = salt_provider or secrets.token_bytes
        self._nonce_provider = nonce_provider or secrets.token_bytes

    def encrypt(self, plaintext: bytes, passphrase: str) -> EncryptedPayload:
        salt = self._salt_provider(16)
        nonce = self._nonce_provider(16)
        key = self._derive_key(passphrase, salt, nonce)
        keystream = self._keystream(key, nonce, len(plaintext))
        ciphertext = bytes(a ^ b for a, b in zip(plaintext, keystream))
        mac = hmac.new(key, ciphertext, hashlib.sha256).digest()
        return EncryptedPayload(
            ciphertext=_b64encode(ciphertext),
            salt=_b64encode(salt),
            nonce=_b64encode(nonce),
            mac=_b64encode(mac),
        )

    def decrypt(self, payload: EncryptedPayload, passphrase: str) -> bytes:
        salt = _b64decode(payload.salt)
        nonce = _b64decode(payload.nonce)
        ciphertext = _b64decode(payload.ciphertext)
        expected_mac = _b64decode(payload.mac)
        key = self._derive_key(passphrase, salt, nonce)
        actual_mac = hmac.new(key, ciphertext, hashlib.sha256).digest()
        if not hmac.compare_digest(actual_mac, expected_mac):
            raise ValueError("Invalid passphrase or corrupted payload.")
        keystream = self._keystream(key, nonce, len(ciphertext))
        return bytes(a ^ b for a, b in zip(ciphertext, keystream))

    def _derive_key(self, passphrase: str, salt: bytes, nonce: bytes) -> bytes:
        return hashlib.pbkdf2_hmac(
            "sha256",
            passphrase.encode("utf-8"),
            salt + nonce,
            self._iterations,
            dklen=32,
        )

    def _keystream(self, key: bytes, nonce: bytes, length: int) -> bytes:
        blocks = []
        counter = 0
        while sum(len(block) for block in blocks) < length:
            counter_bytes = counter.to_bytes(4, "big")
            blocks.append(hmac.new(key, nonce + counter_bytes, hashlib.sha256).digest())
            counter += 1
        return b"".join(blocks)[:length]


class SoftwareSigner:
    """Signs with key material held in memory for one invocation."""

    is_hardware = False

    def __init__(self, private_key: bytes) -> None:
        if len(private_key) != 32:
            raise ValueError("Private key must be 32 bytes.")
        self._private_key = private_key
        self._address = derive_address(private_key)

    def addresses(self) -> Tuple[str, ...]:
        return (self._address,)

    def sign(self, payload: bytes) -> str:
        return hmac.new(self._private_key, payload, hashlib.sha256).hexdigest()


class KeyManager:
    """Creates and unlocks named keys held in a keystore."""

    def __init__(
        self,
        keystore: KeyStore,
        encryptor: Encryptor,
        time_provider: Optional[Callable[[], str]] = None,
        entropy_provider: Optional[Callable[[int], bytes]] = None,
    ) -> None:
        self._keystore = keystore
        self._encryptor = encryptor
        self._time_provider = time_provider or _utc_timestamp
        self._entropy_provider = entropy_provider or secrets.token_bytes

    def create_key(self, name: str, passphrase: str) -> KeyRecord:
        if not name:
            raise ValueError("Key name is required.")
        if any(record.name == name for record in self._keystore.list_records()):
            raise ValueError(f"Key '{name}' already exists.")
        private_key = self._entropy_provider(32)
        record = KeyRecord(
            name=name,
            address=derive_address(private_key),
            created_at=self._time_provider(),
            encrypted_key=self._encryptor.encrypt(private_key, passphrase),
        )
        self._keystore.store(record)
        logger.info(f"Created key '{name}' with address {record.address}")
        return record

    def list_keys(self) -> Tuple[KeyRecord, ...]:
        return self._keystore.list_records()

    def unlock(self, name: str, passphrase: str) -> SoftwareSigner:
        try:
            record = self._keystore.load(name)
        except KeyError as exc:
            raise SignerUnavailable(f"Key '{name}' not found.") from exc
        try:
            private_key = self._encryptor.decrypt(record.encrypted_key, passphrase)
        except ValueError as exc:
            raise SignerUnavailable(f"Key '{name}' could not be unlocked: {exc}") from exc
        return SoftwareSigner(private_key)


def open_signing_authority(
    selection: SignerSelection,
    keystore: KeyStore,
    passphrase: str = "",
    encryptor: Optional[Encryptor] = None,
    device_opener: DeviceOpener = open_device,
    timeout: float = 120.0,
) -> SigningAuthority:
    if selection.key_name and selection.uses_hardware:
        raise CredentialConflict("Signer selection names two credential sources.")

    if selection.uses_hardware:
        logger.info(f"Opening hardware signer at index {selection.hardware_index}")
        return HardwareSigner.open(
            index=selection.hardware_index,
            opener=device_opener,
            timeout=timeout,
        )

    if selection.key_name:
        manager = KeyManager(keystore=keystore, encryptor=encryptor or PassphraseEncryptor())
        logger.info(f"Loading stored key '{selection.key_name}'")
        return manager.unlock(selection.key_name, passphrase)

    raise SignerUnavailable("No credential source selected.")


def derive_address(private_key: bytes) -> str:
    public_key = hashlib.sha256(private_key).digest()
    return hashlib.sha256(public_key).hexdigest()[:40]


def _b64encode(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"))


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
