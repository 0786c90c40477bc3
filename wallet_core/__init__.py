from .hardware import HardwareDevice, HardwareSigner, open_device
from .keystore import FileKeyStore, KeyStore, MemoryKeyStore
from .models import (
    EncryptedPayload,
    KeyRecord,
    SignerSelection,
    SigningContext,
    format_address,
    parse_address,
)
from .signer import (
    KeyManager,
    PassphraseEncryptor,
    SigningAuthority,
    SoftwareSigner,
    open_signing_authority,
)

__all__ = [
    "EncryptedPayload",
    "FileKeyStore",
    "HardwareDevice",
    "HardwareSigner",
    "KeyManager",
    "KeyRecord",
    "KeyStore",
    "MemoryKeyStore",
    "PassphraseEncryptor",
    "SignerSelection",
    "SigningAuthority",
    "SigningContext",
    "SoftwareSigner",
    "format_address",
    "open_device",
    "open_signing_authority",
    "parse_address",
]
