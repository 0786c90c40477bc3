"""Exception hierarchy shared by the transfer components."""

from __future__ import annotations


class TransferError(Exception):
    """Base exception for all errors raised by the transfer orchestrator."""


class InvalidAmount(TransferError, ValueError):
    """Raised when an amount is not positive or not exactly representable."""


class SelfTransfer(TransferError, ValueError):
    """Raised when a same-chain send targets the sender's own address."""


class CredentialConflict(TransferError, ValueError):
    """Raised when both a named key and a hardware index are supplied."""


class InvalidAddress(TransferError, ValueError):
    """Raised when an address cannot be parsed."""


class InvalidResumeStep(TransferError, ValueError):
    """Raised when a resume step is outside the step range of a transfer."""


class ConfigurationError(TransferError):
    """Raised when network or run configuration cannot be resolved."""


class SignerUnavailable(TransferError):
    """Raised when a signing authority cannot be opened or stops responding."""


class Rejected(TransferError):
    """Raised when the ledger definitively refuses an operation.

    Nothing was applied, so the same step may be retried.
    """


class TimeoutPendingUnknown(TransferError):
    """Raised when a submission outcome is unknown at the deadline.

    The operation may or may not have been accepted; ledger state must be
    verified before the step is retried.
    """


class NetworkUnreachable(TimeoutPendingUnknown):
    """Raised when the chain endpoint cannot be reached."""
