"""
Exception hierarchy for the send pipeline.

Every failure raised by a pipeline stage derives from SegsendError. The
pipeline fills in ``stage`` before re-raising so callers can report where
the run stopped.
"""

from __future__ import annotations


class SegsendError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class NetworkError(SegsendError):
    """Transport failure, timeout or unexpected response from the indexing service."""


class NoFundsError(SegsendError):
    """The address has no unspent outputs at all."""


class InsufficientFundsError(SegsendError):
    def __init__(self, message: str, required: int = 0, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available


class SourceTransactionError(SegsendError):
    """The fetched source transaction does not match the selected UTXO."""


class TransactionParseError(SegsendError, ValueError):
    """Raw transaction bytes could not be decoded."""


class TransactionSigningError(SegsendError):
    pass


class FinalizationError(SegsendError):
    """An input is missing a complete, valid witness."""


class BroadcastError(SegsendError):
    """The relay rejected the transaction."""

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(f"Broadcast rejected: {reason}")
        self.reason = reason
        self.status_code = status_code


class InvalidKeyError(SegsendError, ValueError):
    pass


class AddressError(SegsendError, ValueError):
    pass
