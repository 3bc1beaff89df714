"""
VoidTx exception hierarchy.

Input errors are raised before any transfer is attempted and leave no
trace. Reconciliation errors mean attached value could not be returned
to the sender; they are fatal to the settlement call.

Individual transfer failures are not exceptions. They are reported as
failed PaymentResult entries.
"""

from __future__ import annotations

from typing import Optional


class VoidTxError(Exception):
    """Base exception for all VoidTx errors."""

    http_status = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(VoidTxError):
    """Raised when settlement configuration is invalid."""


class StatisticsError(VoidTxError):
    """Raised when persisted statistics cannot be read or written."""


# ── Input errors ────────────────────────────────────────────────


class InputError(VoidTxError):
    """Batch rejected before any transfer. Safe to fix and retry."""

    http_status = 400


class EmptyBatch(InputError):
    pass


class BatchTooLarge(InputError):
    pass


class InvalidRecipient(InputError):
    pass


class InvalidSender(InputError):
    pass


class AmountTooSmall(InputError):
    pass


class InsufficientFunds(InputError):
    pass


class MalformedBatch(InputError):
    """A payment entry or the attached value is structurally wrong."""


# ── Reconciliation errors ───────────────────────────────────────


class ReconciliationError(VoidTxError):
    """
    Attached value could not be returned to the sender.

    ``rolled_back`` tells whether the transfer rail undid every effect of
    the call. When it is False the delivered transfers are final and
    ``amount`` RAO is unaccounted for until an operator intervenes.
    """

    def __init__(
        self,
        message: str,
        amount: int = 0,
        results: Optional[list] = None,
        rolled_back: bool = False,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.amount = amount
        self.results = list(results or [])
        self.rolled_back = rolled_back


class RefundFailed(ReconciliationError):
    """Returning the undelivered amount to the sender failed."""


class ExcessRefundFailed(ReconciliationError):
    """Returning the surplus attached value to the sender failed."""
