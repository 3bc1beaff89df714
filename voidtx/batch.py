"""
Batch payment types and validation for VoidTx.

A batch is an ordered list of (recipient, amount) payments settled in a
single call. Amounts are integers in RAO (1 TAO = 1e9 RAO); conversion to
and from TAO goes through bittensor's Balance so rounding matches the
chain.

Supports:
- Payment / PaymentResult / BatchReceipt value types
- Structural coercion of plain mappings into payments
- Full validation report for a batch (all errors, not just the first)
- Duplicate recipient detection
- Cost estimation and chunking of oversized recipient lists
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from bittensor.utils import is_valid_bittensor_address_or_public_key
from bittensor.utils.balance import Balance

from voidtx.config import DEFAULT_MAX_RECIPIENTS, DEFAULT_MIN_AMOUNT, SettlementConfig
from voidtx.errors import MalformedBatch


# Minimum payment in RAO (0.0001 TAO).
MIN_AMOUNT = DEFAULT_MIN_AMOUNT

# Maximum payments per settlement call.
MAX_RECIPIENTS = DEFAULT_MAX_RECIPIENTS

# The all-zero account (ss58 prefix 42) and its raw public key form.
ZERO_ADDRESS = "5C4hrfjw9DjXZTzV3MwzrrAr9P1MJhSrvWGWqi1eSuyUpnhM"
ZERO_PUBLIC_KEY = "0x" + "00" * 32


def is_zero_address(address: str) -> bool:
    return address == ZERO_ADDRESS or address.lower() == ZERO_PUBLIC_KEY


def is_valid_address(address: Any) -> bool:
    """True for a well-formed, non-zero ss58 address or 0x public key."""
    if not isinstance(address, str) or not address:
        return False
    if is_zero_address(address):
        return False
    return bool(is_valid_bittensor_address_or_public_key(address))


def format_tao(amount_rao: int) -> str:
    return f"{Balance.from_rao(amount_rao).tao:.6f} TAO"


@dataclass(frozen=True)
class Payment:
    """A single payment request."""

    recipient: str
    amount: int  # in RAO

    def validate(self, min_amount: int = MIN_AMOUNT) -> list[str]:
        """Validate this payment. Returns list of error strings."""
        errors = []
        if not is_valid_address(self.recipient):
            errors.append(f"Invalid recipient address: {self.recipient!r}")
        if self.amount < min_amount:
            errors.append(
                f"Amount {self.amount} RAO below minimum {min_amount} RAO"
            )
        return errors

    @property
    def tao(self) -> float:
        """Amount in TAO."""
        return Balance.from_rao(self.amount).tao

    @classmethod
    def from_tao(cls, recipient: str, amount: float) -> "Payment":
        return cls(recipient=recipient, amount=Balance.from_tao(amount).rao)


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of one payment, in the same position as its Payment."""

    success: bool
    recipient: str
    amount: int
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "recipient": self.recipient,
            "amount": self.amount,
            "reason": self.reason,
        }


@dataclass
class BatchReceipt:
    """Accounting record of one completed settlement call."""

    sender: str
    results: list[PaymentResult] = field(default_factory=list)
    value_attached: int = 0
    total_required: int = 0
    total_processed: int = 0
    failed_amount: int = 0  # returned to sender
    excess: int = 0  # returned to sender
    started_at: int = 0  # unix seconds
    duration_seconds: float = 0.0
    statistics_recorded: bool = True

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count

    @property
    def refunded(self) -> int:
        return self.failed_amount + self.excess

    @property
    def failed_recipients(self) -> list[str]:
        return [r.recipient for r in self.results if not r.success]

    def summary(self) -> str:
        """Human-readable summary of the settlement."""
        status = "SUCCESS" if self.failure_count == 0 else "PARTIAL"
        lines = [
            f"=== VoidTx Batch Settlement — {status} ===",
            f"Sender: {self.sender}",
            f"Payments: {self.success_count}/{len(self.results)} delivered",
            f"Value attached: {format_tao(self.value_attached)}",
            f"Total delivered: {format_tao(self.total_processed)}",
        ]
        if self.failed_amount > 0:
            lines.append(f"Refunded (undelivered): {format_tao(self.failed_amount)}")
        if self.excess > 0:
            lines.append(f"Refunded (excess): {format_tao(self.excess)}")
        lines.append(f"Duration: {self.duration_seconds:.1f}s")
        if self.failed_recipients:
            lines.append(f"Failed recipients: {', '.join(self.failed_recipients)}")
        if not self.statistics_recorded:
            lines.append("WARNING: aggregate statistics were not recorded")
        return "\n".join(lines)


def coerce_payment(entry: Any, index: int = 0) -> Payment:
    """
    Accept a Payment or a mapping with ``recipient`` (or ``address``) and
    ``amount`` keys. Only the shape is checked here; range checks belong to
    validation.
    """
    if isinstance(entry, Payment):
        recipient, amount = entry.recipient, entry.amount
    elif isinstance(entry, dict):
        recipient = entry.get("recipient", entry.get("address"))
        if recipient is None:
            raise MalformedBatch(f"Entry {index}: missing 'recipient' field")
        if "amount" not in entry:
            raise MalformedBatch(f"Entry {index}: missing 'amount' field")
        amount = entry["amount"]
    else:
        raise MalformedBatch(
            f"Entry {index}: expected a Payment or mapping, got {type(entry).__name__}"
        )

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise MalformedBatch(
            f"Entry {index}: amount must be an integer number of RAO, got {amount!r}"
        )
    if amount < 0:
        raise MalformedBatch(f"Entry {index}: amount must not be negative, got {amount}")

    if isinstance(entry, Payment):
        return entry
    return Payment(recipient=recipient, amount=amount)


def coerce_payments(payments: Iterable[Any]) -> list[Payment]:
    if payments is None or isinstance(payments, (str, bytes, dict)):
        raise MalformedBatch("Payments must be a sequence of payment entries")
    return [coerce_payment(entry, i) for i, entry in enumerate(payments)]


def estimate_cost(payments: Iterable[Any]) -> int:
    """Total RAO a batch needs attached. Does not validate ranges."""
    return sum(p.amount for p in coerce_payments(payments))


def validate_payments(
    payments: Iterable[Any], config: Optional[SettlementConfig] = None
) -> tuple[bool, list[str]]:
    """
    Validate a whole batch. Returns (is_valid, list_of_errors).

    Unlike the engine, which stops at the first problem, this reports
    everything so a caller can show the sender a complete list.
    """
    config = config or SettlementConfig()
    try:
        batch = coerce_payments(payments)
    except MalformedBatch as e:
        return False, [e.message]

    errors = []
    if not batch:
        errors.append("Batch is empty")
    if len(batch) > config.max_recipients:
        errors.append(
            f"Batch has {len(batch)} payments, maximum is {config.max_recipients}"
        )
    for i, p in enumerate(batch):
        for err in p.validate(config.min_amount):
            errors.append(f"Payment {i + 1}: {err}")

    return len(errors) == 0, errors


def find_duplicate_recipients(payments: Iterable[Any]) -> dict[str, list[int]]:
    """Recipients that appear more than once, with their zero-based positions."""
    positions: dict[str, list[int]] = {}
    for i, p in enumerate(coerce_payments(payments)):
        positions.setdefault(p.recipient, []).append(i)
    return {addr: idx for addr, idx in positions.items() if len(idx) > 1}


def chunk_payments(
    payments: list[Payment], max_size: int = MAX_RECIPIENTS
) -> list[list[Payment]]:
    """Split payments into chunks the engine accepts in one call."""
    if max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")
    return [
        payments[i: i + max_size]
        for i in range(0, len(payments), max_size)
    ]
