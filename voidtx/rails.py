"""
Transfer rails: the primitive that moves value from the settlement
account to one recipient.

A rail reports each transfer as a TransferOutcome instead of raising, and
never retries. ``atomic()`` wraps a whole settlement call. Transactional
rails undo every transfer made inside it when the block raises; others
make it a no-op and the engine treats reconciliation failures as
unrecoverable.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferOutcome:
    """Result of a single transfer attempt."""

    success: bool
    reason: Optional[str] = None
    reference: Optional[str] = None  # e.g. extrinsic hash

    @classmethod
    def ok(cls, reference: Optional[str] = None) -> "TransferOutcome":
        return cls(success=True, reference=reference)

    @classmethod
    def failed(cls, reason: str) -> "TransferOutcome":
        return cls(success=False, reason=reason)


class TransferRail:
    """Base class for transfer primitives."""

    transactional = False

    def transfer(self, recipient: str, amount: int) -> TransferOutcome:
        raise NotImplementedError

    def collect(self, sender: str, amount: int) -> TransferOutcome:
        """
        Take custody of the value a sender attached to a settlement call.

        The default accepts the claim as is: rails whose settlement account
        is funded by the sender before the call (a wallet the sender signs
        with) have nothing to move.
        """
        return TransferOutcome.ok()

    @contextlib.contextmanager
    def atomic(self) -> Iterator[None]:
        yield


class InMemoryLedger(TransferRail):
    """
    Balance ledger held in memory, with transactional settlement.

    ``account`` is the settlement (escrow) account that holds attached
    value; transfers debit it. Addresses listed in ``rejecting`` refuse
    incoming transfers, the way a contract without a payable fallback
    does on chain.

    ``atomic()`` holds the ledger lock for the whole block, so concurrent
    settlements against the same ledger run one after another, and
    restores the balance snapshot if the block raises.
    """

    transactional = True

    def __init__(
        self,
        account: str,
        balances: Optional[Dict[str, int]] = None,
        rejecting: Optional[Set[str]] = None,
    ):
        self.account = account
        self._balances: Dict[str, int] = dict(balances or {})
        self._rejecting: Set[str] = set(rejecting or ())
        self._transfers: List[Tuple[str, str, int]] = []
        self._lock = threading.RLock()

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(address, 0)

    def deposit(self, address: str, amount: int) -> None:
        """Credit an address out of thin air. Used to fund accounts."""
        if amount < 0:
            raise ValueError(f"Deposit must not be negative, got {amount}")
        with self._lock:
            self._balances[address] = self._balances.get(address, 0) + amount

    def collect(self, sender: str, amount: int) -> TransferOutcome:
        """Move attached value from the sender into the settlement account."""
        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                return TransferOutcome.failed(
                    f"sender {sender} holds {available} RAO, cannot attach {amount} RAO"
                )
            self._balances[sender] = available - amount
            self._balances[self.account] = self._balances.get(self.account, 0) + amount
            self._transfers.append((sender, self.account, amount))
            return TransferOutcome.ok(reference=f"tx-{len(self._transfers)}")

    def reject(self, address: str) -> None:
        with self._lock:
            self._rejecting.add(address)

    def accept(self, address: str) -> None:
        with self._lock:
            self._rejecting.discard(address)

    @property
    def transfers(self) -> List[Tuple[str, str, int]]:
        """Committed (source, destination, amount) transfers, oldest first."""
        with self._lock:
            return list(self._transfers)

    def transfer(self, recipient: str, amount: int) -> TransferOutcome:
        with self._lock:
            if recipient in self._rejecting:
                return TransferOutcome.failed(f"recipient {recipient} rejected transfer")
            available = self._balances.get(self.account, 0)
            if available < amount:
                return TransferOutcome.failed(
                    f"insufficient balance in {self.account}: {available} < {amount}"
                )
            self._balances[self.account] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            self._transfers.append((self.account, recipient, amount))
            return TransferOutcome.ok(reference=f"tx-{len(self._transfers)}")

    @contextlib.contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            balances = dict(self._balances)
            transfer_count = len(self._transfers)
            try:
                yield
            except BaseException:
                self._balances = balances
                del self._transfers[transfer_count:]
                logger.info("Rolled back ledger to snapshot of %d accounts", len(balances))
                raise
