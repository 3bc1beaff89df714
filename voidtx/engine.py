"""
Batch settlement engine.

settle() pays every entry of a batch in order, keeps going when a
transfer fails, and returns whatever was not delivered (and whatever was
attached beyond the batch total) to the sender before it returns. The
outcome of a call is one of:

- input error: nothing happened, an InputError is raised
- completed: results returned, statistics updated, refunds sent
- reconciliation failure: a ReconciliationError is raised; on a
  transactional rail every effect of the call has been rolled back
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, List, Optional

from voidtx.batch import (
    BatchReceipt,
    Payment,
    PaymentResult,
    coerce_payments,
    estimate_cost,
    find_duplicate_recipients,
    is_valid_address,
)
from voidtx.config import SettlementConfig
from voidtx.errors import (
    AmountTooSmall,
    BatchTooLarge,
    EmptyBatch,
    ExcessRefundFailed,
    InsufficientFunds,
    InvalidRecipient,
    InvalidSender,
    MalformedBatch,
    ReconciliationError,
    RefundFailed,
    StatisticsError,
)
from voidtx.events import (
    BatchCompleted,
    BatchInitiated,
    EventSink,
    PaymentFailed,
    PaymentSucceeded,
    SettlementEvent,
    publish,
)
from voidtx.rails import TransferOutcome, TransferRail
from voidtx.statistics import SettlementStatistics, StatisticsStore

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASON = "transfer failed"


class BatchSettlementEngine:
    """
    Settles payment batches against a transfer rail.

    Args:
        rail: Transfer primitive holding the attached value
        config: Minimum amount and batch size limits
        statistics: Aggregate counters store, shared across calls
        sinks: Observers receiving settlement events
        clock: Returns the current unix time, used for event timestamps
    """

    def __init__(
        self,
        rail: TransferRail,
        config: Optional[SettlementConfig] = None,
        statistics: Optional[StatisticsStore] = None,
        sinks: Optional[List[EventSink]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.rail = rail
        self.config = config or SettlementConfig()
        self.statistics = statistics or StatisticsStore()
        self.sinks = list(sinks or [])
        self.clock = clock

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def settle(
        self, payments: Iterable[Any], value_attached: int, sender: str
    ) -> List[PaymentResult]:
        """Settle a batch and return one result per payment, in input order."""
        return self.settle_batch(payments, value_attached, sender).results

    def settle_batch(
        self, payments: Iterable[Any], value_attached: int, sender: str
    ) -> BatchReceipt:
        """Settle a batch and return the full accounting receipt."""
        batch = coerce_payments(payments)
        total_required = self._validate(batch, value_attached, sender)

        duplicates = find_duplicate_recipients(batch)
        for address, positions in duplicates.items():
            logger.warning(
                "Recipient %s appears %d times (positions %s)",
                address, len(positions), positions,
            )

        started = time.monotonic()
        receipt = BatchReceipt(
            sender=sender,
            value_attached=value_attached,
            total_required=total_required,
            started_at=int(self.clock()),
        )
        # Held until commit on a transactional rail; published as they
        # happen otherwise, since those transfers cannot be undone.
        events: List[SettlementEvent] = []
        logger.info(
            "Settling %d payments totalling %d RAO for %s (attached %d RAO)",
            len(batch), total_required, sender, value_attached,
        )

        try:
            with self.rail.atomic():
                self._collect(sender, value_attached, total_required)
                self._record(events, BatchInitiated(
                    sender=sender,
                    recipient_count=len(batch),
                    total_amount=total_required,
                    timestamp=receipt.started_at,
                ))
                self._execute(batch, receipt, events)
                self._record(events, BatchCompleted(
                    sender=sender,
                    success_count=receipt.success_count,
                    failure_count=receipt.failure_count,
                    total_processed=receipt.total_processed,
                ))
                self._reconcile(receipt)
                self._record_statistics(receipt)
        except ReconciliationError as e:
            e.rolled_back = self.rail.transactional
            logger.critical(
                "Settlement for %s failed during reconciliation: %s (rolled_back=%s)",
                sender, e, e.rolled_back,
            )
            raise

        receipt.duration_seconds = time.monotonic() - started
        publish(self.sinks, events)
        logger.info(
            "Settled batch for %s: %d succeeded, %d failed, %d RAO delivered, %d RAO refunded",
            sender, receipt.success_count, receipt.failure_count,
            receipt.total_processed, receipt.refunded,
        )
        return receipt

    def estimate_cost(self, payments: Iterable[Any]) -> int:
        """Total value to attach for a batch. Read-only."""
        return estimate_cost(payments)

    def get_statistics(self) -> SettlementStatistics:
        return self.statistics.snapshot()

    def _validate(self, batch: List[Payment], value_attached: int, sender: str) -> int:
        """Check the whole batch before any transfer. Returns the total required."""
        if not batch:
            raise EmptyBatch("Batch must contain at least one payment")
        if len(batch) > self.config.max_recipients:
            raise BatchTooLarge(
                f"Batch has {len(batch)} payments, maximum is {self.config.max_recipients}",
                details={"count": len(batch), "max": self.config.max_recipients},
            )
        for i, p in enumerate(batch):
            if not is_valid_address(p.recipient):
                raise InvalidRecipient(
                    f"Payment {i}: invalid recipient address",
                    details={"index": i, "recipient": p.recipient},
                )
            if p.amount < self.config.min_amount:
                raise AmountTooSmall(
                    f"Payment {i}: amount {p.amount} RAO below minimum "
                    f"{self.config.min_amount} RAO",
                    details={"index": i, "amount": p.amount},
                )
        if not is_valid_address(sender):
            raise InvalidSender("Sender must be a valid, non-zero address",
                                details={"sender": sender})
        if isinstance(value_attached, bool) or not isinstance(value_attached, int):
            raise MalformedBatch(
                f"Attached value must be an integer number of RAO, got {value_attached!r}"
            )
        if value_attached < 0:
            raise MalformedBatch(f"Attached value must not be negative, got {value_attached}")

        total_required = estimate_cost(batch)
        if value_attached < total_required:
            raise InsufficientFunds(
                f"Attached {value_attached} RAO, batch requires {total_required} RAO",
                details={"attached": value_attached, "required": total_required},
            )
        return total_required

    def _record(self, events: List[SettlementEvent], event: SettlementEvent) -> None:
        if self.rail.transactional:
            events.append(event)
        else:
            publish(self.sinks, [event])

    def _collect(self, sender: str, value_attached: int, total_required: int) -> None:
        try:
            outcome = self.rail.collect(sender, value_attached)
        except Exception as e:
            outcome = TransferOutcome.failed(str(e) or type(e).__name__)
        if isinstance(outcome, bool):
            outcome = TransferOutcome(success=outcome)
        if not outcome.success:
            raise InsufficientFunds(
                f"Could not collect {value_attached} RAO from {sender}",
                details={
                    "attached": value_attached,
                    "required": total_required,
                    "reason": outcome.reason or DEFAULT_FAILURE_REASON,
                },
            )

    def _record_statistics(self, receipt: BatchReceipt) -> None:
        try:
            self.statistics.record(receipt.success_count, receipt.total_processed)
        except StatisticsError as e:
            if self.rail.transactional:
                raise
            # Transfers and refunds are final; the caller must get the receipt.
            receipt.statistics_recorded = False
            logger.critical(
                "Settlement for %s is final but statistics were not recorded "
                "(%d payments, %d RAO): %s",
                receipt.sender, receipt.success_count, receipt.total_processed, e,
            )

    def _send(self, recipient: str, amount: int) -> TransferOutcome:
        try:
            outcome = self.rail.transfer(recipient, amount)
        except Exception as e:
            return TransferOutcome.failed(str(e) or type(e).__name__)
        if isinstance(outcome, bool):
            return TransferOutcome(success=outcome)
        return outcome

    def _execute(
        self, batch: List[Payment], receipt: BatchReceipt, events: List[SettlementEvent]
    ) -> None:
        sender = receipt.sender
        for index, p in enumerate(batch):
            outcome = self._send(p.recipient, p.amount)
            if outcome.success:
                receipt.results.append(PaymentResult(True, p.recipient, p.amount))
                receipt.total_processed += p.amount
                self._record(events, PaymentSucceeded(
                    sender=sender, recipient=p.recipient, amount=p.amount, index=index,
                ))
            else:
                reason = outcome.reason or DEFAULT_FAILURE_REASON
                receipt.results.append(PaymentResult(False, p.recipient, p.amount, reason))
                self._record(events, PaymentFailed(
                    sender=sender, recipient=p.recipient, amount=p.amount,
                    index=index, reason=reason,
                ))
                logger.warning(
                    "Payment %d of %d RAO to %s failed: %s",
                    index, p.amount, p.recipient, reason,
                )

    def _reconcile(self, receipt: BatchReceipt) -> None:
        failed_amount = receipt.total_required - receipt.total_processed
        if failed_amount > 0:
            self._return_to_sender(receipt, failed_amount, RefundFailed, "undelivered amount")
            receipt.failed_amount = failed_amount

        excess = receipt.value_attached - receipt.total_required
        if excess > 0:
            self._return_to_sender(receipt, excess, ExcessRefundFailed, "excess value")
            receipt.excess = excess

    def _return_to_sender(self, receipt: BatchReceipt, amount: int, error_cls, label: str) -> None:
        outcome = self._send(receipt.sender, amount)
        if outcome.success:
            return
        reason = outcome.reason or DEFAULT_FAILURE_REASON
        raise error_cls(
            f"Could not return {label} of {amount} RAO to {receipt.sender}",
            amount=amount,
            results=receipt.results,
            details={"sender": receipt.sender, "reason": reason},
        )
