"""
VoidTx — batch payment settlement.

Pays many recipients in one call, continues past individual transfer
failures, and returns every undelivered or unneeded amount to the sender
before the call completes.
"""

__version__ = "0.1.0"

from voidtx.batch import (
    MAX_RECIPIENTS,
    MIN_AMOUNT,
    BatchReceipt,
    Payment,
    PaymentResult,
    chunk_payments,
    estimate_cost,
    find_duplicate_recipients,
    validate_payments,
)
from voidtx.config import SettlementConfig
from voidtx.engine import BatchSettlementEngine
from voidtx.events import EventSink, LoggingEventSink, MemoryEventSink
from voidtx.rails import InMemoryLedger, TransferOutcome, TransferRail
from voidtx.statistics import FileStatisticsStore, SettlementStatistics, StatisticsStore

__all__ = [
    "MAX_RECIPIENTS",
    "MIN_AMOUNT",
    "BatchReceipt",
    "BatchSettlementEngine",
    "EventSink",
    "FileStatisticsStore",
    "InMemoryLedger",
    "LoggingEventSink",
    "MemoryEventSink",
    "Payment",
    "PaymentResult",
    "SettlementConfig",
    "SettlementStatistics",
    "StatisticsStore",
    "TransferOutcome",
    "TransferRail",
    "chunk_payments",
    "estimate_cost",
    "find_duplicate_recipients",
    "validate_payments",
]
