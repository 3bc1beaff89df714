"""
Settlement observation events and sinks.

Events are informational. The engine hands them to every registered sink
after a call commits; a sink that raises is logged and skipped, so
settlement never depends on delivery.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of settlement events."""

    BATCH_INITIATED = "batch_initiated"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    BATCH_COMPLETED = "batch_completed"


@dataclass(frozen=True)
class BatchInitiated:
    sender: str
    recipient_count: int
    total_amount: int
    timestamp: int

    event_type = EventType.BATCH_INITIATED

    def to_dict(self) -> Dict[str, Any]:
        return {"event_type": self.event_type.value, **asdict(self)}


@dataclass(frozen=True)
class PaymentSucceeded:
    sender: str
    recipient: str
    amount: int
    index: int

    event_type = EventType.PAYMENT_SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {"event_type": self.event_type.value, **asdict(self)}


@dataclass(frozen=True)
class PaymentFailed:
    sender: str
    recipient: str
    amount: int
    index: int
    reason: str

    event_type = EventType.PAYMENT_FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {"event_type": self.event_type.value, **asdict(self)}


@dataclass(frozen=True)
class BatchCompleted:
    sender: str
    success_count: int
    failure_count: int
    total_processed: int

    event_type = EventType.BATCH_COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {"event_type": self.event_type.value, **asdict(self)}


SettlementEvent = Union[BatchInitiated, PaymentSucceeded, PaymentFailed, BatchCompleted]


class EventSink:
    """Receives settlement events. Subclasses override emit()."""

    def emit(self, event: SettlementEvent) -> None:
        raise NotImplementedError


class LoggingEventSink(EventSink):
    """Writes every event to a logger as a single line."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def emit(self, event: SettlementEvent) -> None:
        data = event.to_dict()
        kind = data.pop("event_type")
        fields = " ".join(f"{k}={v}" for k, v in data.items())
        self.log.log(self.level, "%s %s", kind, fields)


class MemoryEventSink(EventSink):
    """Keeps events in memory, in delivery order."""

    def __init__(self):
        self._events: List[SettlementEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: SettlementEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[SettlementEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: EventType) -> List[SettlementEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def publish(sinks: List[EventSink], events: List[SettlementEvent]) -> None:
    """Deliver events to every sink in order. Sink errors are logged, not raised."""
    for event in events:
        for sink in sinks:
            try:
                sink.emit(event)
            except Exception as e:
                logger.warning(
                    "Event sink %s failed on %s: %s",
                    type(sink).__name__, event.event_type.value, e,
                )
