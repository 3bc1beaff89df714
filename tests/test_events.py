"""
tests/test_events.py

Event payloads and sink delivery.
"""

import logging
from unittest.mock import MagicMock

from voidtx.events import (
    BatchCompleted,
    BatchInitiated,
    EventType,
    LoggingEventSink,
    MemoryEventSink,
    PaymentFailed,
    PaymentSucceeded,
    publish,
)

from tests.conftest import BOB, SENDER


class FailingSink:
    def __init__(self):
        self.attempts = 0

    def emit(self, event):
        self.attempts += 1
        raise ConnectionError("collector unreachable")


class TestEventPayloads:

    def test_to_dict(self):
        event = PaymentFailed(SENDER, BOB, 500, 3, "rejected")
        assert event.to_dict() == {
            "event_type": "payment_failed",
            "sender": SENDER,
            "recipient": BOB,
            "amount": 500,
            "index": 3,
            "reason": "rejected",
        }

    def test_event_types(self):
        assert BatchInitiated(SENDER, 1, 1, 0).event_type == EventType.BATCH_INITIATED
        assert PaymentSucceeded(SENDER, BOB, 1, 0).event_type == EventType.PAYMENT_SUCCEEDED
        assert BatchCompleted(SENDER, 1, 0, 1).event_type == EventType.BATCH_COMPLETED


class TestSinks:

    def test_memory_sink(self):
        sink = MemoryEventSink()
        publish([sink], [BatchInitiated(SENDER, 2, 10, 0), PaymentSucceeded(SENDER, BOB, 5, 0)])

        assert len(sink.events) == 2
        assert sink.of_type(EventType.PAYMENT_SUCCEEDED) == [PaymentSucceeded(SENDER, BOB, 5, 0)]
        sink.clear()
        assert sink.events == []

    def test_logging_sink(self):
        log = MagicMock()
        LoggingEventSink(log).emit(BatchCompleted(SENDER, 2, 1, 40))

        log.log.assert_called_once_with(
            logging.INFO,
            "%s %s",
            "batch_completed",
            f"sender={SENDER} success_count=2 failure_count=1 total_processed=40",
        )

    def test_failing_sink_is_skipped(self):
        failing = FailingSink()
        memory = MemoryEventSink()
        events = [BatchInitiated(SENDER, 1, 10, 0), BatchCompleted(SENDER, 1, 0, 10)]

        publish([failing, memory], events)

        assert failing.attempts == 2
        assert memory.events == events
