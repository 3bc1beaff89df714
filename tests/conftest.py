"""Shared fixtures: well-known Substrate dev accounts and a funded ledger."""

import pytest

from voidtx import BatchSettlementEngine, InMemoryLedger, MemoryEventSink, Payment


ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
CHARLIE = "5FLSigC9HGRKVhB9FiEo4Y3koPsNmBmLJbpXg2mp1hXcS59Y"
DAVE = "5DAAnrj7VHTznn2AWBemMuyBwZWs6FNFjdyVXUeYum3PTXFy"
EVE = "5HGjWAeFDfFCWPsjFQdVV2Msvz2XtMktvgocEZcCj68kUMaw"
FERDIE = "5CiPPseXPECbkjWCa6MnjNokrgYjMqmKndv2rSnekmSK2DjL"

SENDER = ALICE
ESCROW = FERDIE

TAO = 1_000_000_000
SENDER_FUNDS = 1_000 * TAO
FIXED_TIME = 1_700_000_000


@pytest.fixture
def ledger():
    ledger = InMemoryLedger(account=ESCROW)
    ledger.deposit(SENDER, SENDER_FUNDS)
    return ledger


@pytest.fixture
def sink():
    return MemoryEventSink()


@pytest.fixture
def engine(ledger, sink):
    return BatchSettlementEngine(ledger, sinks=[sink], clock=lambda: FIXED_TIME)


@pytest.fixture
def three_payments():
    return [
        Payment(BOB, 1 * TAO),
        Payment(CHARLIE, 2 * TAO),
        Payment(DAVE, 3 * TAO),
    ]
