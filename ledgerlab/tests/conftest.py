from __future__ import annotations

import pytest

from ledgerlab.db import open_kv
from ledgerlab.host import ContractHost
from ledgerlab.identity import derive_address
from ledgerlab.ledger import EscrowLedger
from ledgerlab.registry import EntityRegistry


class FakeClock:
    """Deterministic millisecond clock; advances only when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1) -> int:
        self.now += ms
        return self.now


class TickingClock(FakeClock):
    """Moves forward one millisecond on every read."""

    def __call__(self) -> int:
        self.now += 1
        return self.now


def account(label: str) -> str:
    return derive_address(f"acct:{label}")


ALICE = account("alice")
BOB = account("bob")
CAROL = account("carol")
DAVE = account("dave")
MALLORY = account("mallory")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger(clock) -> EscrowLedger:
    """Owner ALICE, recipient BOB."""
    return EscrowLedger(ALICE, BOB, address=derive_address("ledger:test"), clock=clock)


@pytest.fixture
def registry(clock) -> EntityRegistry:
    return EntityRegistry("rectangle", address=derive_address("registry:test"), clock=clock)


@pytest.fixture
def kv():
    store = open_kv("memory://")
    yield store
    store.close()


@pytest.fixture
def host(kv, clock) -> ContractHost:
    return ContractHost(kv, clock=clock)
