from __future__ import annotations

import pytest

from ledgerlab.codec import loads
from ledgerlab.config import LedgerLabConfig, RegistryConfig
from ledgerlab.db import INSTANCES, open_kv
from ledgerlab.errors import InsufficientFunds, InvalidArgument, StorageError, Unauthorized
from ledgerlab.host import ContractHost, instance_address

from ledgerlab.tests.conftest import ALICE, BOB, CAROL, DAVE, FakeClock


def _db(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'host.db'}"


def test_state_survives_reopen(tmp_path):
    clock = FakeClock()
    host = ContractHost(open_kv(_db(tmp_path)), clock=clock)
    host.deploy_ledger("payments", owner=ALICE, recipient=BOB)
    host.deploy_registry("drawing")
    host.execute("payments", lambda led: led.deposit(CAROL, 100))
    host.execute("payments", lambda led: led.deposit(DAVE, 50))
    host.execute("payments", lambda led: led.withdraw_amount(BOB, 30))
    host.execute("drawing", lambda reg: reg.create(ALICE, longueur=3, largeur=4))
    host.close()

    host = ContractHost(open_kv(_db(tmp_path)), clock=clock)
    s = host.ledger("payments").get_stats()
    assert (s.pool_balance, s.total_received, s.total_withdrawn, s.depositor_count) == (120, 150, 30, 2)
    assert host.ledger("payments").get_depositor(1).identifier == DAVE
    assert host.registry("drawing").get(0)["surface"] == 12
    assert host.names() == {"drawing": "registry", "payments": "ledger"}

    # numbering continues after reopen
    rec = host.execute("payments", lambda led: led.deposit(CAROL, 1))
    assert rec.seq == 3
    assert [n.seq for n in host.notifications("payments")] == [0, 1, 2, 3]
    host.close()


def test_notifications_are_persisted_in_order(host, clock):
    host.deploy_ledger("p", owner=ALICE, recipient=BOB)
    host.execute("p", lambda led: led.deposit(CAROL, 5))
    clock.advance(1000)
    host.execute("p", lambda led: led.withdraw(BOB))
    host.execute("p", lambda led: led.change_recipient(ALICE, DAVE))

    names = [n.name for n in host.notifications("p")]
    assert names == ["Deposit", "Withdrawal", "RecipientChanged"]
    later = host.notifications("p", since=1)
    assert [n.seq for n in later] == [1, 2]
    assert later[0].fields["timestamp"] == clock.now
    assert later[0].source == instance_address("ledger", "p")


def test_rejected_operation_commits_nothing(host, kv):
    host.deploy_ledger("p", owner=ALICE, recipient=BOB)
    host.execute("p", lambda led: led.deposit(CAROL, 5))
    blob = kv.get(INSTANCES.key("p"))

    with pytest.raises(Unauthorized):
        host.execute("p", lambda led: led.withdraw(CAROL))
    with pytest.raises(InvalidArgument):
        host.execute("p", lambda led: led.deposit(CAROL, 0))

    assert kv.get(INSTANCES.key("p")) == blob
    assert len(host.notifications("p")) == 1


def test_failing_op_sequence_rolls_back_memory(host):
    host.deploy_ledger("p", owner=ALICE, recipient=BOB)

    def two_steps(led):
        led.deposit(CAROL, 10)
        led.withdraw_amount(BOB, 11)

    with pytest.raises(InsufficientFunds):
        host.execute("p", two_steps)
    # first step was never committed, and memory reloads from the store
    assert host.ledger("p").get_stats().total_received == 0
    assert host.notifications("p") == []


def test_failed_payout_leaves_store_unchanged(kv, clock):
    def payout(recipient, amount):
        raise ConnectionError("bank offline")

    host = ContractHost(kv, clock=clock, payout=payout)
    host.deploy_ledger("p", owner=ALICE, recipient=BOB)
    host.execute("p", lambda led: led.deposit(CAROL, 40))
    before = host.ledger("p").get_stats()

    with pytest.raises(ConnectionError):
        host.execute("p", lambda led: led.withdraw(BOB))

    assert host.ledger("p").get_stats() == before
    assert [n.name for n in host.notifications("p")] == ["Deposit"]


class _FailingBatchKV:
    """Delegates to a real KV but fails every batch commit once armed."""

    def __init__(self, inner):
        self.inner = inner
        self.armed = False

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def batch(self):
        if self.armed:
            raise OSError("disk full")
        return self.inner.batch()


def test_commit_failure_raises_storage_error_and_discards_memory(kv, clock):
    flaky = _FailingBatchKV(kv)
    host = ContractHost(flaky, clock=clock)
    host.deploy_ledger("p", owner=ALICE, recipient=BOB)
    host.execute("p", lambda led: led.deposit(CAROL, 5))

    flaky.armed = True
    with pytest.raises(StorageError) as ei:
        host.execute("p", lambda led: led.deposit(CAROL, 7))
    assert ei.value.details["name"] == "p"

    flaky.armed = False
    assert host.ledger("p").get_stats().total_received == 5


def test_deploy_twice_and_bad_names(host):
    host.deploy_registry("shapes")
    with pytest.raises(InvalidArgument):
        host.deploy_registry("shapes")
    with pytest.raises(InvalidArgument):
        host.deploy_ledger("shapes", owner=ALICE, recipient=BOB)
    for bad in ("", "has space", "-leading", "x" * 65):
        with pytest.raises(InvalidArgument):
            host.deploy_registry(bad)


def test_unknown_and_mismatched_instances(host):
    host.deploy_registry("drawing")
    with pytest.raises(StorageError):
        host.ledger("nope")
    with pytest.raises(StorageError):
        host.ledger("drawing")
    with pytest.raises(StorageError):
        host.notifications("nope")
    with pytest.raises(StorageError):
        host.execute("nope", lambda inst: None)


def test_registry_policy_comes_from_config(kv, clock):
    cfg = LedgerLabConfig(registry=RegistryConfig(enforce_entity_owner=False, max_entities=1))
    host = ContractHost(kv, config=cfg, clock=clock)
    reg = host.deploy_registry("open")
    assert reg.enforce_owner is False
    host.execute("open", lambda r: r.create(ALICE, longueur=1, largeur=1))
    host.execute("open", lambda r: r.mutate(BOB, 0, longueur=2))
    with pytest.raises(InvalidArgument):
        host.execute("open", lambda r: r.create(ALICE, longueur=1, largeur=1))


def test_instance_record_layout(host, kv):
    host.deploy_ledger("p", owner=ALICE, recipient=BOB)
    rec = loads(kv.get(INSTANCES.key("p")))
    assert rec["name"] == "p"
    assert rec["kind"] == "ledger"
    assert rec["state"]["owner"] == ALICE
    assert rec["state"]["address"] == instance_address("ledger", "p")


def test_corrupt_record_is_storage_error(host, kv):
    kv.put(INSTANCES.key("broken"), b"\xff\x00garbage")
    with pytest.raises(StorageError):
        host.ledger("broken")
