from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from ledgerlab.host import ContractHost
from ledgerlab.db import open_kv
from ledgerlab.identity import derive_address
from ledgerlab.ledger import EscrowLedger
from ledgerlab.registry import EntityRegistry

from ledgerlab.tests.conftest import ALICE, BOB

THREADS = 8
PER_THREAD = 200


def test_concurrent_deposits_sum_exactly():
    led = EscrowLedger(ALICE, BOB)
    senders = [derive_address(f"conc:{i}") for i in range(THREADS)]
    start = threading.Barrier(THREADS)

    def worker(who):
        start.wait()
        for _ in range(PER_THREAD):
            led.deposit(who, 3)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        list(pool.map(worker, senders))

    s = led.get_stats()
    assert s.total_received == THREADS * PER_THREAD * 3
    assert s.pool_balance == s.total_received
    assert s.depositor_count == THREADS
    assert len(led.events) == THREADS * PER_THREAD
    assert [r.seq for r in led.events.records()] == list(range(THREADS * PER_THREAD))
    led.check_invariants()


def test_concurrent_creates_get_distinct_dense_ids():
    reg = EntityRegistry("rectangle")
    ids = []
    lock = threading.Lock()

    def worker(n):
        got = reg.create(ALICE, longueur=n + 1, largeur=1)
        with lock:
            ids.append(got)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        list(pool.map(worker, range(100)))

    assert sorted(ids) == list(range(100))
    assert reg.total_area() == sum(range(1, 101))


def test_host_serializes_deposits_and_withdrawals(tmp_path):
    host = ContractHost(open_kv(f"sqlite:///{tmp_path / 'conc.db'}"))
    host.deploy_ledger("p", owner=ALICE, recipient=BOB)
    host.deploy_registry("r")
    senders = [derive_address(f"conc:host:{i}") for i in range(4)]

    def depositor(who):
        for _ in range(25):
            host.execute("p", lambda led: led.deposit(who, 2))

    def withdrawer():
        for _ in range(25):
            host.execute("p", lambda led: led.pool_balance and led.withdraw(BOB))

    def creator():
        for _ in range(25):
            host.execute("r", lambda reg: reg.create(ALICE, longueur=1, largeur=1))

    with ThreadPoolExecutor(max_workers=6) as pool:
        futs = [pool.submit(depositor, w) for w in senders]
        futs += [pool.submit(withdrawer), pool.submit(creator)]
        for f in futs:
            f.result()

    s = host.ledger("p").get_stats()
    assert s.total_received == 4 * 25 * 2
    assert s.total_received - s.total_withdrawn == s.pool_balance
    assert host.registry("r").count() == 25

    persisted = host.notifications("p")
    assert [n.seq for n in persisted] == list(range(len(persisted)))
    deposited = sum(n.fields["amount"] for n in persisted if n.name == "Deposit")
    withdrawn = sum(n.fields["amount"] for n in persisted if n.name == "Withdrawal")
    assert (deposited, withdrawn) == (s.total_received, s.total_withdrawn)
    host.close()
