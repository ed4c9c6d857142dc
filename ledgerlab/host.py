from __future__ import annotations

"""
Contract host
-------------

Plays the part a chain runtime plays for the two contracts:

  • one total order per named instance (a lock per name)
  • an explicit commit after every successful mutation: the new snapshot and
    the notifications it emitted land in the store in a single KV batch
  • injected storage (any `ledgerlab.db.KV`) and an injected clock

Layout in the store (see `ledgerlab.db.kv`):

  INSTANCES.key(name)          -> CBOR {name, kind, state}
  EVENTS.key(name, be_u64(n))  -> CBOR notification n of that instance

An `op` passed to `execute` that raises leaves the store untouched and drops
the cached instance, so the next access reloads the last committed state.
A failed commit raises `StorageError` and does the same.

Example
-------
>>> host = ContractHost(open_kv("memory://"))
>>> host.deploy_ledger("payments", owner=alice, recipient=bob)
>>> host.execute("payments", lambda led: led.deposit(carol, 100))
>>> host.ledger("payments").get_stats().pool_balance
100
"""

import re
import threading
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from ledgerlab import logging as llog
from ledgerlab.codec import dumps_canonical, loads
from ledgerlab.config import LedgerLabConfig
from ledgerlab.db import EVENTS, INSTANCES, KV, be_u64
from ledgerlab.errors import InvalidArgument, LedgerLabError, StorageError
from ledgerlab.events import Clock, Notification
from ledgerlab.identity import Address, derive_address
from ledgerlab.ledger import EscrowLedger, Payout
from ledgerlab.registry import EntityRegistry

log = llog.get_logger(__name__)

T = TypeVar("T")
Instance = Union[EscrowLedger, EntityRegistry]

KIND_LEDGER = "ledger"
KIND_REGISTRY = "registry"

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]{0,63}$")


def instance_address(kind: str, name: str) -> Address:
    return derive_address(f"{kind}:{name}")


class ContractHost:
    def __init__(
        self,
        kv: KV,
        *,
        config: Optional[LedgerLabConfig] = None,
        clock: Optional[Clock] = None,
        payout: Optional[Payout] = None,
    ) -> None:
        self.kv = kv
        self.config = config or LedgerLabConfig()
        self._clock = clock
        self._payout = payout
        self._cache: Dict[str, Instance] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    # ------------------------------------------------------------- deploy

    def deploy_ledger(self, name: str, owner: Address, recipient: Address) -> EscrowLedger:
        self._check_name(name)
        with self._lock_for(name):
            self._require_absent(name)
            led = EscrowLedger(
                owner,
                recipient,
                address=instance_address(KIND_LEDGER, name),
                halt_enabled=self.config.ledger.halt_enabled,
                partial_withdraw_enabled=self.config.ledger.partial_withdraw_enabled,
                payout=self._payout,
                clock=self._clock,
            )
            self._commit(name, KIND_LEDGER, led, [])
            self._cache[name] = led
        log.info("ledger deployed", extra={"instance": name, "address": led.address})
        return led

    def deploy_registry(self, name: str, kind: str = "rectangle") -> EntityRegistry:
        self._check_name(name)
        with self._lock_for(name):
            self._require_absent(name)
            reg = EntityRegistry(
                kind,
                address=instance_address(KIND_REGISTRY, name),
                enforce_owner=self.config.registry.enforce_entity_owner,
                max_entities=self.config.registry.max_entities,
                clock=self._clock,
            )
            self._commit(name, KIND_REGISTRY, reg, [])
            self._cache[name] = reg
        log.info("registry deployed", extra={"instance": name, "entity_kind": kind})
        return reg

    # -------------------------------------------------------------- access

    def ledger(self, name: str) -> EscrowLedger:
        inst = self._get(name)
        if not isinstance(inst, EscrowLedger):
            raise StorageError("instance is not a ledger", name=name)
        return inst

    def registry(self, name: str) -> EntityRegistry:
        inst = self._get(name)
        if not isinstance(inst, EntityRegistry):
            raise StorageError("instance is not a registry", name=name)
        return inst

    def execute(self, name: str, op: Callable[[Any], T], *, op_name: Optional[str] = None) -> T:
        """
        Run `op(instance)` under the instance lock and commit what it changed.

        The return value of `op` is passed through. Notifications emitted by
        `op` are persisted in the same batch as the new snapshot.
        """
        label = op_name or getattr(op, "__name__", "op")
        with self._lock_for(name):
            inst = self._get(name)
            kind = KIND_LEDGER if isinstance(inst, EscrowLedger) else KIND_REGISTRY
            with llog.trace_scope(instance=name, kind=kind, op=label):
                before = inst.events.next_seq
                try:
                    result = op(inst)
                except LedgerLabError as e:
                    self._cache.pop(name, None)
                    log.info("operation rejected", extra={"code": e.code})
                    raise
                except Exception:
                    self._cache.pop(name, None)
                    log.exception("operation failed")
                    raise
                emitted = inst.events.records(since=before)
                if emitted:
                    self._commit(name, kind, inst, emitted)
                    log.debug("committed", extra={"notifications": len(emitted)})
        return result

    def notifications(self, name: str, since: int = 0) -> List[Notification]:
        if self.kv.get(INSTANCES.key(name)) is None:
            raise StorageError("unknown instance", name=name)
        out: List[Notification] = []
        for _, blob in self.kv.iter_prefix(EVENTS.key(name)):
            rec = Notification.from_dict(loads(blob))
            if rec.seq >= since:
                out.append(rec)
        return out

    def names(self) -> Dict[str, str]:
        """Deployed instance names mapped to their kind ("ledger" / "registry")."""
        out: Dict[str, str] = {}
        for _, blob in self.kv.iter_prefix(INSTANCES.raw):
            rec = loads(blob)
            out[str(rec["name"])] = str(rec["kind"])
        return dict(sorted(out.items()))

    def close(self) -> None:
        self._cache.clear()
        self.kv.close()

    # ----------------------------------------------------------- internals

    def _lock_for(self, name: str) -> threading.RLock:
        with self._guard:
            lk = self._locks.get(name)
            if lk is None:
                lk = self._locks[name] = threading.RLock()
            return lk

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or not _NAME_RE.match(name):
            raise InvalidArgument("invalid instance name", field="name", value=name)

    def _require_absent(self, name: str) -> None:
        if self.kv.has(INSTANCES.key(name)):
            raise InvalidArgument("instance already exists", field="name", value=name)

    def _get(self, name: str) -> Instance:
        with self._lock_for(name):
            inst = self._cache.get(name)
            if inst is None:
                inst = self._load(name)
                self._cache[name] = inst
            return inst

    def _load(self, name: str) -> Instance:
        blob = self.kv.get(INSTANCES.key(name))
        if blob is None:
            raise StorageError("unknown instance", name=name)
        rec = loads(blob)
        if not isinstance(rec, dict) or "kind" not in rec or "state" not in rec:
            raise StorageError("malformed instance record", name=name)
        if rec["kind"] == KIND_LEDGER:
            return EscrowLedger.load(rec["state"], payout=self._payout, clock=self._clock)
        if rec["kind"] == KIND_REGISTRY:
            return EntityRegistry.load(rec["state"], clock=self._clock)
        raise StorageError("unknown instance kind", name=name, details={"kind": rec["kind"]})

    def _commit(self, name: str, kind: str, inst: Instance, emitted: List[Notification]) -> None:
        try:
            record = dumps_canonical({"name": name, "kind": kind, "state": inst.dump()})
            with self.kv.batch() as b:
                b.put(INSTANCES.key(name), record)
                for ev in emitted:
                    b.put(EVENTS.key(name, be_u64(ev.seq)), dumps_canonical(ev.to_dict()))
        except Exception as e:
            self._cache.pop(name, None)
            log.exception("commit failed", extra={"instance": name})
            if isinstance(e, StorageError):
                raise
            raise StorageError("commit failed", name=name, details={"error": str(e)}) from e


__all__ = ["ContractHost", "instance_address", "KIND_LEDGER", "KIND_REGISTRY"]
