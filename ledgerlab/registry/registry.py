from __future__ import annotations

"""
Managed entity registry
-----------------------

An append-only collection of entities of one kind. Ids are dense and
zero-based: the n-th successful `create` returns id n, and ids are never
reused because nothing is ever removed.

Each entity records the identity that created it. When `enforce_owner` is
on (the default) only that identity may `mutate` it; with it off any caller
may, which matches the permissive factory this registry generalizes.

Every successful `create` emits `EntityCreated` and every successful `mutate`
emits `EntityChanged` on `self.events`. Failed calls emit nothing and change
nothing.

Concurrency: a `threading.RLock` serializes all reads and writes on one
registry instance.
"""

import copy
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ledgerlab.errors import InvalidArgument, OutOfRange, StorageError, Unauthorized
from ledgerlab.events import Clock, Notification, NotificationLog, NotificationName
from ledgerlab.identity import Address, derive_address, normalize_address
from ledgerlab.logging import get_logger

from .shapes import Entity, entity_class

log = get_logger(__name__)

T = TypeVar("T")


@dataclass
class _Slot:
    entity: Entity
    owner: Address


class EntityRegistry:
    def __init__(
        self,
        kind: str = "rectangle",
        *,
        address: Optional[Address] = None,
        enforce_owner: bool = True,
        max_entities: int = 0,
        clock: Optional[Clock] = None,
        next_seq: int = 0,
    ) -> None:
        self._cls = entity_class(kind)
        self.kind = kind
        self.address = normalize_address(address) if address else derive_address(f"registry:{kind}")
        self.enforce_owner = bool(enforce_owner)
        if max_entities < 0:
            raise InvalidArgument("max_entities must be >= 0", field="max_entities", value=max_entities)
        self.max_entities = int(max_entities)
        self.events = NotificationLog(self.address, clock=clock, next_seq=next_seq)
        self._slots: List[_Slot] = []
        self._lock = RLock()

    # ------------------------------------------------------------------ reads

    def count(self) -> int:
        with self._lock:
            return len(self._slots)

    def get(self, entity_id: int) -> Dict[str, Any]:
        """Snapshot of one entity plus its `id` and `owner`."""
        with self._lock:
            slot = self._slot(entity_id)
            return self._view(entity_id, slot)

    def owner_of(self, entity_id: int) -> Address:
        with self._lock:
            return self._slot(entity_id).owner

    def snapshots(self, start: int = 0, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            if start < 0:
                raise OutOfRange(index=start, length=len(self._slots), what="entity")
            end = len(self._slots) if limit is None else min(len(self._slots), start + max(0, limit))
            return [self._view(i, self._slots[i]) for i in range(start, end)]

    def aggregate(self, fn: Callable[[T, Dict[str, Any]], T], initial: T) -> T:
        """Fold `fn(acc, snapshot)` over every entity in id order."""
        with self._lock:
            acc = initial
            for i, slot in enumerate(self._slots):
                acc = fn(acc, self._view(i, slot))
            return acc

    def total_area(self) -> int:
        return self.aggregate(lambda acc, snap: acc + snap["surface"], 0)

    # ----------------------------------------------------------------- writes

    def create(self, caller: Address, **init: Any) -> int:
        caller = normalize_address(caller, field="caller")
        try:
            entity = self._cls(**init)
        except TypeError as e:
            raise InvalidArgument(f"bad {self.kind} arguments: {e}", field="init", value=sorted(init)) from e
        with self._lock:
            if self.max_entities and len(self._slots) >= self.max_entities:
                raise InvalidArgument(
                    "registry is full", field="max_entities", value=self.max_entities
                )
            entity_id = len(self._slots)
            self._slots.append(_Slot(entity=entity, owner=caller))
            self.events.emit(
                NotificationName.ENTITY_CREATED,
                id=entity_id,
                owner=caller,
                init=entity.to_state(),
            )
        log.info("entity created", extra={"entity_id": entity_id, "entity_kind": self.kind})
        return entity_id

    def mutate(self, caller: Address, entity_id: int, **args: Any) -> Notification:
        caller = normalize_address(caller, field="caller")
        with self._lock:
            slot = self._slot(entity_id)
            if self.enforce_owner and caller != slot.owner:
                raise Unauthorized(caller=caller, required=slot.owner, message="not the entity owner")
            updated = copy.deepcopy(slot.entity)
            updated.apply(**args)
            slot.entity = updated
            rec = self.events.emit(
                NotificationName.ENTITY_CHANGED, id=entity_id, state=updated.snapshot()
            )
        log.info("entity changed", extra={"entity_id": entity_id, "fields": sorted(args)})
        return rec

    def resize(self, caller: Address, entity_id: int, *, longueur: Optional[int] = None,
               largeur: Optional[int] = None) -> Notification:
        args = {k: v for k, v in (("longueur", longueur), ("largeur", largeur)) if v is not None}
        return self.mutate(caller, entity_id, **args)

    def move(self, caller: Address, entity_id: int, dx: int, dy: int) -> Notification:
        return self.mutate(caller, entity_id, dx=dx, dy=dy)

    # ------------------------------------------------------------ persistence

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "kind": self.kind,
                "address": self.address,
                "enforce_owner": self.enforce_owner,
                "max_entities": self.max_entities,
                "entities": [
                    {"owner": s.owner, "state": s.entity.to_state()} for s in self._slots
                ],
                "next_seq": self.events.next_seq,
            }

    @classmethod
    def load(cls, data: Dict[str, Any], *, clock: Optional[Clock] = None) -> "EntityRegistry":
        try:
            reg = cls(
                data["kind"],
                address=data["address"],
                enforce_owner=data["enforce_owner"],
                max_entities=data["max_entities"],
                clock=clock,
                next_seq=data.get("next_seq", 0),
            )
            ent_cls = reg._cls
            reg._slots = [
                _Slot(entity=ent_cls.from_state(e["state"]), owner=normalize_address(e["owner"]))
                for e in data["entities"]
            ]
        except (KeyError, TypeError, InvalidArgument) as e:
            raise StorageError("malformed registry snapshot", details={"error": str(e)}) from e
        return reg

    # -------------------------------------------------------------- internals

    def _slot(self, entity_id: int) -> _Slot:
        if isinstance(entity_id, bool) or not isinstance(entity_id, int):
            raise InvalidArgument("entity id must be an integer", field="id", value=entity_id)
        if entity_id < 0 or entity_id >= len(self._slots):
            raise OutOfRange(index=entity_id, length=len(self._slots), what="entity")
        return self._slots[entity_id]

    @staticmethod
    def _view(entity_id: int, slot: _Slot) -> Dict[str, Any]:
        snap = slot.entity.snapshot()
        snap["id"] = entity_id
        snap["owner"] = slot.owner
        return snap

    def __repr__(self) -> str:
        return f"EntityRegistry(kind={self.kind!r}, address={self.address}, count={self.count()})"


__all__ = ["EntityRegistry"]
