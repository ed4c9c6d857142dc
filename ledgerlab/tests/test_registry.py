import pytest

from ledgerlab.errors import InvalidArgument, OutOfRange, StorageError, Unauthorized
from ledgerlab.identity import derive_address
from ledgerlab.registry import KINDS, Entity, EntityRegistry

from ledgerlab.tests.conftest import ALICE, BOB, CAROL


def test_create_then_get(registry):
    eid = registry.create(ALICE, longueur=3, largeur=4)
    assert eid == 0
    snap = registry.get(0)
    assert {k: snap[k] for k in ("longueur", "largeur", "surface", "perimeter")} == {
        "longueur": 3,
        "largeur": 4,
        "surface": 12,
        "perimeter": 14,
    }
    assert snap["id"] == 0
    assert snap["owner"] == ALICE


def test_ids_are_dense(registry):
    ids = [registry.create(BOB, longueur=i, largeur=i + 1) for i in range(1, 6)]
    assert ids == [0, 1, 2, 3, 4]
    assert registry.count() == 5


def test_degenerate_create_rejected(registry):
    with pytest.raises(InvalidArgument):
        registry.create(ALICE, longueur=0, largeur=5)
    assert registry.count() == 0
    assert registry.events.next_seq == 0


def test_create_with_unknown_argument(registry):
    with pytest.raises(InvalidArgument):
        registry.create(ALICE, longueur=1, largeur=1, rayon=2)
    with pytest.raises(InvalidArgument):
        registry.create(ALICE, longueur=1)


@pytest.mark.parametrize("created", [0, 1, 4])
def test_get_and_mutate_out_of_range(registry, created):
    for _ in range(created):
        registry.create(ALICE, longueur=1, largeur=1)
    for bad in (created, created + 1, -1):
        with pytest.raises(OutOfRange):
            registry.get(bad)
        with pytest.raises(OutOfRange):
            registry.mutate(ALICE, bad, longueur=2)


def test_mutate_emits_change_with_new_state(registry):
    registry.create(ALICE, longueur=3, largeur=4)
    rec = registry.mutate(ALICE, 0, largeur=5, dx=2)
    assert rec.name == "EntityChanged"
    assert rec.fields["id"] == 0
    assert rec.fields["state"]["surface"] == 15
    assert rec.fields["state"]["x"] == 2
    assert registry.get(0)["perimeter"] == 16


def test_mutate_by_non_owner(registry):
    registry.create(ALICE, longueur=3, largeur=4)
    with pytest.raises(Unauthorized):
        registry.mutate(BOB, 0, longueur=9)
    assert registry.get(0)["longueur"] == 3


def test_out_of_range_checked_before_ownership(registry):
    registry.create(ALICE, longueur=3, largeur=4)
    with pytest.raises(OutOfRange):
        registry.mutate(BOB, 1, longueur=9)


def test_permissive_registry_lets_anyone_mutate(clock):
    reg = EntityRegistry("rectangle", enforce_owner=False, clock=clock)
    reg.create(ALICE, longueur=3, largeur=4)
    reg.move(CAROL, 0, 1, 1)
    assert reg.get(0)["owner"] == ALICE
    assert (reg.get(0)["x"], reg.get(0)["y"]) == (1, 1)


def test_failed_mutate_changes_nothing(registry):
    registry.create(ALICE, longueur=3, largeur=4)
    before = registry.get(0)
    seq = registry.events.next_seq
    with pytest.raises(InvalidArgument):
        registry.mutate(ALICE, 0, longueur=7, largeur=-1)
    assert registry.get(0) == before
    assert registry.events.next_seq == seq


def test_resize_helper(registry):
    registry.create(ALICE, longueur=3, largeur=4)
    registry.resize(ALICE, 0, longueur=5)
    assert registry.get(0)["surface"] == 20


def test_aggregate_and_total_area(registry):
    assert registry.total_area() == 0
    registry.create(ALICE, longueur=3, largeur=4)
    registry.create(BOB, longueur=2, largeur=2)
    assert registry.total_area() == 16
    assert registry.aggregate(lambda acc, s: acc + [s["id"]], []) == [0, 1]
    assert registry.aggregate(lambda acc, s: max(acc, s["perimeter"]), 0) == 14


def test_snapshots_window(registry):
    for i in range(1, 6):
        registry.create(ALICE, longueur=i, largeur=1)
    assert [s["id"] for s in registry.snapshots()] == [0, 1, 2, 3, 4]
    assert [s["id"] for s in registry.snapshots(start=3)] == [3, 4]
    assert [s["id"] for s in registry.snapshots(start=1, limit=2)] == [1, 2]
    assert registry.snapshots(start=10) == []


def test_max_entities(clock):
    reg = EntityRegistry("rectangle", max_entities=2, clock=clock)
    reg.create(ALICE, longueur=1, largeur=1)
    reg.create(ALICE, longueur=1, largeur=1)
    with pytest.raises(InvalidArgument):
        reg.create(ALICE, longueur=1, largeur=1)
    assert reg.count() == 2


def test_created_notification(registry, clock):
    clock.advance(10)
    registry.create(BOB, longueur=2, largeur=9, x=1)
    (rec,) = registry.events.records()
    assert rec.name == "EntityCreated"
    assert rec.ts_ms == clock.now
    assert rec.fields == {
        "id": 0,
        "owner": BOB,
        "init": {"longueur": 2, "largeur": 9, "x": 1, "y": 0},
    }


def test_dump_load(registry, clock):
    registry.create(ALICE, longueur=3, largeur=4)
    registry.create(BOB, longueur=5, largeur=6, x=-2)
    registry.move(BOB, 1, 1, 1)
    restored = EntityRegistry.load(registry.dump(), clock=clock)
    assert restored.snapshots() == registry.snapshots()
    assert restored.address == registry.address
    assert restored.events.next_seq == 3
    assert restored.create(CAROL, longueur=1, largeur=1) == 2


def test_load_rejects_garbage():
    with pytest.raises(StorageError):
        EntityRegistry.load({"kind": "rectangle"})
    good = EntityRegistry("rectangle", address=derive_address("registry:x")).dump()
    good["entities"] = [{"owner": ALICE, "state": {"longueur": 0, "largeur": 1}}]
    with pytest.raises(StorageError):
        EntityRegistry.load(good)


class Tile:
    """A kind that satisfies Entity without being a Shape."""

    kind = "tile"

    def __init__(self, side: int) -> None:
        self.side = side

    def snapshot(self):
        return {"side": self.side, "surface": self.side * self.side}

    def apply(self, **args):
        self.side = args["side"]

    def to_state(self):
        return {"side": self.side}

    @classmethod
    def from_state(cls, state):
        return cls(state["side"])


def test_registry_holds_any_entity_kind(monkeypatch, clock):
    monkeypatch.setitem(KINDS, "tile", Tile)
    reg = EntityRegistry("tile", address=derive_address("registry:tile"), clock=clock)
    reg.create(ALICE, side=2)
    reg.create(BOB, side=3)
    reg.mutate(ALICE, 0, side=4)
    assert isinstance(Tile(1), Entity)
    assert reg.total_area() == 25
    restored = EntityRegistry.load(reg.dump(), clock=clock)
    assert restored.get(0)["side"] == 4
