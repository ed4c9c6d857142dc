import pytest

from ledgerlab.codec import dumps_canonical, loads
from ledgerlab.db import EVENTS, INSTANCES, KV, Prefix, be_u64, open_kv
from ledgerlab.errors import StorageError


@pytest.mark.parametrize("uri", ["memory://", "sqlite:///:memory:"])
def test_open_kv_in_memory(uri):
    kv = open_kv(uri)
    assert isinstance(kv, KV)
    kv.put(b"a", b"1")
    assert kv.get(b"a") == b"1"
    assert kv.has(b"a") and not kv.has(b"b")
    kv.delete(b"a")
    assert kv.get(b"a") is None
    kv.close()


def test_open_kv_file_and_bare_path(tmp_path):
    path = tmp_path / "nested" / "store.db"
    kv = open_kv(f"sqlite:///{path}")
    kv.put(b"k", b"v")
    kv.close()
    kv = open_kv(str(path))
    assert kv.get(b"k") == b"v"
    kv.close()


def test_open_kv_rejects_unknown_uri(tmp_path):
    with pytest.raises(ValueError):
        open_kv("redis://localhost")
    with pytest.raises(FileNotFoundError):
        open_kv(f"sqlite:///{tmp_path / 'absent.db'}", create=False)


def test_batch_commits_atomically(kv):
    with kv.batch() as b:
        b.put(b"x", b"1")
        b.put(b"y", b"2")
    assert kv.get(b"x") == b"1" and kv.get(b"y") == b"2"

    with pytest.raises(RuntimeError):
        with kv.batch() as b:
            b.put(b"x", b"changed")
            b.delete(b"y")
            raise RuntimeError("abort")
    assert kv.get(b"x") == b"1" and kv.get(b"y") == b"2"


def test_prefix_keys_isolate_instances(kv):
    kv.put(EVENTS.key("ab", be_u64(1)), b"ab1")
    kv.put(EVENTS.key("ab", be_u64(0)), b"ab0")
    kv.put(EVENTS.key("abc", be_u64(0)), b"abc0")
    kv.put(INSTANCES.key("ab"), b"inst")
    got = [v for _, v in kv.iter_prefix(EVENTS.key("ab"))]
    assert got == [b"ab0", b"ab1"]
    assert [v for _, v in kv.iter_prefix(INSTANCES.raw)] == [b"inst"]


def test_prefix_helpers():
    p = Prefix("z:")
    assert p.raw == b"z:"
    assert p.key("a", 1).startswith(b"z:")
    with pytest.raises(ValueError):
        Prefix(b"")
    with pytest.raises(ValueError):
        be_u64(-1)
    with pytest.raises(TypeError):
        p.key(1.5)


def test_canonical_cbor_ignores_insertion_order():
    a = dumps_canonical({"b": 1, "a": [1, 2, {"y": 0, "x": 1}]})
    b = dumps_canonical({"a": [1, 2, {"x": 1, "y": 0}], "b": 1})
    assert a == b
    assert loads(a) == {"a": [1, 2, {"x": 1, "y": 0}], "b": 1}


def test_cbor_large_ints_survive():
    big = 10**30
    assert loads(dumps_canonical({"v": big}))["v"] == big


def test_cbor_errors():
    with pytest.raises(StorageError):
        dumps_canonical({1: "non-text key"})
    with pytest.raises(StorageError):
        loads(b"\x82\x01")
