from __future__ import annotations

"""
KV interface & key layout
=========================

Backend-agnostic key-value surface used by the contract host to persist
committed instance state and the notification logs.

Buckets:

- INSTANCES (b"i:") : INSTANCES.key(name)               -> CBOR {name, kind, state}
- EVENTS    (b"e:") : EVENTS.key(name, be_u64(seq))     -> CBOR notification

Keys are built with `Prefix.key(*parts)`, which length-prefixes each part so
that `EVENTS.key(name)` is a strict prefix of every event key for `name` and
never of another instance's keys.

>>> k = EVENTS.key("payments", be_u64(3))
>>> k.startswith(EVENTS.key("payments"))
True

Writes that must land together go through `KV.batch()`:

>>> with kv.batch() as b:
...     b.put(INSTANCES.key("payments"), blob)
...     b.put(EVENTS.key("payments", be_u64(0)), ev)
"""

from typing import Iterator, Optional, Protocol, Tuple, Union, runtime_checkable

NS_SEP = b":"

KeyPart = Union[bytes, bytearray, memoryview, str, int]


class Prefix:
    """
    A namespace prefix such as b"i:".

    .raw is the prefix bytes; .key(*parts) appends length-prefixed parts.
    """

    __slots__ = ("_raw",)

    def __init__(self, ns: Union[bytes, str]) -> None:
        ns_b = ns.encode("ascii") if isinstance(ns, str) else bytes(ns)
        if not ns_b:
            raise ValueError("namespace must be non-empty")
        self._raw = ns_b.rstrip(NS_SEP) + NS_SEP

    @property
    def raw(self) -> bytes:
        return self._raw

    def key(self, *parts: KeyPart) -> bytes:
        out = bytearray(self._raw)
        for p in parts:
            pb = _part_to_bytes(p)
            out.extend(_uvarint(len(pb)))
            out.extend(pb)
        return bytes(out)


def _part_to_bytes(p: KeyPart) -> bytes:
    if isinstance(p, (bytes, bytearray, memoryview)):
        return bytes(p)
    if isinstance(p, str):
        return p.encode("utf-8")
    if isinstance(p, int) and not isinstance(p, bool):
        if p < 0:
            raise ValueError("negative ints not supported in key parts")
        return be_u64(p)
    raise TypeError(f"unsupported key part type: {type(p)!r}")


def _uvarint(n: int) -> bytes:
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(0x80 | b)
        else:
            out.append(b)
            return bytes(out)


def be_u64(n: int) -> bytes:
    if not (0 <= n < (1 << 64)):
        raise ValueError("be_u64 out of range")
    return n.to_bytes(8, "big")


INSTANCES = Prefix(b"i")
EVENTS = Prefix(b"e")


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ReadOnlyKV(Protocol):
    def get(self, key: bytes) -> Optional[bytes]:
        """Value for `key`, or None."""
        ...

    def has(self, key: bytes) -> bool:
        ...

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """(key, value) pairs under `prefix` in lexicographic key order."""
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Batch(Protocol):
    """
    Write batch used as a context manager. Leaving the block normally commits
    every write at once; leaving it with an exception discards all of them.
    """

    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(ReadOnlyKV, Protocol):
    def put(self, key: bytes, value: bytes) -> None:
        ...

    def delete(self, key: bytes) -> None:
        ...

    def batch(self) -> Batch:
        ...


__all__ = [
    "ReadOnlyKV",
    "KV",
    "Batch",
    "Prefix",
    "INSTANCES",
    "EVENTS",
    "be_u64",
]
