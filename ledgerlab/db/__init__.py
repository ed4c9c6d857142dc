from __future__ import annotations

"""
ledgerlab.db
============

Backend selection for the host's key-value store.

URIs
----
- "sqlite:///path/to/ledgerlab.db" -> SQLite file
- "sqlite:///:memory:"             -> in-memory SQLite
- "memory://"                      -> alias of "sqlite:///:memory:"
- bare path ending in ".db"        -> SQLite file

>>> kv = open_kv("memory://")
>>> with kv.batch() as b:
...     b.put(b"i:key", b"hello")
>>> kv.get(b"i:key")
b'hello'
"""

from typing import Tuple

from .kv import (
    EVENTS,
    INSTANCES,
    KV,
    Batch,
    Prefix,
    ReadOnlyKV,
    be_u64,
)
from . import sqlite as _sqlite_backend


def _parse_uri(uri: str) -> Tuple[str, str]:
    """Return ("sqlite", path) or ("memory", "")."""
    u = uri.strip()
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///") :])
    if u.startswith("memory://"):
        return ("memory", "")
    if u.endswith(".db"):
        return ("sqlite", u)
    raise ValueError(f"Unsupported DB URI: {uri!r}")


def open_kv(uri: str, create: bool = True) -> KV:
    """
    Open a KV store by URI.

    Raises ValueError for unsupported URIs and FileNotFoundError when
    `create=False` and the SQLite file is missing.
    """
    backend, path = _parse_uri(uri)
    if backend == "memory":
        return _sqlite_backend.open_sqlite_kv(":memory:", create=True)
    return _sqlite_backend.open_sqlite_kv(path or ":memory:", create=create)


__all__ = [
    "KV",
    "ReadOnlyKV",
    "Batch",
    "Prefix",
    "INSTANCES",
    "EVENTS",
    "be_u64",
    "open_kv",
]
