from __future__ import annotations

"""
SQLite-backed KV store
======================

Implements the `KV` / `Batch` protocols from `ledgerlab.db.kv` on top of the
stdlib `sqlite3` module.

- Table schema: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- Prefix scans use the range [prefix, prefix_hi) plus a substr guard.
- One connection per store, shared across threads. An RLock serializes every
  statement and holds for the whole life of a batch, so a batch from one
  thread never interleaves with a write from another.
"""

import os
import sqlite3
import threading
from typing import Iterator, List, Optional, Tuple, Union

from .kv import Batch

PathLike = Union[str, "os.PathLike[str]"]

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "foreign_keys": "OFF",
}

_UPSERT = "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v"


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    cur = conn.cursor()
    for name, value in p.items():
        cur.execute(f"PRAGMA {name}={value}")
    cur.close()


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            k BLOB PRIMARY KEY,
            v BLOB NOT NULL
        )
        """
    )


def _prefix_hi(prefix: bytes) -> Optional[bytes]:
    """
    Smallest byte string greater than every key starting with `prefix`, or
    None when no such bound exists (empty or all-0xFF prefix).

    b"ab\\x01" -> b"ab\\x02"; b"\\xff\\xff" -> None
    """
    p = bytearray(prefix)
    for i in range(len(p) - 1, -1, -1):
        if p[i] != 0xFF:
            p[i] += 1
            del p[i + 1 :]
            return bytes(p)
    return None


class SQLiteBatch:
    __slots__ = ("_kv", "_open")

    def __init__(self, kv: "SQLiteKV") -> None:
        self._kv = kv
        self._open = False

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._kv._lock.acquire()
        try:
            self._kv._conn.execute("BEGIN IMMEDIATE")
        except BaseException:
            self._kv._lock.release()
            raise
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._kv._conn.execute(_UPSERT, (memoryview(key), memoryview(value)))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._kv._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def commit(self) -> None:
        if self._open:
            self._kv._conn.execute("COMMIT")

    def rollback(self) -> None:
        if self._open:
            self._kv._conn.execute("ROLLBACK")

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            if exc_type is None:
                try:
                    self.commit()
                except BaseException:
                    self.rollback()
                    raise
            else:
                self.rollback()
        finally:
            self._open = False
            self._kv._lock.release()
        return None


def _open_connection(path: PathLike, *, pragmas: Optional[dict] = None, create: bool = True) -> sqlite3.Connection:
    path_str = str(path)
    if path_str.startswith("sqlite:///"):
        path_str = path_str[len("sqlite:///") :]
    if path_str != ":memory:":
        if not create and not os.path.exists(path_str):
            raise FileNotFoundError(f"SQLite KV not found at {path_str}")
        parent = os.path.dirname(os.path.abspath(path_str))
        if create:
            os.makedirs(parent, exist_ok=True)

    conn = sqlite3.connect(
        path_str,
        isolation_level=None,     # autocommit; batches BEGIN explicitly
        check_same_thread=False,  # shared across threads behind SQLiteKV._lock
    )
    _apply_pragmas(conn, pragmas)
    _migrate(conn)
    return conn


class SQLiteKV:
    """SQLite-backed KV. Use `open_sqlite_kv(path)` to construct."""

    __slots__ = ("_conn", "_lock", "path")

    def __init__(self, conn: sqlite3.Connection, *, path: str = ":memory:") -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self.path = path

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute("SELECT v FROM kv WHERE k = ?", (memoryview(key),)).fetchone()
        return bytes(row[0]) if row is not None else None

    def has(self, key: bytes) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM kv WHERE k = ? LIMIT 1", (memoryview(key),)
            ).fetchone()
        return row is not None

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        hi = _prefix_hi(prefix)
        if hi is not None:
            sql = "SELECT k, v FROM kv WHERE k >= ? AND k < ? AND substr(k,1,?) = ? ORDER BY k"
            args: tuple = (memoryview(prefix), memoryview(hi), len(prefix), memoryview(prefix))
        else:
            sql = "SELECT k, v FROM kv WHERE substr(k,1,?) = ? ORDER BY k"
            args = (len(prefix), memoryview(prefix))
        with self._lock:
            rows: List[Tuple[bytes, bytes]] = [
                (bytes(k), bytes(v)) for k, v in self._conn.execute(sql, args)
            ]
        return iter(rows)

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._conn.execute(_UPSERT, (memoryview(key), memoryview(value)))

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def batch(self) -> Batch:
        return SQLiteBatch(self)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def open_sqlite_kv(path: PathLike, *, pragmas: Optional[dict] = None, create: bool = True) -> SQLiteKV:
    """
    Open (or create) a SQLite KV at `path` (a file path or ":memory:").

    `create=False` raises FileNotFoundError when the file does not exist.
    """
    conn = _open_connection(path, pragmas=pragmas, create=create)
    return SQLiteKV(conn, path=str(path))


__all__ = ["SQLiteKV", "SQLiteBatch", "open_sqlite_kv"]
