"""
ledgerlab.codec

Canonical CBOR for persisted snapshots and notifications.

Canonical CBOR (RFC 8949 §4.2.1) sorts map keys by their encoded bytes, so the
same snapshot always encodes to the same blob regardless of dict insertion
order. Dataclasses are converted to dicts first; tuples become arrays.

Public API
----------
- dumps_canonical(obj) -> bytes
- loads(data) -> Any            (raises StorageError on malformed input)
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

import cbor2

from ledgerlab.errors import StorageError


def _canon_obj(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        obj = asdict(obj)
    if isinstance(obj, dict):
        for k in obj:
            if not isinstance(k, str):
                raise StorageError(
                    "non-text map key in snapshot", details={"key_type": type(k).__name__}
                )
        return {k: _canon_obj(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_canon_obj(x) for x in obj]
    return obj


def dumps_canonical(obj: Any) -> bytes:
    try:
        return cbor2.dumps(_canon_obj(obj), canonical=True)
    except cbor2.CBOREncodeError as e:
        raise StorageError("value not encodable as CBOR", details={"error": str(e)}) from e


def loads(data: bytes) -> Any:
    try:
        return cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
        raise StorageError("corrupt CBOR blob", details={"error": str(e)}) from e


__all__ = ["dumps_canonical", "loads"]
