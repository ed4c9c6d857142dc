from __future__ import annotations

"""
Account identifiers.

Addresses are `0x`-prefixed, 40-hex-digit strings compared in lowercase. The
caller of every mutating operation is passed explicitly; this module only
normalizes and derives identifiers, it never guesses who is calling.
"""

import hashlib
import re
from typing import Any

from ledgerlab.errors import InvalidArgument

Address = str

ADDRESS_HEX_LEN = 40
NULL_ADDRESS: Address = "0x" + "0" * ADDRESS_HEX_LEN

_ADDR_RE = re.compile(r"^0x[0-9a-f]{40}$")


def normalize_address(value: Any, *, field: str = "address") -> Address:
    """
    Return the canonical (lowercase) form of `value` or raise InvalidArgument.

    Accepts "0x"/"0X" prefixed hex strings and raw 20-byte values.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_HEX_LEN // 2:
            raise InvalidArgument("address must be 20 bytes", field=field, value=value)
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise InvalidArgument("address must be a hex string", field=field, value=value)
    s = value.strip().lower()
    if not _ADDR_RE.match(s):
        raise InvalidArgument("malformed address", field=field, value=value)
    return s


def is_null(addr: Address) -> bool:
    return normalize_address(addr) == NULL_ADDRESS


def derive_address(tag: str) -> Address:
    """
    Deterministic address from a label: first 20 bytes of sha3-256(tag).

    Used for contract instance addresses ("ledger:<name>") and fixture accounts.
    """
    return "0x" + hashlib.sha3_256(tag.encode("utf-8")).hexdigest()[:ADDRESS_HEX_LEN]


def short(addr: Address, n: int = 10) -> str:
    """Abbreviated form for tables: 0x1234…cdef."""
    if len(addr) <= n + 2:
        return addr
    half = max(2, n // 2)
    return f"{addr[:half + 2]}…{addr[-half:]}"


__all__ = [
    "Address",
    "NULL_ADDRESS",
    "normalize_address",
    "is_null",
    "derive_address",
    "short",
]
