from __future__ import annotations
# ledgerlab/errors.py
"""
Error types for the entity registry, the escrow ledger and the host.

Every rejected precondition maps to exactly one class here so callers (and
tests) can tell failures apart without parsing messages. All errors are
raised *before* any state is touched; nothing is retried internally.

Exports:
- LedgerLabError (base)
- InvalidArgument
- OutOfRange
- Unauthorized
- InsufficientFunds
- Halted
- StorageError
"""


import json
from typing import Any, Dict, Mapping, Optional


class LedgerLabError(Exception):
    """Base class for ledgerlab domain errors."""

    code: str = "LEDGERLAB_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            # Keep this compact and stable for logs
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class InvalidArgument(LedgerLabError):
    """
    Malformed or out-of-domain input: zero/negative amounts, non-positive
    dimensions, null or self recipient, malformed addresses, unknown fields.
    """
    code = "INVALID_ARGUMENT"

    def __init__(
        self,
        message: str = "invalid argument",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if field is not None:
            d.setdefault("field", field)
            d.setdefault("value", _jsonable(value))
        super().__init__(message, details=d)


class OutOfRange(LedgerLabError):
    """An entity id or depositor index is outside the current collection bounds."""
    code = "OUT_OF_RANGE"

    def __init__(
        self,
        *,
        index: int,
        length: int,
        what: str = "index",
        message: str = "index out of range",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"what": what, "index": int(index), "length": int(length)})
        super().__init__(message, details=d)


class Unauthorized(LedgerLabError):
    """The caller is not the identity the operation requires (recipient, owner, entity owner)."""
    code = "UNAUTHORIZED"

    def __init__(
        self,
        *,
        caller: str,
        required: str,
        message: str = "caller not authorized",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"caller": caller, "required": required})
        super().__init__(message, details=d)


class InsufficientFunds(LedgerLabError):
    """A withdrawal asks for more than the pool currently holds."""
    code = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        *,
        requested: int,
        available: int,
        message: str = "insufficient funds",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"requested": int(requested), "available": int(available)})
        super().__init__(message, details=d)


class Halted(LedgerLabError):
    """Deposit or withdrawal attempted while the owner has halted the ledger."""
    code = "HALTED"

    def __init__(
        self,
        *,
        operation: str,
        message: str = "ledger is halted",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d["operation"] = operation
        super().__init__(message, details=d)


class StorageError(LedgerLabError):
    """
    Persistence failures: unreadable snapshots, failed commits, unknown or
    mismatched instance names.
    """
    code = "STORAGE_ERROR"

    def __init__(
        self,
        message: str = "storage operation failed",
        *,
        name: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if name is not None:
            d.setdefault("name", name)
        super().__init__(message, details=d)


def _jsonable(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    return str(v)


__all__ = [
    "LedgerLabError",
    "InvalidArgument",
    "OutOfRange",
    "Unauthorized",
    "InsufficientFunds",
    "Halted",
    "StorageError",
]
