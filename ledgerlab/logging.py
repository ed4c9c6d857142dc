"""
Logging for ledgerlab.

Loggers are ordinary stdlib loggers under the "ledgerlab" name. The contract
host binds the instance it is driving (`instance`, `kind`, `op`, plus a
`trace_id`) into a context variable; both formatters stamp those fields on
every line written while the binding is active, followed by whatever the
call passed as `extra=`.

    configure(json=True, level="DEBUG")
    with trace_scope(instance="payments", kind="ledger", op="deposit"):
        get_logger(__name__).info("deposit accepted", extra={"amount": 5})

Output is one line per record: a JSON object, or
`ts | LEVEL | logger | k=v ... | message` for people at a terminal.
"""

from __future__ import annotations

import json as _json
import logging
import secrets
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, TextIO, Union

ROOT_LOGGER = "ledgerlab"
CONTEXT_FIELDS = ("trace_id", "instance", "kind", "op")

_bound: ContextVar[Mapping[str, Any]] = ContextVar("ledgerlab_log_fields", default={})

# attributes every LogRecord carries; anything else arrived through extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


# ------------------------------------------------------------------ context


def context() -> Dict[str, Any]:
    """Fields currently bound in this thread or task."""
    return dict(_bound.get())


def bind(**fields: Any) -> None:
    _bound.set({**_bound.get(), **fields})


def clear_context() -> None:
    _bound.set({})


@contextmanager
def trace_scope(trace_id: Optional[str] = None, **fields: Any) -> Iterator[None]:
    """
    Bind `fields` for the duration of the block and restore the outer
    binding afterwards. A nested scope inherits the outer `trace_id`; the
    outermost one gets a fresh random id unless given one.
    """
    outer = _bound.get()
    tid = trace_id or outer.get("trace_id") or secrets.token_hex(6)
    token = _bound.set({**outer, **fields, "trace_id": tid})
    try:
        yield
    finally:
        _bound.reset(token)


# --------------------------------------------------------------- formatting


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if hasattr(value, "to_dict"):
        return _plain(value.to_dict())
    return str(value)


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Host context in CONTEXT_FIELDS order, other bound fields, then extras."""
    bound = _bound.get()
    out = {k: _plain(bound[k]) for k in CONTEXT_FIELDS if k in bound}
    for k, v in bound.items():
        out.setdefault(k, _plain(v))
    for k, v in vars(record).items():
        if k not in _RECORD_ATTRS and not k.startswith("_"):
            out[k] = _plain(v)
    return out


def _stamp(record: logging.LogRecord) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)) + f".{int(record.msecs):03d}Z"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        doc: Dict[str, Any] = {
            "ts": _stamp(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k, v in _fields(record).items():
            doc.setdefault(k, v)
        if record.exc_info:
            doc["exc"] = self.formatException(record.exc_info)
        return _json.dumps(doc, separators=(",", ":"), default=str)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [_stamp(record), f"{record.levelname:<7}", record.name]
        pairs = " ".join(f"{k}={v}" for k, v in _fields(record).items())
        if pairs:
            parts.append(pairs)
        parts.append(record.getMessage())
        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ------------------------------------------------------------------- setup


def _level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def configure(
    *,
    json: Optional[bool] = None,
    level: Union[str, int] = "INFO",
    stream: Optional[TextIO] = None,
    file_path: Optional[Union[str, Path]] = None,
) -> None:
    """
    Replace the root handlers with one console handler on `stream`
    (stderr by default) and, when `file_path` is set, a JSON file handler.
    `json=None` writes JSON unless the stream is a terminal.
    """
    stream = stream if stream is not None else sys.stderr
    if json is None:
        json = not (hasattr(stream, "isatty") and stream.isatty())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(_level(level))

    console = logging.StreamHandler(stream)
    console.setFormatter(JSONFormatter() if json else TextFormatter())
    root.addHandler(console)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(path, encoding="utf-8")
        sink.setFormatter(JSONFormatter())
        root.addHandler(sink)


def configure_from_config(cfg: Any, *, stream: Optional[TextIO] = None) -> None:
    """Apply `cfg.log` from a `LedgerLabConfig`: level, format (auto|json|text), file."""
    fmt = cfg.log.format.lower()
    configure(
        json=None if fmt == "auto" else fmt == "json",
        level=cfg.log.level,
        stream=stream,
        file_path=cfg.log.file,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or ROOT_LOGGER)


__all__ = [
    "CONTEXT_FIELDS",
    "JSONFormatter",
    "TextFormatter",
    "bind",
    "clear_context",
    "configure",
    "configure_from_config",
    "context",
    "get_logger",
    "trace_scope",
]
