from __future__ import annotations
"""
ledgerlab - managed-entity registry and pooled escrow ledger.

An in-process rendition of two teaching contracts: a shape factory that owns
an append-only collection of rectangles, and a payment contract that pools
deposits and lets a single recipient withdraw. The host layer supplies what a
chain runtime would: one total order per instance, an explicit commit after
every successful mutation, and an append-only notification log.

Public surface (lazily loaded):
- config, errors, logging
- identity, units, events, codec
- db, registry, ledger, host, cli
"""


from typing import List

try:
    from .version import __version__  # type: ignore
except Exception:  # pragma: no cover - safe fallback when building incrementally
    __version__ = "0.0.0+local"

__all__: List[str] = [
    "__version__",
    "config",
    "errors",
    "logging",
    "identity",
    "units",
    "events",
    "codec",
    "db",
    "registry",
    "ledger",
    "host",
    "cli",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the ledgerlab package version string."""
    return __version__
