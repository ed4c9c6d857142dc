from __future__ import annotations
"""
ledgerlab.config - configuration for the registry, the ledger and the host

Covers:
- Store location (KV URI)
- Ledger feature switches (halt flag, partial withdrawals)
- Registry policy (per-entity ownership, collection cap)
- Logging level/format

Environment overrides (all optional; sensible defaults provided):

  LEDGERLAB_DB_URI=sqlite:///ledgerlab.db
  LEDGERLAB_HALT_ENABLED=1
  LEDGERLAB_PARTIAL_WITHDRAW_ENABLED=1
  LEDGERLAB_ENFORCE_ENTITY_OWNER=1
  LEDGERLAB_MAX_ENTITIES=0            # 0 = unlimited
  LEDGERLAB_LOG_LEVEL=INFO
  LEDGERLAB_LOG_FORMAT=auto           # auto | json | text
  LEDGERLAB_LOG_FILE=/path/to/ledgerlab.log

You can also load from a JSON or YAML file via
`LEDGERLAB_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml


_LOG_FORMATS = ("auto", "json", "text")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


# -------------------------- Data classes --------------------------


@dataclass
class StoreConfig:
    """Where committed state and notifications live (see ledgerlab.db.open_kv)."""
    uri: str = "sqlite:///ledgerlab.db"

    def validate(self) -> None:
        if not self.uri or not self.uri.strip():
            raise ValueError("store.uri must be non-empty.")


@dataclass
class LedgerConfig:
    """Escrow ledger feature switches."""
    halt_enabled: bool = True
    partial_withdraw_enabled: bool = True

    def validate(self) -> None:
        for name in ("halt_enabled", "partial_withdraw_enabled"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"ledger.{name} must be a boolean.")


@dataclass
class RegistryConfig:
    """Entity registry policy."""
    enforce_entity_owner: bool = True
    max_entities: int = 0  # 0 = unlimited

    def validate(self) -> None:
        if not isinstance(self.enforce_entity_owner, bool):
            raise ValueError("registry.enforce_entity_owner must be a boolean.")
        if self.max_entities < 0:
            raise ValueError(f"registry.max_entities must be >= 0 (got {self.max_entities}).")


@dataclass
class LogConfig:
    level: str = "INFO"
    format: str = "auto"
    file: Optional[str] = None

    def validate(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log.level must be one of {_LOG_LEVELS} (got {self.level!r}).")
        if self.format.lower() not in _LOG_FORMATS:
            raise ValueError(f"log.format must be one of {_LOG_FORMATS} (got {self.format!r}).")


@dataclass
class LedgerLabConfig:
    """Top-level configuration container."""
    store: StoreConfig = field(default_factory=StoreConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    log: LogConfig = field(default_factory=LogConfig)

    def validate(self) -> None:
        self.store.validate()
        self.ledger.validate()
        self.registry.validate()
        self.log.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ValueError(f"Invalid int for {name}: {v!r}") from e


def _getenv_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    s = v.strip().lower()
    if s in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ValueError(f"Invalid bool for {name}: {v!r}")


def _getenv_str(name: str, default: Optional[str]) -> Optional[str]:
    v = os.getenv(name)
    return default if v is None or v == "" else v


def from_env(base: Optional[LedgerLabConfig] = None, prefix: str = "LEDGERLAB_") -> LedgerLabConfig:
    """
    Build a LedgerLabConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or LedgerLabConfig()

    new_cfg = LedgerLabConfig(
        store=StoreConfig(uri=_getenv_str(f"{prefix}DB_URI", cfg.store.uri) or cfg.store.uri),
        ledger=LedgerConfig(
            halt_enabled=_getenv_bool(f"{prefix}HALT_ENABLED", cfg.ledger.halt_enabled),
            partial_withdraw_enabled=_getenv_bool(
                f"{prefix}PARTIAL_WITHDRAW_ENABLED", cfg.ledger.partial_withdraw_enabled
            ),
        ),
        registry=RegistryConfig(
            enforce_entity_owner=_getenv_bool(
                f"{prefix}ENFORCE_ENTITY_OWNER", cfg.registry.enforce_entity_owner
            ),
            max_entities=_getenv_int(f"{prefix}MAX_ENTITIES", cfg.registry.max_entities),
        ),
        log=LogConfig(
            level=(_getenv_str(f"{prefix}LOG_LEVEL", cfg.log.level) or cfg.log.level).upper(),
            format=(_getenv_str(f"{prefix}LOG_FORMAT", cfg.log.format) or cfg.log.format).lower(),
            file=_getenv_str(f"{prefix}LOG_FILE", cfg.log.file),
        ),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> LedgerLabConfig:
    """
    Load configuration from a JSON or YAML file. Missing sections keep their defaults.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")
    if not isinstance(data, dict):
        raise ValueError(f"config file {p} must contain a mapping at the top level")

    store = data.get("store", {})
    ledger = data.get("ledger", {})
    registry = data.get("registry", {})
    log = data.get("log", {})

    cfg = LedgerLabConfig(
        store=StoreConfig(uri=store.get("uri", StoreConfig().uri)),
        ledger=LedgerConfig(
            halt_enabled=ledger.get("halt_enabled", LedgerConfig().halt_enabled),
            partial_withdraw_enabled=ledger.get(
                "partial_withdraw_enabled", LedgerConfig().partial_withdraw_enabled
            ),
        ),
        registry=RegistryConfig(
            enforce_entity_owner=registry.get(
                "enforce_entity_owner", RegistryConfig().enforce_entity_owner
            ),
            max_entities=int(registry.get("max_entities", RegistryConfig().max_entities)),
        ),
        log=LogConfig(
            level=str(log.get("level", LogConfig().level)).upper(),
            format=str(log.get("format", LogConfig().format)).lower(),
            file=log.get("file", LogConfig().file),
        ),
    )
    cfg.validate()
    return cfg


def load() -> LedgerLabConfig:
    """
    Load configuration using the following precedence:
      1) File at $LEDGERLAB_CONFIG_FILE (JSON/YAML)
      2) Environment variables (LEDGERLAB_*), applied on top of defaults or file values
    """
    file_path = os.getenv("LEDGERLAB_CONFIG_FILE")
    base = from_file(file_path) if file_path else LedgerLabConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[LedgerLabConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "StoreConfig",
    "LedgerConfig",
    "RegistryConfig",
    "LogConfig",
    "LedgerLabConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
