"""
Shared plumbing for the ledgerlab CLI: opening the host, printing results
(rich tables or --json) and mapping domain errors to exit codes.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from ledgerlab import config as llconfig
from ledgerlab.db import open_kv
from ledgerlab.errors import LedgerLabError
from ledgerlab.host import ContractHost

EXIT_DOMAIN_ERROR = 1
EXIT_USAGE = 2

# unreadable file, malformed YAML/JSON, or a value that fails validate()
CONFIG_ERRORS = (ValueError, OSError, yaml.YAMLError)

DB_OPTION = typer.Option(
    None,
    "--db",
    help="Store URI (sqlite:///path.db, memory://). Defaults to LEDGERLAB_DB_URI or the config file.",
)
JSON_OPTION = typer.Option(False, "--json", help="Print JSON instead of a table.")


def console() -> Console:
    return Console()


def load_config(log_level: Optional[str] = None) -> llconfig.LedgerLabConfig:
    """Load file + environment config, apply a --log-level override; bad input exits 2."""
    try:
        cfg = llconfig.load()
        if log_level:
            cfg.log.level = log_level.upper()
            cfg.log.validate()
    except CONFIG_ERRORS as e:
        typer.echo(f"error: bad configuration: {e}", err=True)
        raise typer.Exit(code=EXIT_USAGE)
    return cfg


@contextmanager
def open_host(db: Optional[str]) -> Iterator[ContractHost]:
    """Open the configured store, yield a host, close on exit; domain errors exit 1."""
    with domain_errors():
        cfg = load_config()
        uri = db or cfg.store.uri
        try:
            kv = open_kv(uri)
        except ValueError as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(code=EXIT_USAGE)
        host = ContractHost(kv, config=cfg)
        try:
            yield host
        finally:
            host.close()


@contextmanager
def domain_errors() -> Iterator[None]:
    try:
        yield
    except LedgerLabError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=EXIT_DOMAIN_ERROR)


def to_plain(x: Any) -> Any:
    if is_dataclass(x) and not isinstance(x, type):
        return asdict(x)
    if hasattr(x, "to_dict"):
        return x.to_dict()
    if isinstance(x, dict):
        return {k: to_plain(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [to_plain(v) for v in x]
    return x


def print_json(obj: Any) -> None:
    typer.echo(json.dumps(to_plain(obj), indent=2, sort_keys=True))


def print_kv(obj: Dict[str, Any], *, title: Optional[str] = None, as_json: bool = False) -> None:
    if as_json:
        print_json(obj)
        return
    t = Table(title=title, box=box.SIMPLE_HEAVY, show_header=False)
    t.add_column("field", style="bold cyan")
    t.add_column("value")
    for k, v in obj.items():
        t.add_row(str(k), _fmt(v))
    console().print(t)


def print_rows(
    rows: Iterable[Dict[str, Any]],
    columns: Sequence[str],
    *,
    title: Optional[str] = None,
    as_json: bool = False,
) -> None:
    rows = list(rows)
    if as_json:
        print_json(rows)
        return
    if not rows:
        console().print(f"[dim]{title or 'rows'}: empty[/dim]")
        return
    t = Table(title=title, box=box.SIMPLE_HEAVY)
    for c in columns:
        t.add_column(c, justify="right" if c in _NUMERIC else "left")
    for r in rows:
        t.add_row(*[_fmt(r.get(c)) for c in columns])
    console().print(t)


_NUMERIC = frozenset(("id", "seq", "index", "amount", "cumulative_amount", "surface", "perimeter",
                      "longueur", "largeur", "x", "y"))


def _fmt(v: Any) -> str:
    if v is None:
        return "-"
    if isinstance(v, bool):
        return "yes" if v else "no"
    if isinstance(v, (dict, list)):
        return json.dumps(v, sort_keys=True, separators=(",", ":"))
    return str(v)


__all__: List[str] = [
    "DB_OPTION",
    "JSON_OPTION",
    "CONFIG_ERRORS",
    "load_config",
    "open_host",
    "domain_errors",
    "print_json",
    "print_kv",
    "print_rows",
    "to_plain",
]
