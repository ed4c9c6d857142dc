"""
ledgerlab - command-line interface for the entity registry and the escrow ledger.

Every command opens the store named by --db (or LEDGERLAB_DB_URI, or the
config file), runs one operation through the contract host, and closes it.
Domain errors print their code and exit 1; usage errors exit 2.

Examples:
  ledgerlab ledger deploy payments --owner 0x.. --recipient 0x..
  ledgerlab ledger deposit payments --sender 0x.. --amount 0.25
  ledgerlab shapes create drawing --caller 0x.. --longueur 3 --largeur 4
  ledgerlab events payments --since 2 --json
  ledgerlab config show
"""

from __future__ import annotations

from typing import Optional

import typer

from ledgerlab import config as llconfig
from ledgerlab import logging as llog
from ledgerlab.units import ether_to_wei, format_ether
from ledgerlab.version import __version__

from . import ledger, shapes
from ._common import DB_OPTION, JSON_OPTION, domain_errors, load_config, open_host, print_kv, print_rows

app = typer.Typer(
    name="ledgerlab",
    help="Managed entity registry and pooled escrow ledger.",
    no_args_is_help=True,
    add_completion=False,
)
app.add_typer(ledger.app, name="ledger")
app.add_typer(shapes.app, name="shapes")

config_app = typer.Typer(name="config", add_completion=False, no_args_is_help=True, help="Inspect configuration.")
units_app = typer.Typer(name="units", add_completion=False, no_args_is_help=True, help="Ether / wei conversion.")
app.add_typer(config_app, name="config")
app.add_typer(units_app, name="units")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LEDGERLAB_LOG_LEVEL"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Print version and exit"
    ),
) -> None:
    cfg = load_config(log_level)
    llog.configure_from_config(cfg)


@app.command("events")
def events(
    name: str = typer.Argument(..., help="Instance name"),
    since: int = typer.Option(0, "--since", min=0, help="First sequence number to show"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Committed notifications of one instance, oldest first."""
    with open_host(db) as host:
        rows = [n.to_dict() for n in host.notifications(name, since=since)]
        print_rows(rows, ("seq", "name", "ts_ms", "fields"), title=f"events {name}", as_json=json_out)


@config_app.command("show")
def config_show(
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Effective configuration (file + environment)."""
    cfg = load_config()
    if db:
        cfg.store.uri = db
    if json_out:
        typer.echo(llconfig.pretty(cfg))
        return
    flat = {
        f"{section}.{key}": value
        for section, values in cfg.to_dict().items()
        for key, value in values.items()
    }
    print_kv(flat, title="ledgerlab config")


@units_app.command("to-wei")
def to_wei(
    ether: str = typer.Argument(..., help="Decimal ether amount"),
    json_out: bool = JSON_OPTION,
) -> None:
    with domain_errors():
        wei = ether_to_wei(ether)
    print_kv({"ether": ether, "wei": wei}, as_json=json_out)


@units_app.command("to-ether")
def to_ether(
    wei: int = typer.Argument(..., help="Integer wei amount"),
    json_out: bool = JSON_OPTION,
) -> None:
    with domain_errors():
        ether = format_ether(wei)
    print_kv({"wei": wei, "ether": ether}, as_json=json_out)


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
