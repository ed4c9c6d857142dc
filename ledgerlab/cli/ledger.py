from __future__ import annotations

"""
ledgerlab.cli.ledger
--------------------

Escrow ledger commands. Amounts are typed in ether and converted to integer
wei before they reach the ledger; pass --wei to give raw wei instead.

Examples
--------
ledgerlab ledger deploy payments --owner 0xaa.. --recipient 0xbb.. --db sqlite:///ll.db
ledgerlab ledger deposit payments --sender 0xcc.. --amount 1.5
ledgerlab ledger withdraw payments --caller 0xbb..
ledgerlab ledger stats payments --json
"""

from typing import Optional

import typer

from ledgerlab.errors import InvalidArgument
from ledgerlab.units import ether_to_wei, format_ether

from ._common import DB_OPTION, JSON_OPTION, domain_errors, open_host, print_kv, print_rows

app = typer.Typer(
    name="ledger",
    add_completion=False,
    no_args_is_help=True,
    help="Pooled escrow ledger: deposits, withdrawals, recipient and halt control.",
)


def _amount(value: str, wei: bool) -> int:
    with domain_errors():
        if not wei:
            return ether_to_wei(value)
        try:
            return int(value)
        except ValueError:
            raise InvalidArgument("wei amount must be an integer", field="amount", value=value) from None


def _notification(rec, as_json: bool) -> None:
    if rec is None:
        print_kv({"changed": False}, as_json=as_json)
        return
    print_kv({"seq": rec.seq, "name": rec.name, **rec.fields}, title=rec.name, as_json=as_json)


@app.command("deploy")
def deploy(
    name: str = typer.Argument(..., help="Instance name"),
    owner: str = typer.Option(..., "--owner", help="Owner address (fixed for the ledger's life)"),
    recipient: str = typer.Option(..., "--recipient", help="Initial recipient address"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Create a new escrow ledger."""
    with open_host(db) as host:
        led = host.deploy_ledger(name, owner=owner, recipient=recipient)
        print_kv(
            {"name": name, "address": led.address, "owner": led.owner, "recipient": led.recipient},
            title="ledger deployed",
            as_json=json_out,
        )


@app.command("deposit")
def deposit(
    name: str = typer.Argument(...),
    sender: str = typer.Option(..., "--sender", help="Depositor address"),
    amount: str = typer.Option(..., "--amount", help="Amount in ether (or wei with --wei)"),
    wei: bool = typer.Option(False, "--wei", help="Interpret --amount as integer wei"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Add funds to the pool."""
    value = _amount(amount, wei)
    with open_host(db) as host:
        rec = host.execute(name, lambda led: led.deposit(sender, value), op_name="deposit")
        _notification(rec, json_out)


@app.command("withdraw")
def withdraw(
    name: str = typer.Argument(...),
    caller: str = typer.Option(..., "--caller", help="Must be the current recipient"),
    amount: Optional[str] = typer.Option(None, "--amount", help="Partial amount; omit to drain the pool"),
    wei: bool = typer.Option(False, "--wei", help="Interpret --amount as integer wei"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Pay the pool (or part of it) out to the recipient."""
    value = _amount(amount, wei) if amount is not None else None
    with open_host(db) as host:
        if value is None:
            rec = host.execute(name, lambda led: led.withdraw(caller), op_name="withdraw")
        else:
            rec = host.execute(
                name, lambda led: led.withdraw_amount(caller, value), op_name="withdraw_amount"
            )
        _notification(rec, json_out)


@app.command("change-recipient")
def change_recipient(
    name: str = typer.Argument(...),
    caller: str = typer.Option(..., "--caller", help="Must be the owner"),
    to: str = typer.Option(..., "--to", help="New recipient address"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        rec = host.execute(name, lambda led: led.change_recipient(caller, to), op_name="change_recipient")
        _notification(rec, json_out)


@app.command("halt")
def halt(
    name: str = typer.Argument(...),
    caller: str = typer.Option(..., "--caller", help="Must be the owner"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Reject deposits and withdrawals until resumed."""
    with open_host(db) as host:
        _notification(host.execute(name, lambda led: led.halt(caller), op_name="halt"), json_out)


@app.command("resume")
def resume(
    name: str = typer.Argument(...),
    caller: str = typer.Option(..., "--caller", help="Must be the owner"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        _notification(host.execute(name, lambda led: led.resume(caller), op_name="resume"), json_out)


@app.command("stats")
def stats(
    name: str = typer.Argument(...),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Pool balance, totals, depositor count, recipient and owner."""
    with open_host(db) as host:
        s = host.ledger(name).get_stats().to_dict()
        if not json_out:
            for k in ("pool_balance", "total_received", "total_withdrawn"):
                s[k] = f"{s[k]} wei ({format_ether(s[k])} ETH)"
        print_kv(s, title=f"ledger {name}", as_json=json_out)


@app.command("depositor")
def depositor(
    name: str = typer.Argument(...),
    index: int = typer.Argument(..., help="Zero-based position in first-deposit order"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        rec = host.ledger(name).get_depositor(index)
        print_kv({"index": index, **rec.to_dict()}, title="depositor", as_json=json_out)


@app.command("depositors")
def depositors(
    name: str = typer.Argument(...),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Every depositor with its cumulative contribution."""
    with open_host(db) as host:
        rows = [
            {"index": i, **r.to_dict()}
            for i, r in enumerate(host.ledger(name).depositor_records())
        ]
        print_rows(rows, ("index", "identifier", "cumulative_amount"), title="depositors", as_json=json_out)


__all__ = ["app"]
