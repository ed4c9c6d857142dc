from __future__ import annotations

"""
ledgerlab.cli.shapes
--------------------

Rectangle registry commands.

Examples
--------
ledgerlab shapes deploy drawing
ledgerlab shapes create drawing --caller 0xaa.. --longueur 3 --largeur 4
ledgerlab shapes get drawing 0 --json
ledgerlab shapes total-area drawing
"""

from typing import Optional

import typer

from ._common import DB_OPTION, JSON_OPTION, open_host, print_kv, print_rows

app = typer.Typer(
    name="shapes",
    add_completion=False,
    no_args_is_help=True,
    help="Append-only rectangle registry: create, inspect, resize, move, total area.",
)

_COLUMNS = ("id", "owner", "x", "y", "longueur", "largeur", "surface", "perimeter")


@app.command("deploy")
def deploy(
    name: str = typer.Argument(..., help="Instance name"),
    kind: str = typer.Option("rectangle", "--kind", help="Entity kind held by the registry"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        reg = host.deploy_registry(name, kind=kind)
        print_kv({"name": name, "address": reg.address, "kind": reg.kind}, title="registry deployed", as_json=json_out)


@app.command("create")
def create(
    name: str = typer.Argument(...),
    caller: str = typer.Option(..., "--caller", help="Creator; becomes the entity owner"),
    longueur: int = typer.Option(..., "--longueur", help="Length (> 0)"),
    largeur: int = typer.Option(..., "--largeur", help="Width (> 0)"),
    x: int = typer.Option(0, "--x"),
    y: int = typer.Option(0, "--y"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Append a rectangle and print its id."""
    with open_host(db) as host:
        entity_id = host.execute(
            name,
            lambda reg: reg.create(caller, longueur=longueur, largeur=largeur, x=x, y=y),
            op_name="create",
        )
        print_kv(host.registry(name).get(entity_id), title=f"entity {entity_id}", as_json=json_out)


@app.command("get")
def get(
    name: str = typer.Argument(...),
    entity_id: int = typer.Argument(..., metavar="ID"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        print_kv(host.registry(name).get(entity_id), title=f"entity {entity_id}", as_json=json_out)


@app.command("count")
def count(
    name: str = typer.Argument(...),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        print_kv({"count": host.registry(name).count()}, as_json=json_out)


@app.command("list")
def list_(
    name: str = typer.Argument(...),
    start: int = typer.Option(0, "--start", min=0),
    limit: Optional[int] = typer.Option(None, "--limit", min=0),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        rows = host.registry(name).snapshots(start=start, limit=limit)
        print_rows(rows, _COLUMNS, title=f"registry {name}", as_json=json_out)


@app.command("resize")
def resize(
    name: str = typer.Argument(...),
    entity_id: int = typer.Argument(..., metavar="ID"),
    caller: str = typer.Option(..., "--caller"),
    longueur: Optional[int] = typer.Option(None, "--longueur"),
    largeur: Optional[int] = typer.Option(None, "--largeur"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Change length and/or width of an entity you own."""
    with open_host(db) as host:
        rec = host.execute(
            name,
            lambda reg: reg.resize(caller, entity_id, longueur=longueur, largeur=largeur),
            op_name="resize",
        )
        print_kv({"seq": rec.seq, "id": entity_id, **rec.fields["state"]}, title=rec.name, as_json=json_out)


@app.command("move")
def move(
    name: str = typer.Argument(...),
    entity_id: int = typer.Argument(..., metavar="ID"),
    caller: str = typer.Option(..., "--caller"),
    dx: int = typer.Option(0, "--dx"),
    dy: int = typer.Option(0, "--dy"),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    with open_host(db) as host:
        rec = host.execute(name, lambda reg: reg.move(caller, entity_id, dx, dy), op_name="move")
        print_kv({"seq": rec.seq, "id": entity_id, **rec.fields["state"]}, title=rec.name, as_json=json_out)


@app.command("total-area")
def total_area(
    name: str = typer.Argument(...),
    db: Optional[str] = DB_OPTION,
    json_out: bool = JSON_OPTION,
) -> None:
    """Sum of the surfaces of every entity."""
    with open_host(db) as host:
        reg = host.registry(name)
        print_kv({"count": reg.count(), "total_area": reg.total_area()}, as_json=json_out)


__all__ = ["app"]
