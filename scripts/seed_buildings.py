"""
Seed script for the example Building table.

Creates the table from its mapping (optionally dropping it first) and adds a
batch of generated buildings through the relational store in one
transaction.
"""

from __future__ import annotations

import sys
import time

import typer

from relstore.config import get_settings
from relstore.domain.models import BUILDING_MAPPING, Building
from relstore.errors import StoreError
from relstore.infrastructure.gateway import PgGateway
from relstore.store.relational import RelationalStore
from relstore.utils.logging import configure_logging

app = typer.Typer(help="Create the Building table and load generated rows through the store.")


def _build_batch(prefix: str, count: int, start: int = 1) -> list[Building]:
    """Buildings keyed ``{prefix}-{n}`` for n in [start, start + count)."""
    return [
        Building(bin=f"{prefix}-{i}", identifier=f"Building {i}", property_id=i)
        for i in range(start, start + count)
    ]


@app.command()
def main(
    rows: int = typer.Option(10, "--rows", "-r", min=1, help="Number of buildings to add."),
    prefix: str = typer.Option("OR13", "--prefix", "-p", help="BIN prefix."),
    start: int = typer.Option(1, "--start", help="First BIN suffix."),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    recreate: bool = typer.Option(
        False, "--recreate", help="Drop and recreate the Building table first."
    ),
) -> None:
    """
    Create the Building table if needed and add generated buildings.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    batch = _build_batch(prefix, rows, start=start)

    started = time.perf_counter()
    try:
        with PgGateway.connect(dsn=dsn, settings=settings) as gateway:
            if recreate:
                gateway.try_drop_table(BUILDING_MAPPING.table, schema=BUILDING_MAPPING.schema)
            if not gateway.table_exists(BUILDING_MAPPING.table, schema=BUILDING_MAPPING.schema):
                gateway.transact_ddl(BUILDING_MAPPING.create_table_sql())
                typer.echo(f"Created table {BUILDING_MAPPING.qualified_name}.")

            store = RelationalStore(gateway, BUILDING_MAPPING)
            store.add_many(batch)
            total = len(store.try_load_data())
    except StoreError as exc:
        typer.echo(f"Seeding failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    duration = time.perf_counter() - started
    typer.echo(
        f"Added {len(batch):,} buildings in {duration:.2f}s; "
        f"{BUILDING_MAPPING.qualified_name} now holds {total:,} rows."
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
