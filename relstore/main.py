from __future__ import annotations

import sys
from pathlib import Path

import typer
from psycopg import sql

from relstore.config import get_settings
from relstore.errors import StoreError
from relstore.infrastructure.gateway import PgGateway
from relstore.reporter import print_rows
from relstore.utils.logging import configure_logging

app = typer.Typer(help="relstore CLI: inspect and manage tables behind relational stores.")


def _open_gateway() -> PgGateway:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return PgGateway.connect(settings=settings)


def _fail(exc: StoreError) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) "
        f"statement_timeout_ms={settings.db_statement_timeout_ms}"
    )


@app.command()
def exists(
    table: str = typer.Argument(..., help="Table name (case-sensitive)."),
    schema: str = typer.Option("public", "--schema", help="Schema holding the table."),
) -> None:
    """
    Report whether a table exists. Exit code 1 when it does not.
    """
    try:
        with _open_gateway() as gateway:
            found = gateway.table_exists(table, schema=schema)
    except StoreError as exc:
        _fail(exc)
    typer.echo(f"{schema}.{table}: {'exists' if found else 'missing'}")
    if not found:
        raise typer.Exit(code=1)


@app.command()
def drop(
    table: str = typer.Argument(..., help="Table name (case-sensitive)."),
    schema: str = typer.Option("public", "--schema", help="Schema holding the table."),
) -> None:
    """
    Drop a table if it exists.
    """
    try:
        with _open_gateway() as gateway:
            gateway.try_drop_table(table, schema=schema)
    except StoreError as exc:
        _fail(exc)
    typer.echo(f"Dropped {schema}.{table} (if it existed).")


@app.command("apply-ddl")
def apply_ddl(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File with DDL statements."),
) -> None:
    """
    Run the DDL in a file as one transaction.
    """
    ddl = path.read_text(encoding="utf-8")
    try:
        with _open_gateway() as gateway:
            gateway.transact_ddl(ddl)
    except StoreError as exc:
        _fail(exc)
    typer.echo(f"Applied DDL from {path}.")


@app.command()
def dump(
    table: str = typer.Argument(..., help="Table name (case-sensitive)."),
    schema: str = typer.Option("public", "--schema", help="Schema holding the table."),
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Maximum rows to show."),
) -> None:
    """
    Print the rows of a table.
    """
    query = sql.SQL("SELECT * FROM {} LIMIT %s").format(sql.Identifier(schema, table))
    try:
        with _open_gateway() as gateway:
            rows = gateway.fetch_all(query, (limit,))
    except StoreError as exc:
        _fail(exc)
    print_rows(rows, title=f"{schema}.{table}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
