from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table


def _format_cell(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    return escape(str(value))


def build_rows_table(rows: List[Dict[str, Any]], title: str) -> Table:
    """
    Build a rich table with one column per key of the first row.

    Column order follows the first row; later rows missing a key render NULL.
    """
    table = Table(title=escape(title), box=box.ROUNDED, caption=f"{len(rows):,} row(s)")
    if not rows:
        return table

    columns = list(rows[0].keys())
    for index, name in enumerate(columns):
        # Highlight the leading column, usually the key
        table.add_column(name, style="cyan" if index == 0 else None, no_wrap=index == 0)

    for row in rows:
        table.add_row(*(_format_cell(row.get(name)) for name in columns))
    return table


def print_rows(rows: List[Dict[str, Any]], title: str, console: Optional[Console] = None) -> None:
    """
    Render table rows as a rich table.
    """
    console = console or Console()

    if not rows:
        console.print(f"[yellow]{escape(title)}: no rows.[/yellow]")
        return

    console.print(build_rows_table(rows, title))
