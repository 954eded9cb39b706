"""Rich console singleton and output helpers."""

from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

# Status and tables go to stderr so piped JSON stays clean
console = Console(stderr=True)

# Data output to stdout (pipeable to jq); resolved at write time
stdout_console = Console()

SEVERITY_STYLES = {"ERROR": "red", "WARNING": "yellow"}


def print_ok(msg: str) -> None:
    console.print(f"[green]✓[/green] {msg}")


def print_err(msg: str) -> None:
    console.print(f"[red]✗[/red] {msg}")


def print_warn(msg: str) -> None:
    console.print(f"[yellow]![/yellow] {msg}")


def output_json(data: Any) -> None:
    stdout_console.print_json(data=data)


def output_table(
    rows: List[Dict[str, Any]],
    *,
    ctx: typer.Context,
    title: str = "",
    columns: Optional[List[str]] = None,
    empty: str = "No data",
) -> None:
    """Print rows as a JSON array (--json) or a Rich table."""
    if ctx.obj.get("json"):
        output_json(rows)
        return

    if not rows:
        console.print(f"[dim]{empty}[/dim]")
        return

    cols = columns or list(rows[0].keys())
    table = Table(title=title or None, show_lines=False)
    for col in cols:
        table.add_column(col)
    for row in rows:
        table.add_row(*[_cell(row.get(col)) for col in cols])
    console.print(table)


def output_issues(issues: List[Dict[str, Any]], *, title: str) -> None:
    """Render schema issues with severity colouring."""
    table = Table(title=title)
    table.add_column("severity")
    table.add_column("code")
    table.add_column("field")
    table.add_column("message")
    for issue in issues:
        style = SEVERITY_STYLES.get(issue["severity"], "")
        table.add_row(
            f"[{style}]{issue['severity']}[/{style}]" if style else issue["severity"],
            issue["code"],
            issue.get("field_id") or "",
            issue["message"],
        )
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)
