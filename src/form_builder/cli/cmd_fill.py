"""Fill command - render a schema headlessly, apply values and submit."""

import json
from pathlib import Path
from typing import Any, Dict, List

import typer

from form_builder.cli._app import app
from form_builder.cli._common import build_scheduler, init_command, resolve_schema
from form_builder.cli._console import console, output_json, output_table, print_err, print_ok
from form_builder.runtime.session import FieldNotEditableError, FormSession, UnknownFieldError


def parse_assignments(assignments: List[str]) -> Dict[str, Any]:
    """Parse repeated ``id=value`` options.

    Values stay strings, as a form widget would deliver them. Repeating an
    id collects its values into a list (checkbox selections).

    Raises:
        ValueError: If an assignment has no '=' or an empty id
    """
    changes: Dict[str, Any] = {}
    for item in assignments:
        field_id, sep, value = item.partition("=")
        field_id = field_id.strip()
        if not sep or not field_id:
            raise ValueError(f"Expected id=value, got '{item}'")
        if field_id in changes:
            previous = changes[field_id]
            changes[field_id] = (previous if isinstance(previous, list) else [previous]) + [value]
        else:
            changes[field_id] = value
    return changes


def _load_values_file(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object of field id -> value")
    return data


@app.command("fill", help="Fill a schema (stored id or file) with values and validate it.")
def fill_cmd(
    ctx: typer.Context,
    ref: str = typer.Argument(..., help="Schema id or path to a schema file"),
    assignments: List[str] = typer.Option(
        None, "--set", "-s", help="Field value as id=value (repeatable)",
    ),
    values_file: Path = typer.Option(
        None, "--values", help="JSON object of field id -> value, applied before --set",
    ),
    submit: bool = typer.Option(True, "--submit/--no-submit", help="Validate after applying values"),
):
    """Exit code 1 when submission fails validation or input is invalid."""
    settings = init_command(ctx)
    schema = resolve_schema(ref, settings)
    session = FormSession(schema, scheduler=build_scheduler(settings))

    try:
        changes: Dict[str, Any] = _load_values_file(values_file) if values_file else {}
        changes.update(parse_assignments(assignments or []))
    except (OSError, ValueError) as e:
        print_err(str(e))
        raise typer.Exit(1)

    try:
        if changes:
            session.update(changes)
    except (UnknownFieldError, FieldNotEditableError) as e:
        print_err(str(e))
        raise typer.Exit(1)

    result = session.submit() if submit else None
    errors = result.errors if result else {}

    if ctx.obj["json"]:
        payload: Dict[str, Any] = {"schema_id": schema.id, "values": session.values}
        if result is not None:
            payload["ok"] = result.ok
            payload["errors"] = errors
        output_json(payload)
    else:
        rows = []
        for field in schema.sorted_fields():
            rows.append({
                "id": field.id,
                "label": field.label,
                "value": session.get_value(field.id),
                "derived": "yes" if field.is_derived else "",
                "error": errors.get(field.id, ""),
            })
        output_table(rows, ctx=ctx, title=schema.name, empty="Form has no fields.")
        if result is None:
            console.print("[dim]Not submitted[/dim]")
        elif result.ok:
            if not ctx.obj["quiet"]:
                print_ok("Submission passed validation")
        else:
            print_err(f"Submission failed validation on {len(errors)} field(s)")

    if result is not None and not result.ok:
        raise typer.Exit(1)
