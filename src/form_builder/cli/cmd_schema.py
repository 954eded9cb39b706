"""Schema commands - list, show, delete, import and export saved forms."""

from pathlib import Path

import typer

from form_builder.cli._app import app
from form_builder.cli._common import init_command, open_store
from form_builder.cli._console import (
    console,
    output_issues,
    output_json,
    output_table,
    print_err,
    print_ok,
    print_warn,
)
from form_builder.runtime.schema_checks import check_schema, has_errors
from form_builder.runtime.schema_loader import SchemaLoadError, dump_schema_file, load_schema_file
from form_builder.storage.protocol import SchemaStoreError

schema_app = typer.Typer(
    no_args_is_help=True,
    help="Manage saved form schemas.",
)
app.add_typer(schema_app, name="schema")


@schema_app.command("list", help="List saved schemas, newest first.")
def schema_list(ctx: typer.Context):
    settings = init_command(ctx)
    with open_store(settings) as store:
        schemas = store.list_schemas()

    schemas.sort(key=lambda s: s.created_at, reverse=True)
    rows = [
        {
            "id": s.id,
            "name": s.name,
            "fields": len(s.fields),
            "derived": len(s.derived_fields()),
            "created_at": s.created_at.isoformat(),
        }
        for s in schemas
    ]
    output_table(rows, ctx=ctx, title=f"Saved forms ({len(rows)})", empty="No saved forms.")


@schema_app.command("show", help="Show one saved schema.")
def schema_show(
    ctx: typer.Context,
    schema_id: str = typer.Argument(..., help="Schema id"),
):
    settings = init_command(ctx)
    with open_store(settings) as store:
        schema = store.get_by_id(schema_id)

    if schema is None:
        print_err(f"No schema with id '{schema_id}'")
        raise typer.Exit(1)

    if ctx.obj["json"]:
        output_json(schema.to_json_dict())
        return

    console.print(f"[bold]{schema.name}[/bold] ({schema.id}) created {schema.created_at.isoformat()}")
    rows = []
    for field in schema.sorted_fields():
        rows.append({
            "order": field.order,
            "id": field.id,
            "type": field.type.value,
            "label": field.label,
            "rules": [r.type.value for r in field.validation_rules],
            "formula": field.derived_formula if field.is_derived else "",
            "parents": field.parent_fields or [],
        })
    output_table(rows, ctx=ctx, empty="Form has no fields.")


@schema_app.command("delete", help="Delete a saved schema.")
def schema_delete(
    ctx: typer.Context,
    schema_id: str = typer.Argument(..., help="Schema id"),
):
    settings = init_command(ctx)
    with open_store(settings) as store:
        try:
            deleted = store.delete(schema_id)
        except SchemaStoreError as e:
            print_err(str(e))
            raise typer.Exit(1)

    if not deleted:
        print_err(f"No schema with id '{schema_id}'")
        raise typer.Exit(1)
    if ctx.obj["json"]:
        output_json({"deleted": schema_id})
    elif not ctx.obj["quiet"]:
        print_ok(f"Deleted schema '{schema_id}'")


@schema_app.command("import", help="Import a schema file (JSON or YAML) into the store.")
def schema_import(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Schema file to import"),
    force: bool = typer.Option(False, "--force", help="Import even if the schema has errors"),
):
    settings = init_command(ctx)
    try:
        schema = load_schema_file(file)
    except SchemaLoadError as e:
        print_err(str(e))
        raise typer.Exit(1)

    issues = check_schema(schema)
    if has_errors(issues) and not force:
        if not ctx.obj["json"]:
            output_issues([i.to_dict() for i in issues], title=f"Issues in {file}")
        print_err(f"Schema '{schema.id}' has configuration errors; use --force to import anyway")
        raise typer.Exit(1)
    if issues and not ctx.obj["quiet"] and not ctx.obj["json"]:
        print_warn(f"Schema '{schema.id}' has {len(issues)} issue(s); run 'check' for details")

    with open_store(settings) as store:
        try:
            store.save(schema)
        except SchemaStoreError as e:
            print_err(str(e))
            raise typer.Exit(1)

    if ctx.obj["json"]:
        output_json({"imported": schema.id, "name": schema.name, "issues": len(issues)})
    elif not ctx.obj["quiet"]:
        print_ok(f"Imported '{schema.name}' as '{schema.id}'")


@schema_app.command("export", help="Export a saved schema to a JSON or YAML file.")
def schema_export(
    ctx: typer.Context,
    schema_id: str = typer.Argument(..., help="Schema id"),
    output: Path = typer.Argument(..., help="Output file (.json, .yaml or .yml)"),
):
    settings = init_command(ctx)
    with open_store(settings) as store:
        schema = store.get_by_id(schema_id)

    if schema is None:
        print_err(f"No schema with id '{schema_id}'")
        raise typer.Exit(1)

    try:
        path = dump_schema_file(schema, output)
    except OSError as e:
        print_err(f"Export failed: {e}")
        raise typer.Exit(1)

    if ctx.obj["json"]:
        output_json({"exported": schema_id, "path": str(path)})
    elif not ctx.obj["quiet"]:
        print_ok(f"Exported '{schema_id}' to {path}")
