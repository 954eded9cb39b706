"""Check command - report configuration issues in a form schema."""

import typer

from form_builder.cli._app import app
from form_builder.cli._common import init_command, resolve_schema
from form_builder.cli._console import output_issues, output_json, print_err, print_ok
from form_builder.runtime.evaluator import FormulaEvaluator
from form_builder.runtime.schema_checks import Severity, check_schema, has_errors


@app.command("check", help="Check a schema (stored id or file) for configuration problems.")
def check_cmd(
    ctx: typer.Context,
    ref: str = typer.Argument(..., help="Schema id or path to a schema file"),
):
    """Exit code 1 when any ERROR-level issue is found."""
    settings = init_command(ctx)
    schema = resolve_schema(ref, settings)

    engine = FormulaEvaluator.from_settings(settings).engine
    issues = check_schema(schema, engine=engine)
    failed = has_errors(issues)

    if ctx.obj["json"]:
        output_json({
            "schema_id": schema.id,
            "ok": not failed,
            "issues": [issue.to_dict() for issue in issues],
        })
    else:
        if issues:
            output_issues([issue.to_dict() for issue in issues], title=f"{schema.name} ({schema.id})")
        errors = sum(1 for issue in issues if issue.severity == Severity.ERROR)
        warnings = len(issues) - errors
        if failed:
            print_err(f"{errors} error(s), {warnings} warning(s)")
        elif not ctx.obj["quiet"]:
            print_ok(f"No errors ({warnings} warning(s))")

    if failed:
        raise typer.Exit(1)
