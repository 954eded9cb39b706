"""Shared helpers for CLI commands."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from form_builder.config.settings import EngineSettings, SettingsError
from form_builder.runtime.evaluator import FormulaEvaluator
from form_builder.runtime.scheduler import DerivationScheduler
from form_builder.runtime.schema_loader import SchemaLoadError, load_schema_file
from form_builder.schemas.form_schema import FormSchema
from form_builder.startup import ensure_initialized as _ensure_initialized
from form_builder.storage.json_store import JsonFileSchemaStore

logger = logging.getLogger(__name__)


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def init_command(ctx: typer.Context) -> EngineSettings:
    """Configure logging and load settings for a command.

    Raises:
        typer.Exit: With code 2 if settings are invalid.
    """
    from form_builder.cli._console import print_err

    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    try:
        return _ensure_initialized(ctx.obj.get("config")).settings
    except SettingsError as e:
        print_err(str(e))
        raise typer.Exit(2)


def open_store(settings: EngineSettings) -> JsonFileSchemaStore:
    store = JsonFileSchemaStore.from_settings(settings)
    store.open()
    return store


def build_scheduler(settings: EngineSettings) -> DerivationScheduler:
    return DerivationScheduler(
        FormulaEvaluator.from_settings(settings),
        strategy=settings.derivation_strategy,
    )


def resolve_schema(ref: str, settings: EngineSettings) -> FormSchema:
    """Resolve a schema reference: an existing file path, else a stored id.

    Raises:
        typer.Exit: With code 1 if the file is invalid or the id is unknown.
    """
    from form_builder.cli._console import print_err

    path = Path(ref)
    if path.is_file():
        try:
            return load_schema_file(path)
        except SchemaLoadError as e:
            print_err(str(e))
            raise typer.Exit(1)

    store = open_store(settings)
    try:
        schema = store.get_by_id(ref)
    finally:
        store.close()
    if schema is None:
        print_err(f"No schema with id '{ref}' in {settings.store_path}")
        raise typer.Exit(1)
    return schema
