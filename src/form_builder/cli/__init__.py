"""CLI package - Typer-based command-line interface.

Usage:
    form-builder --help
    python -m form_builder.cli schema --help
"""

from form_builder.cli._app import app

# Register command modules (side-effect imports)
import form_builder.cli.cmd_schema  # noqa: F401
import form_builder.cli.cmd_check  # noqa: F401
import form_builder.cli.cmd_fill  # noqa: F401

__all__ = ["app"]
