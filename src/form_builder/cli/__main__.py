"""Allow ``python -m form_builder.cli``."""

from form_builder.cli import app

app()
