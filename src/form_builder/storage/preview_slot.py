"""Ephemeral single-slot store for the in-progress (unsaved) form.

The builder mirrors its field list here on every change; a rendering
session reads it when no saved schema id is requested. Last write wins
and the slot lives only as long as the process that owns it.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from form_builder.schemas.form_schema import FormField, FormSchema

logger = logging.getLogger(__name__)

PREVIEW_SCHEMA_ID = "preview"
PREVIEW_SCHEMA_NAME = "Preview Form"


class PreviewSlot:
    """Holds at most one schema for preview rendering."""

    def __init__(self) -> None:
        self._schema: Optional[FormSchema] = None

    def put(self, fields: Iterable[FormField]) -> FormSchema:
        """Store an in-progress field list as the preview schema."""
        ordered = sorted(fields, key=lambda f: f.order)
        schema = FormSchema(
            id=PREVIEW_SCHEMA_ID,
            name=PREVIEW_SCHEMA_NAME,
            fields=[f.model_copy(deep=True) for f in ordered],
            created_at=datetime.now(timezone.utc),
        )
        self._schema = schema
        logger.debug(f"Preview slot updated ({len(schema.fields)} field(s))")
        return schema

    def put_schema(self, schema: FormSchema) -> None:
        """Store a complete schema (e.g. one that was just saved)."""
        self._schema = schema.model_copy(deep=True)

    def get(self) -> Optional[FormSchema]:
        if self._schema is None:
            return None
        return self._schema.model_copy(deep=True)

    def clear(self) -> None:
        self._schema = None
