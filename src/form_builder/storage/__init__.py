"""Schema persistence behind the SchemaStore protocol."""

from form_builder.storage.json_store import JsonFileSchemaStore
from form_builder.storage.memory import InMemorySchemaStore
from form_builder.storage.preview_slot import PREVIEW_SCHEMA_ID, PreviewSlot
from form_builder.storage.protocol import SchemaStore, SchemaStoreError

__all__ = [
    "InMemorySchemaStore",
    "JsonFileSchemaStore",
    "PREVIEW_SCHEMA_ID",
    "PreviewSlot",
    "SchemaStore",
    "SchemaStoreError",
]
