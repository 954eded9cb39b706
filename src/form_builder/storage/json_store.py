"""JSON file SchemaStore implementation.

The whole schema table lives in one JSON document under a single namespaced
key, e.g. ``{"dynamicForms": [schema, ...]}``. Other top-level keys in the
document are preserved on write.

Reads fail closed: a missing, unreadable or corrupt file gives an empty
table (with a warning) and individual invalid entries are skipped.
Writes are atomic (temp file + replace) and raise SchemaStoreError on failure.
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import ValidationError

from form_builder.schemas.form_schema import FormSchema
from form_builder.storage.protocol import SchemaStoreError

if TYPE_CHECKING:
    from form_builder.config.settings import EngineSettings

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "dynamicForms"


class JsonFileSchemaStore:
    """File-backed schema table with last-writer-wins saves.

    The table is loaded on open() (or lazily on first access) and written
    back after every save/delete.
    """

    def __init__(self, path: Path, storage_key: str = DEFAULT_STORAGE_KEY):
        self.path = Path(path)
        self.storage_key = storage_key
        self._document: Dict[str, Any] = {}
        self._schemas: Optional[List[FormSchema]] = None

    @classmethod
    def from_settings(cls, settings: "EngineSettings") -> "JsonFileSchemaStore":
        return cls(settings.store_path, storage_key=settings.storage_key)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Load the schema table from disk. Idempotent."""
        if self._schemas is not None:
            return
        self._document = self._read_document()
        self._schemas = self._parse_table(self._document.get(self.storage_key))
        logger.debug(f"Opened schema store {self.path} ({len(self._schemas)} schema(s))")

    def close(self) -> None:
        """Drop the in-memory table. Idempotent."""
        self._document = {}
        self._schemas = None

    @property
    def is_open(self) -> bool:
        return self._schemas is not None

    def __enter__(self) -> "JsonFileSchemaStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _table(self) -> List[FormSchema]:
        if self._schemas is None:
            self.open()
        return self._schemas

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def save(self, schema: FormSchema) -> None:
        """Upsert by id: an existing schema with the same id is replaced."""
        table = [s for s in self._table() if s.id != schema.id]
        table.append(schema.model_copy(deep=True))
        self._write(table)
        logger.info(f"Saved schema '{schema.id}' ({schema.name}) to {self.path}")

    def list_schemas(self) -> List[FormSchema]:
        return [s.model_copy(deep=True) for s in self._table()]

    def get_by_id(self, schema_id: str) -> Optional[FormSchema]:
        for schema in self._table():
            if schema.id == schema_id:
                return schema.model_copy(deep=True)
        return None

    def delete(self, schema_id: str) -> bool:
        table = self._table()
        remaining = [s for s in table if s.id != schema_id]
        if len(remaining) == len(table):
            return False
        self._write(remaining)
        logger.info(f"Deleted schema '{schema_id}' from {self.path}")
        return True

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, IOError) as exc:
            logger.warning(f"Failed to load schema store {self.path}, using empty table: {exc}")
            return {}
        if not isinstance(document, dict):
            logger.warning(f"Schema store {self.path} is not a JSON object, using empty table")
            return {}
        return document

    def _parse_table(self, raw: Any) -> List[FormSchema]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"Key '{self.storage_key}' in {self.path} is not a list, using empty table")
            return []

        schemas = []
        for index, entry in enumerate(raw):
            try:
                schemas.append(FormSchema.model_validate(entry))
            except ValidationError as exc:
                logger.warning(f"Skipping invalid schema #{index} in {self.path}: {exc}")
        return schemas

    def _write(self, table: List[FormSchema]) -> None:
        document = dict(self._document)
        document[self.storage_key] = [s.to_json_dict() for s in table]

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.path)
        except (IOError, OSError) as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            raise SchemaStoreError(f"Failed to write schema store {self.path}: {exc}") from exc

        self._document = document
        self._schemas = table
