"""In-memory SchemaStore implementation."""

from typing import List, Optional

from form_builder.schemas.form_schema import FormSchema


class InMemorySchemaStore:
    """Schema table held in process memory; lost on close()."""

    def __init__(self) -> None:
        self._schemas: List[FormSchema] = []
        self._is_open = False

    def open(self) -> None:
        self._is_open = True

    def close(self) -> None:
        self._schemas = []
        self._is_open = False

    def __enter__(self) -> "InMemorySchemaStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def save(self, schema: FormSchema) -> None:
        stored = schema.model_copy(deep=True)
        self._schemas = [s for s in self._schemas if s.id != schema.id] + [stored]

    def list_schemas(self) -> List[FormSchema]:
        return [s.model_copy(deep=True) for s in self._schemas]

    def get_by_id(self, schema_id: str) -> Optional[FormSchema]:
        for schema in self._schemas:
            if schema.id == schema_id:
                return schema.model_copy(deep=True)
        return None

    def delete(self, schema_id: str) -> bool:
        before = len(self._schemas)
        self._schemas = [s for s in self._schemas if s.id != schema_id]
        return len(self._schemas) < before
