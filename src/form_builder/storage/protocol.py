"""Storage protocol defining the abstract interface for schema persistence.

The primary implementation is JsonFileSchemaStore; InMemorySchemaStore
serves tests and ephemeral sessions. Consumers receive a store object
(injected) rather than reaching for module-level state.
"""

from typing import List, Optional, Protocol, runtime_checkable

from form_builder.schemas.form_schema import FormSchema


class SchemaStoreError(Exception):
    """Raised when a store cannot persist a change."""
    pass


@runtime_checkable
class SchemaStore(Protocol):
    """Key-by-id table of form schemas with last-writer-wins saves.

    Reads fail closed: an unavailable or corrupt backing store yields
    empty results instead of raising.
    """

    def open(self) -> None:
        """Load the backing table. Idempotent."""
        ...

    def close(self) -> None:
        """Release the backing table. Idempotent."""
        ...

    def save(self, schema: FormSchema) -> None:
        """Upsert a schema by id (replace if present, else append).

        Raises:
            SchemaStoreError: If the change cannot be persisted.
        """
        ...

    def list_schemas(self) -> List[FormSchema]:
        """Return all stored schemas in storage order."""
        ...

    def get_by_id(self, schema_id: str) -> Optional[FormSchema]:
        """Return the schema with this id, or None."""
        ...

    def delete(self, schema_id: str) -> bool:
        """Remove a schema by id.

        Returns:
            True if a schema was removed, False if the id was unknown.
        """
        ...
