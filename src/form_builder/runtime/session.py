"""
Rendering session - one live instance of a form schema.

Owns the transient value map: seeds it from defaults, applies user edits
through the Derivation Scheduler, and validates on submission. The value
map lives only as long as the session.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from form_builder.runtime.scheduler import DerivationScheduler
from form_builder.runtime.validators import validate_form
from form_builder.schemas.form_schema import FieldType, FormData, FormField, FormSchema

if TYPE_CHECKING:
    from form_builder.storage.preview_slot import PreviewSlot
    from form_builder.storage.protocol import SchemaStore

logger = logging.getLogger(__name__)


class UnknownFieldError(KeyError):
    """Raised when an edit targets a field id the schema does not have."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(field_id)

    def __str__(self) -> str:
        return f"Unknown field id: '{self.field_id}'"


class FieldNotEditableError(ValueError):
    """Raised when an edit targets a derived field."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field '{field_id}' is derived and cannot be edited")


@dataclass
class SubmissionResult:
    """Outcome of submitting a form session."""

    errors: Dict[str, str] = field(default_factory=dict)
    values: FormData = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def coerce_input(form_field: FormField, value: Any) -> Any:
    """
    Convert raw widget input to the field's value type.

    Number fields turn numeric strings into int/float and blank strings into
    None; anything unparseable is kept as typed. Checkbox fields store a
    list of selected options. Other types pass through.
    """
    if form_field.type == FieldType.NUMBER and isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return value

    if form_field.type == FieldType.CHECKBOX:
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple, set)):
            return [str(item) for item in value]

    return value


class FormSession:
    """
    Live form instance: value map, derived recomputation and submission.

    Args:
        schema: The form schema to render
        scheduler: Derivation scheduler (defaults to single-pass)
    """

    def __init__(self, schema: FormSchema, scheduler: Optional[DerivationScheduler] = None):
        self.schema = schema
        self.scheduler = scheduler or DerivationScheduler()
        self._values: FormData = self.scheduler.initial_values(schema)
        self._errors: Dict[str, str] = {}
        self.submitted = False

    @classmethod
    def from_store(
        cls,
        store: "SchemaStore",
        schema_id: Optional[str] = None,
        preview: Optional["PreviewSlot"] = None,
        scheduler: Optional[DerivationScheduler] = None,
    ) -> Optional["FormSession"]:
        """
        Open a session on a saved schema, or on the preview slot.

        Args:
            store: Schema store to read saved schemas from
            schema_id: Saved schema id; when None the preview slot is used
            preview: Preview slot holding the in-progress schema
            scheduler: Optional scheduler to use

        Returns:
            FormSession, or None if there is no form to render
        """
        if schema_id is not None:
            schema = store.get_by_id(schema_id)
        elif preview is not None:
            schema = preview.get()
        else:
            schema = None

        if schema is None:
            logger.info(f"No form to render (schema_id={schema_id!r})")
            return None
        return cls(schema, scheduler=scheduler)

    @property
    def values(self) -> FormData:
        """Copy of the current value map."""
        return dict(self._values)

    @property
    def errors(self) -> Dict[str, str]:
        """Copy of the errors from the last submission (minus edited fields)."""
        return dict(self._errors)

    def get_value(self, field_id: str) -> Any:
        return self._values.get(field_id)

    def _editable_field(self, field_id: str) -> FormField:
        form_field = self.schema.get_field(field_id)
        if form_field is None:
            raise UnknownFieldError(field_id)
        if form_field.is_derived:
            raise FieldNotEditableError(field_id)
        return form_field

    def set_value(self, field_id: str, value: Any) -> FormData:
        """
        Apply one user edit and recompute derived fields.

        Clears the previous submission error for the edited field.

        Raises:
            UnknownFieldError: If the schema has no such field
            FieldNotEditableError: If the field is derived

        Returns:
            The new value map
        """
        return self.update({field_id: value})

    def update(self, changes: Mapping[str, Any]) -> FormData:
        """Apply several edits at once with a single recomputation pass."""
        resolved = [(self._editable_field(fid), value) for fid, value in changes.items()]

        updated = dict(self._values)
        for form_field, value in resolved:
            updated[form_field.id] = coerce_input(form_field, value)
            self._errors.pop(form_field.id, None)

        self._values = self.scheduler.recompute(self.schema, updated)
        return self.values

    def submit(self) -> SubmissionResult:
        """Validate every non-derived field against its rules."""
        self._errors = validate_form(self.schema, self._values)
        self.submitted = True
        if self._errors:
            logger.info(f"Submission of '{self.schema.id}' failed validation on {len(self._errors)} field(s)")
        else:
            logger.info(f"Submission of '{self.schema.id}' passed validation")
        return SubmissionResult(errors=dict(self._errors), values=self.values)

    def reset(self) -> FormData:
        """Discard edits and errors; reseed from defaults."""
        self._values = self.scheduler.initial_values(self.schema)
        self._errors = {}
        self.submitted = False
        return self.values
