"""
Field list builder - the in-progress form being assembled.

Holds the editable field list plus the current selection and applies
editor actions to it. Fields are replaced, never mutated in place, and
every replacement goes back through FormField validation so derivation
metadata stays normalized.

When a PreviewSlot is injected, the field list is mirrored into it after
every change so a rendering session can show the unsaved form.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Sequence

from form_builder.runtime.session import UnknownFieldError
from form_builder.schemas.form_schema import (
    FieldType,
    FormField,
    FormSchema,
    RuleType,
    ValidationRule,
)
from form_builder.storage.preview_slot import PreviewSlot
from form_builder.storage.protocol import SchemaStore

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS = ["Option 1"]
DEFAULT_LENGTH_BOUND = 1


def default_label(field_type: FieldType) -> str:
    return f"New {field_type.value} field"


def default_rule_message(rule_type: RuleType) -> str:
    return f"Please enter a valid {rule_type.value}"


def reorder_fields(fields: Sequence[FormField], source_index: int, destination_index: int) -> List[FormField]:
    """
    Move one field to a new position and renumber ``order`` to 0..n-1.

    Positions index the list sorted by ``order``. Elements that are not
    moved keep their relative order. Moving a field onto its own position
    returns the fields unchanged.

    Raises:
        IndexError: If either index is out of range
    """
    ordered = sorted(fields, key=lambda f: f.order)
    size = len(ordered)
    for index in (source_index, destination_index):
        if not 0 <= index < size:
            raise IndexError(f"Field position {index} out of range for {size} field(s)")

    if source_index == destination_index:
        return [f.model_copy() for f in ordered]

    moved = ordered.pop(source_index)
    ordered.insert(destination_index, moved)
    return [f.model_copy(update={"order": position}) for position, f in enumerate(ordered)]


class FieldListBuilder:
    """
    Editable field list for one form under construction.

    Args:
        fields: Initial fields (e.g. when editing a loaded schema)
        preview: Optional preview slot to mirror changes into
        id_factory: Generates field/schema ids (uuid4 strings by default)
    """

    def __init__(
        self,
        fields: Optional[Iterable[FormField]] = None,
        preview: Optional[PreviewSlot] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self._fields: List[FormField] = [f.model_copy(deep=True) for f in (fields or [])]
        self.preview = preview
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.selected_field_id: Optional[str] = None

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    @property
    def fields(self) -> List[FormField]:
        """Copies of the fields, sorted by order."""
        return [f.model_copy(deep=True) for f in sorted(self._fields, key=lambda f: f.order)]

    def get_field(self, field_id: str) -> FormField:
        for field in self._fields:
            if field.id == field_id:
                return field.model_copy(deep=True)
        raise UnknownFieldError(field_id)

    @property
    def selected_field(self) -> Optional[FormField]:
        if self.selected_field_id is None:
            return None
        return self.get_field(self.selected_field_id)

    def available_parent_fields(self, field_id: str) -> List[FormField]:
        """Fields a derived field may read: every other non-derived field."""
        return [f for f in self.fields if f.id != field_id and not f.is_derived]

    # -------------------------------------------------------------------------
    # Field actions
    # -------------------------------------------------------------------------

    def add_field(self, field_type: FieldType | str, **overrides: Any) -> FormField:
        """
        Append a new field and select it.

        The new field's order is the current field count. Keyword overrides
        (label, required, default_value, options, validation_rules, ...) are
        applied on top of the palette defaults.
        """
        field_type = FieldType(field_type)
        data = {
            "id": self.id_factory(),
            "type": field_type,
            "label": default_label(field_type),
            "required": False,
            "default_value": "",
            "validation_rules": [],
            "options": list(DEFAULT_OPTIONS) if field_type.has_options else None,
            "order": len(self._fields),
        }
        data.update(overrides)
        field = FormField.model_validate(data)

        self._fields.append(field)
        self.selected_field_id = field.id
        self._changed()
        return field.model_copy(deep=True)

    def update_field(self, field: FormField) -> FormField:
        """Replace a field by id with an edited copy and clear the selection."""
        index = self._index_of(field.id)
        replacement = FormField.model_validate(field.model_dump())
        self._fields[index] = replacement
        self.selected_field_id = None
        self._changed()
        return replacement.model_copy(deep=True)

    def delete_field(self, field_id: str) -> None:
        """
        Remove a field. Clears the selection if it was selected.

        Fields deriving from the deleted one are left as they are; the
        dangling parent id evaluates as 0.
        """
        index = self._index_of(field_id)
        del self._fields[index]
        if self.selected_field_id == field_id:
            self.selected_field_id = None
        self._changed()

    def select(self, field_id: Optional[str]) -> None:
        if field_id is not None:
            self._index_of(field_id)
        self.selected_field_id = field_id

    def move_field(self, source_index: int, destination_index: int) -> List[FormField]:
        """Reorder by position; see reorder_fields."""
        self._fields = reorder_fields(self._fields, source_index, destination_index)
        self._changed()
        return self.fields

    # -------------------------------------------------------------------------
    # Derivation
    # -------------------------------------------------------------------------

    def set_derived(self, field_id: str, derived: bool) -> FormField:
        """
        Toggle derivation on or off.

        On: validation rules and the required flag are cleared, parents start
        empty and the formula starts as "". Off: derivation metadata is removed.
        """
        if derived:
            changes = {
                "is_derived": True,
                "validation_rules": [],
                "required": False,
                "parent_fields": [],
                "derived_formula": "",
            }
        else:
            changes = {"is_derived": False, "parent_fields": None, "derived_formula": None}
        return self._replace(field_id, **changes)

    def set_parent_fields(self, field_id: str, parent_ids: Iterable[str]) -> FormField:
        """
        Set a derived field's parents.

        Raises:
            ValueError: If the field is not derived, or a parent is not an
                existing non-derived field other than itself
        """
        field = self.get_field(field_id)
        if not field.is_derived:
            raise ValueError(f"Field '{field_id}' is not derived")

        allowed = {f.id for f in self.available_parent_fields(field_id)}
        parent_ids = list(parent_ids)
        invalid = [pid for pid in parent_ids if pid not in allowed]
        if invalid:
            raise ValueError(f"Not selectable as parents of '{field_id}': {invalid}")
        return self._replace(field_id, parent_fields=parent_ids)

    def set_formula(self, field_id: str, formula: str) -> FormField:
        field = self.get_field(field_id)
        if not field.is_derived:
            raise ValueError(f"Field '{field_id}' is not derived")
        return self._replace(field_id, derived_formula=formula)

    # -------------------------------------------------------------------------
    # Validation rules and options
    # -------------------------------------------------------------------------

    def add_validation_rule(self, field_id: str, rule_type: RuleType | str) -> ValidationRule:
        """Append a rule with the default message (and bound 1 for length rules)."""
        rule_type = RuleType(rule_type)
        rule = ValidationRule(
            type=rule_type,
            message=default_rule_message(rule_type),
            value=DEFAULT_LENGTH_BOUND if rule_type.takes_bound else None,
        )
        field = self.get_field(field_id)
        self._replace(field_id, validation_rules=field.validation_rules + [rule])
        return rule

    def update_validation_rule(self, field_id: str, index: int, **updates: Any) -> ValidationRule:
        field = self.get_field(field_id)
        rules = list(field.validation_rules)
        rules[index] = ValidationRule.model_validate({**rules[index].model_dump(), **updates})
        self._replace(field_id, validation_rules=rules)
        return rules[index]

    def remove_validation_rule(self, field_id: str, index: int) -> None:
        field = self.get_field(field_id)
        rules = list(field.validation_rules)
        del rules[index]
        self._replace(field_id, validation_rules=rules)

    def add_option(self, field_id: str, option: str) -> FormField:
        """Append a trimmed option; blank options are ignored."""
        field = self.get_field(field_id)
        option = option.strip()
        if not option:
            return field
        return self._replace(field_id, options=(field.options or []) + [option])

    def remove_option(self, field_id: str, index: int) -> FormField:
        field = self.get_field(field_id)
        options = list(field.options or [])
        del options[index]
        return self._replace(field_id, options=options)

    # -------------------------------------------------------------------------
    # Schemas
    # -------------------------------------------------------------------------

    def build_schema(self, name: str, schema_id: Optional[str] = None) -> FormSchema:
        """
        Snapshot the field list as a named schema.

        Raises:
            ValueError: If name is blank
        """
        if not name or not name.strip():
            raise ValueError("Schema name must not be blank")
        return FormSchema(
            id=schema_id or self.id_factory(),
            name=name,
            fields=self.fields,
            created_at=datetime.now(timezone.utc),
        )

    def save(self, store: SchemaStore, name: str, schema_id: Optional[str] = None) -> FormSchema:
        """Build a schema, persist it, and put it in the preview slot."""
        schema = self.build_schema(name, schema_id=schema_id)
        store.save(schema)
        if self.preview is not None:
            self.preview.put_schema(schema)
        logger.info(f"Saved form '{name}' as schema '{schema.id}' with {len(schema.fields)} field(s)")
        return schema

    def preview_schema(self) -> FormSchema:
        """The unsaved field list as the preview schema."""
        slot = self.preview or PreviewSlot()
        return slot.put(self._fields)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _index_of(self, field_id: str) -> int:
        for index, field in enumerate(self._fields):
            if field.id == field_id:
                return index
        raise UnknownFieldError(field_id)

    def _replace(self, field_id: str, **changes: Any) -> FormField:
        index = self._index_of(field_id)
        data = self._fields[index].model_dump()
        data.update(changes)
        replacement = FormField.model_validate(data)
        self._fields[index] = replacement
        self._changed()
        return replacement.model_copy(deep=True)

    def _changed(self) -> None:
        if self.preview is not None and self._fields:
            self.preview.put(self._fields)
