"""Pydantic schemas for form fields, validation rules and saved form schemas.

Persisted shape uses camelCase keys (defaultValue, validationRules, isDerived,
parentFields, derivedFormula, createdAt). Models accept camelCase or
snake_case on input and serialize with camelCase via ``by_alias=True``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# Value written into a derived field when its formula cannot be evaluated
ERROR_MARKER = "Error"

# Runtime values keyed by field id (one rendering session)
FormData = Dict[str, Any]


class FieldType(str, Enum):
    """Palette of field types a form can contain."""
    TEXT = "text"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"

    @property
    def has_options(self) -> bool:
        """Whether ``options`` is meaningful for this type."""
        return self in CHOICE_FIELD_TYPES


CHOICE_FIELD_TYPES = frozenset({FieldType.SELECT, FieldType.RADIO, FieldType.CHECKBOX})


class RuleType(str, Enum):
    """Named validation constraints."""
    REQUIRED = "required"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    EMAIL = "email"
    PASSWORD = "password"

    @property
    def takes_bound(self) -> bool:
        """Whether the rule carries an integer length bound."""
        return self in (RuleType.MIN_LENGTH, RuleType.MAX_LENGTH)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ValidationRule(_CamelModel):
    """A single validation constraint with its user-facing failure message."""

    type: RuleType = Field(..., description="Rule kind")
    value: Optional[int] = Field(
        default=None, description="Length bound (minLength/maxLength only)"
    )
    message: str = Field(default="", description="Message shown when the rule fails")

    @model_validator(mode="after")
    def check_bound(self):
        """Length rules need a non-negative bound; other rules carry none."""
        if self.type.takes_bound:
            if self.value is None:
                raise ValueError(f"{self.type.value} rule requires an integer value")
            if self.value < 0:
                raise ValueError(f"{self.type.value} bound must be >= 0, got {self.value}")
        else:
            self.value = None
        return self


class FormField(_CamelModel):
    """
    One question/input unit within a form.

    Derivation metadata (parent_fields, derived_formula) is present iff
    is_derived is true; the validator normalizes it either way.
    """

    id: str = Field(..., min_length=1, description="Stable id, unique within a schema")
    type: FieldType
    label: str = ""
    required: bool = False
    default_value: Any = ""
    validation_rules: List[ValidationRule] = Field(default_factory=list)
    options: Optional[List[str]] = Field(
        default=None, description="Choices for select/radio/checkbox"
    )
    order: int = 0
    is_derived: bool = False
    parent_fields: Optional[List[str]] = None
    derived_formula: Optional[str] = None

    @field_validator("parent_fields")
    @classmethod
    def dedupe_parents(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Parents form a set; keep first occurrence order."""
        if v is None:
            return v
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def normalize_derivation(self):
        """Keep derivation metadata consistent with is_derived."""
        if self.is_derived:
            if self.parent_fields is None:
                self.parent_fields = []
            if self.derived_formula is None:
                self.derived_formula = ""
        else:
            self.parent_fields = None
            self.derived_formula = None
        return self

    @property
    def has_options(self) -> bool:
        return self.type.has_options


class FormSchema(_CamelModel):
    """A named, ordered collection of fields defining one form template."""

    id: str = Field(..., min_length=1)
    name: str
    fields: List[FormField] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Timestamps without an offset are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def sorted_fields(self) -> List[FormField]:
        """Fields by ``order``; ties keep their list position."""
        return sorted(self.fields, key=lambda f: f.order)

    def get_field(self, field_id: str) -> Optional[FormField]:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]

    def derived_fields(self) -> List[FormField]:
        """Derived fields in evaluation order."""
        return [f for f in self.sorted_fields() if f.is_derived]

    def input_fields(self) -> List[FormField]:
        """User-editable (non-derived) fields in display order."""
        return [f for f in self.sorted_fields() if not f.is_derived]

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)
