"""Pydantic schemas for form fields, rules and saved form templates."""

from form_builder.schemas.form_schema import (
    CHOICE_FIELD_TYPES,
    ERROR_MARKER,
    FieldType,
    FormData,
    FormField,
    FormSchema,
    RuleType,
    ValidationRule,
)

__all__ = [
    "CHOICE_FIELD_TYPES",
    "ERROR_MARKER",
    "FieldType",
    "FormData",
    "FormField",
    "FormSchema",
    "RuleType",
    "ValidationRule",
]
