"""
Rule-based validation for submitted form values.

Rules are evaluated in the order they were added; the first failing rule's
message is returned and later rules are not checked on that pass. Derived
fields are never validated.

Type handling:
- required fails on None or a whitespace-only string
- minLength / maxLength / email / password only look at string values;
  any other value passes them
"""

import re
from typing import Any, Callable, Dict, Optional

from form_builder.schemas.form_schema import (
    FormData,
    FormField,
    FormSchema,
    RuleType,
    ValidationRule,
)

# Both patterns are applied with fullmatch
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

# At least 8 characters and at least one digit
PASSWORD_PATTERN = re.compile(r"(?=.*\d).{8,}")


def _fails_required(rule: ValidationRule, value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _fails_min_length(rule: ValidationRule, value: Any) -> bool:
    return isinstance(value, str) and len(value) < rule.value


def _fails_max_length(rule: ValidationRule, value: Any) -> bool:
    return isinstance(value, str) and len(value) > rule.value


def _fails_email(rule: ValidationRule, value: Any) -> bool:
    return isinstance(value, str) and EMAIL_PATTERN.fullmatch(value) is None


def _fails_password(rule: ValidationRule, value: Any) -> bool:
    return isinstance(value, str) and PASSWORD_PATTERN.fullmatch(value) is None


RULE_CHECKS: Dict[RuleType, Callable[[ValidationRule, Any], bool]] = {
    RuleType.REQUIRED: _fails_required,
    RuleType.MIN_LENGTH: _fails_min_length,
    RuleType.MAX_LENGTH: _fails_max_length,
    RuleType.EMAIL: _fails_email,
    RuleType.PASSWORD: _fails_password,
}


def rule_fails(rule: ValidationRule, value: Any) -> bool:
    """
    Check a single rule against a candidate value.

    Args:
        rule: The validation rule
        value: Candidate value (None means absent)

    Returns:
        True if the value violates the rule
    """
    return RULE_CHECKS[rule.type](rule, value)


def validate_value(field: FormField, value: Any) -> Optional[str]:
    """
    Validate one field's value.

    Args:
        field: A non-derived field definition
        value: Candidate value (None means absent)

    Returns:
        Message of the first failing rule in list order, or None
    """
    for rule in field.validation_rules:
        if rule_fails(rule, value):
            return rule.message
    return None


def validate_form(schema: FormSchema, values: FormData) -> Dict[str, str]:
    """
    Validate every non-derived field of a schema.

    Args:
        schema: The form schema
        values: Current value map keyed by field id

    Returns:
        Mapping of field id -> error message for failing fields only
        (empty if all valid)
    """
    errors: Dict[str, str] = {}
    for field in schema.input_fields():
        message = validate_value(field, values.get(field.id))
        if message is not None:
            errors[field.id] = message
    return errors
