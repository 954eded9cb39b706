"""Schema-driven dynamic form engine.

Form schemas (ordered fields with validation rules and derived-field
formulas) are built, persisted, and rendered into live sessions that
recompute derived values on every edit and validate on submission.
"""

__version__ = "0.1.0"

from form_builder.builder import FieldListBuilder
from form_builder.runtime import FormSession, FormulaEvaluator, validate_form
from form_builder.runtime.scheduler import DerivationScheduler
from form_builder.schemas import FieldType, FormField, FormSchema, RuleType, ValidationRule

__all__ = [
    "DerivationScheduler",
    "FieldListBuilder",
    "FieldType",
    "FormField",
    "FormSchema",
    "FormSession",
    "FormulaEvaluator",
    "RuleType",
    "ValidationRule",
    "__version__",
    "validate_form",
]
