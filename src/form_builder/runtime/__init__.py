"""
Runtime components of the form schema evaluation engine.

1. Validation Engine - validators
2. Formula Evaluator - expression (sandboxed interpreter), evaluator
3. Derivation Scheduler - scheduler
4. Rendering session - session

Callers depend on the IFormulaEvaluator abstraction; the expression
interpreter and json-logic stay behind it.
"""

from form_builder.runtime.evaluator import FormulaEvaluator, IFormulaEvaluator
from form_builder.runtime.expression import (
    ExpressionEngine,
    FormulaError,
    FormulaEvaluationError,
    FormulaSyntaxError,
    UnsafeFormulaError,
)
from form_builder.runtime.scheduler import DerivationCycleError, DerivationScheduler
from form_builder.runtime.schema_checks import SchemaIssue, check_schema
from form_builder.runtime.schema_loader import SchemaLoadError, load_schema_file
from form_builder.runtime.session import (
    FieldNotEditableError,
    FormSession,
    SubmissionResult,
    UnknownFieldError,
)
from form_builder.runtime.validators import validate_form, validate_value

__all__ = [
    "DerivationCycleError",
    "DerivationScheduler",
    "ExpressionEngine",
    "FieldNotEditableError",
    "FormSession",
    "FormulaError",
    "FormulaEvaluationError",
    "FormulaEvaluator",
    "FormulaSyntaxError",
    "IFormulaEvaluator",
    "SchemaIssue",
    "SchemaLoadError",
    "SubmissionResult",
    "UnknownFieldError",
    "UnsafeFormulaError",
    "check_schema",
    "load_schema_file",
    "validate_form",
    "validate_value",
]
