"""
Schema configuration checks - static guardrail for saved form schemas.

Reports configuration problems without changing runtime behavior: the
engine tolerates all of them (unknown parents substitute 0, broken
formulas evaluate to the error marker), but authors should see them.
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from form_builder.runtime.evaluator import is_json_logic_formula, substitute_parent_values
from form_builder.runtime.expression import ExpressionEngine, FormulaError
from form_builder.runtime.scheduler import find_derivation_cycles
from form_builder.schemas.form_schema import FormSchema, RuleType

logger = logging.getLogger(__name__)


class IssueCode(str, Enum):
    """Kinds of configuration issue."""
    DUPLICATE_ID = "DUPLICATE_ID"
    MISSING_PARENTS = "MISSING_PARENTS"
    EMPTY_FORMULA = "EMPTY_FORMULA"
    UNKNOWN_PARENT = "UNKNOWN_PARENT"
    SELF_REFERENCE = "SELF_REFERENCE"
    DERIVED_PARENT = "DERIVED_PARENT"
    DERIVATION_CYCLE = "DERIVATION_CYCLE"
    FORMULA_SYNTAX = "FORMULA_SYNTAX"
    UNEXPECTED_OPTIONS = "UNEXPECTED_OPTIONS"
    MISSING_OPTIONS = "MISSING_OPTIONS"
    LENGTH_BOUNDS = "LENGTH_BOUNDS"


class Severity(str, Enum):
    """Issue severity levels."""
    ERROR = "ERROR"
    WARNING = "WARNING"


@dataclass
class SchemaIssue:
    """Structured configuration issue."""
    code: IssueCode
    severity: Severity
    message: str
    field_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["code"] = self.code.value
        data["severity"] = self.severity.value
        return data


def check_schema(schema: FormSchema, engine: Optional[ExpressionEngine] = None) -> List[SchemaIssue]:
    """
    Check a schema for configuration problems.

    Args:
        schema: The schema to check
        engine: Expression engine used to parse formulas (default limits if None)

    Returns:
        List of issues, errors and warnings mixed, in field order
    """
    engine = engine or ExpressionEngine()
    issues: List[SchemaIssue] = []

    counts = Counter(schema.field_ids())
    for field_id, count in counts.items():
        if count > 1:
            issues.append(SchemaIssue(
                code=IssueCode.DUPLICATE_ID,
                severity=Severity.ERROR,
                message=f"Field id '{field_id}' is used by {count} fields",
                field_id=field_id,
            ))

    fields_by_id = {f.id: f for f in schema.fields}

    for field in schema.sorted_fields():
        if field.options and not field.has_options:
            issues.append(SchemaIssue(
                code=IssueCode.UNEXPECTED_OPTIONS,
                severity=Severity.WARNING,
                message=f"Options are ignored for {field.type.value} fields",
                field_id=field.id,
            ))
        if field.has_options and not field.options:
            issues.append(SchemaIssue(
                code=IssueCode.MISSING_OPTIONS,
                severity=Severity.WARNING,
                message=f"{field.type.value} field has no options",
                field_id=field.id,
            ))

        if not field.is_derived:
            issues.extend(_check_length_bounds(field))
            continue

        parents = field.parent_fields or []
        if not parents:
            issues.append(SchemaIssue(
                code=IssueCode.MISSING_PARENTS,
                severity=Severity.WARNING,
                message="Derived field has no parent fields",
                field_id=field.id,
            ))

        for pid in parents:
            parent = fields_by_id.get(pid)
            if pid == field.id:
                issues.append(SchemaIssue(
                    code=IssueCode.SELF_REFERENCE,
                    severity=Severity.ERROR,
                    message="Derived field lists itself as a parent",
                    field_id=field.id,
                ))
            elif parent is None:
                issues.append(SchemaIssue(
                    code=IssueCode.UNKNOWN_PARENT,
                    severity=Severity.WARNING,
                    message=f"Parent '{pid}' does not exist; it will evaluate as 0",
                    field_id=field.id,
                ))
            elif parent.is_derived:
                issues.append(SchemaIssue(
                    code=IssueCode.DERIVED_PARENT,
                    severity=Severity.WARNING,
                    message=f"Parent '{pid}' is itself derived; chained derivation reads its previous value",
                    field_id=field.id,
                ))

        if not field.derived_formula:
            issues.append(SchemaIssue(
                code=IssueCode.EMPTY_FORMULA,
                severity=Severity.WARNING,
                message="Derived field has no formula and will not be computed",
                field_id=field.id,
            ))
        elif not is_json_logic_formula(field.derived_formula):
            # Parse with placeholder values; only syntax is checked here
            placeholder = substitute_parent_values(field.derived_formula, parents, {})
            try:
                engine.compile(placeholder)
            except FormulaError as e:
                issues.append(SchemaIssue(
                    code=IssueCode.FORMULA_SYNTAX,
                    severity=Severity.ERROR,
                    message=e.message,
                    field_id=field.id,
                ))

    for cycle in find_derivation_cycles(schema):
        if len(cycle) == 1:
            continue  # reported as SELF_REFERENCE
        issues.append(SchemaIssue(
            code=IssueCode.DERIVATION_CYCLE,
            severity=Severity.ERROR,
            message=f"Derived fields form a cycle: {' -> '.join(cycle + [cycle[0]])}",
            field_id=cycle[0],
        ))

    logger.debug(f"Checked schema '{schema.id}': {len(issues)} issue(s)")
    return issues


def _check_length_bounds(field) -> List[SchemaIssue]:
    min_bounds = [r.value for r in field.validation_rules if r.type == RuleType.MIN_LENGTH]
    max_bounds = [r.value for r in field.validation_rules if r.type == RuleType.MAX_LENGTH]
    if min_bounds and max_bounds and max(min_bounds) > min(max_bounds):
        return [SchemaIssue(
            code=IssueCode.LENGTH_BOUNDS,
            severity=Severity.WARNING,
            message=(
                f"minLength {max(min_bounds)} exceeds maxLength {min(max_bounds)}; "
                "no string value can pass both"
            ),
            field_id=field.id,
        )]
    return []


def has_errors(issues: List[SchemaIssue]) -> bool:
    return any(issue.severity == Severity.ERROR for issue in issues)
