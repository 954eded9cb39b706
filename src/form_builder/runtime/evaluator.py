"""
Formula Evaluator - computes one derived field from its parents' values.

Responsibility: substitute parent values into a derived field's formula and
evaluate the result in isolation from any other state.

High-level callers (scheduler, session, CLI) depend on the IFormulaEvaluator
abstraction, not on the expression interpreter or the json-logic library.

Two formula dialects are accepted:
- expression text (default): parent ids are replaced, whole-word, by literal
  values and the text is run through the sandboxed ExpressionEngine
- JSON Logic: formula text that is a JSON object is evaluated with json-logic
  against {parent_id: value}
"""

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from json_logic import jsonLogic

from form_builder.runtime.expression import ExpressionEngine, FormulaError, to_text
from form_builder.schemas.form_schema import ERROR_MARKER, FormData, FormField

if TYPE_CHECKING:
    from form_builder.config.settings import EngineSettings

logger = logging.getLogger(__name__)

# Substituted for parents that are absent or None
MISSING_PARENT_VALUE = 0


class IFormulaEvaluator(ABC):
    """
    Abstract interface for derived-field formula evaluation.

    Stateless: accepts (field + value map) and returns the field's new value.
    Never raises for a bad formula; failures become ERROR_MARKER.
    """

    @abstractmethod
    def evaluate(self, field: FormField, values: FormData) -> Any:
        """
        Compute a derived field's value.

        Args:
            field: A derived field (is_derived=True)
            values: Current value map; read only

        Returns:
            The computed value, or ERROR_MARKER if evaluation failed
        """
        pass


def format_literal(value: Any) -> str:
    """
    Render a runtime value as literal formula text.

    Strings are quoted with JSON escaping so a value can never inject syntax.
    Lists and other structured values are stringified, then quoted.
    """
    if value is None:
        return str(MISSING_PARENT_VALUE)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return str(MISSING_PARENT_VALUE)
        # Parenthesized so unary minus cannot bind looser than "**"
        if value < 0:
            return f"({value!r})"
        return repr(value)
    if isinstance(value, dict):
        return json.dumps(json.dumps(value, sort_keys=True, default=str))
    return json.dumps(to_text(value))


def substitute_parent_values(formula: str, parent_ids: Iterable[str], values: FormData) -> str:
    """
    Replace every whole-word occurrence of each parent id with its value.

    A single regex pass over all ids is used, so text produced by one
    substitution is never scanned again.

    Args:
        formula: Formula template referencing parent ids
        parent_ids: Ids to substitute
        values: Current value map (missing ids substitute as 0)

    Returns:
        Formula text with literal values in place of ids
    """
    ids = sorted({pid for pid in parent_ids if pid}, key=len, reverse=True)
    if not ids:
        return formula

    pattern = re.compile(r"\b(" + "|".join(re.escape(pid) for pid in ids) + r")\b")
    return pattern.sub(lambda m: format_literal(values.get(m.group(1))), formula)


def is_json_logic_formula(formula: str) -> bool:
    """Whether formula text is a JSON Logic document."""
    return formula.lstrip().startswith("{")


def normalize_result(value: Any) -> Any:
    """Convert interpreter results into value-map values."""
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"result is not finite: {value}")
        if value.is_integer():
            return int(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class FormulaEvaluator(IFormulaEvaluator):
    """
    Concrete evaluator for both formula dialects.

    Errors of any kind are logged and converted to ERROR_MARKER so a broken
    formula never aborts recomputation of sibling fields.
    """

    def __init__(self, engine: Optional[ExpressionEngine] = None):
        self.engine = engine or ExpressionEngine()

    @classmethod
    def from_settings(cls, settings: "EngineSettings") -> "FormulaEvaluator":
        """Build an evaluator with the formula limits from settings."""
        return cls(
            ExpressionEngine(
                max_formula_length=settings.max_formula_length,
                max_formula_nodes=settings.max_formula_nodes,
                max_exponent=settings.max_exponent,
            )
        )

    def evaluate(self, field: FormField, values: FormData) -> Any:
        formula = field.derived_formula or ""
        parent_ids = field.parent_fields or []

        try:
            if is_json_logic_formula(formula):
                result = self._evaluate_json_logic(formula, parent_ids, values)
            else:
                expression = substitute_parent_values(formula, parent_ids, values)
                result = self.engine.evaluate(expression)
            return normalize_result(result)
        except FormulaError as e:
            logger.error(f"Error calculating derived field '{field.id}': {e.message}")
            return ERROR_MARKER
        except Exception as e:
            # json-logic raises arbitrary exception types for bad documents
            logger.error(f"Error calculating derived field '{field.id}': {type(e).__name__}: {e}")
            return ERROR_MARKER

    def _evaluate_json_logic(self, formula: str, parent_ids: Iterable[str], values: FormData) -> Any:
        """Evaluate a JSON Logic formula against the parent values only."""
        rule = json.loads(formula)
        data: Dict[str, Any] = {}
        for pid in parent_ids:
            value = values.get(pid)
            data[pid] = MISSING_PARENT_VALUE if value is None else value
        return jsonLogic(rule, data)
