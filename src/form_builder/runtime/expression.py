"""
Sandboxed expression language for derived-field formulas.

Formulas are parsed with Python's ``ast`` module in ``eval`` mode, checked
against a whitelist of node types, and then interpreted by walking the tree.
Nothing is ever passed to ``eval``/``exec``; names resolve only to literal
constants (true/false/null) or to the function table below.

Grammar:
- literals: numbers, quoted strings, true/false/null (and True/False/None)
- arithmetic: + - * / // % **, unary - + not
- comparisons: == != < <= > >= (chainable), and / or
- conditional: ``a if cond else b``
- calls into FUNCTIONS only, positional arguments only

``+`` concatenates when either operand is a string. Dates support
``date - date`` (whole days) and ``date +/- number`` (days).
"""

import ast
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict


DEFAULT_MAX_FORMULA_LENGTH = 2000
DEFAULT_MAX_FORMULA_NODES = 300
DEFAULT_MAX_EXPONENT = 1000
MAX_INTEGER_BITS = 4096

# Constant types a formula may contain
LITERAL_TYPES = (int, float, str, bool, type(None))


class FormulaError(Exception):
    """Base error for formulas that cannot be parsed or evaluated."""

    def __init__(self, formula: str, message: str):
        self.formula = formula
        self.message = message
        super().__init__(f"{message} (formula: {formula!r})")


class FormulaSyntaxError(FormulaError):
    """Raised when formula text is not a well-formed expression."""
    pass


class UnsafeFormulaError(FormulaError):
    """Raised when a formula uses syntax outside the sandboxed grammar."""
    pass


class FormulaEvaluationError(FormulaError):
    """Raised when a well-formed formula fails at evaluation time."""
    pass


ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.BinOp,
    ast.UnaryOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.And,
    ast.Or,
    ast.Not,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.USub,
    ast.UAdd,
    ast.Eq,
    ast.NotEq,
    ast.Gt,
    ast.GtE,
    ast.Lt,
    ast.LtE,
)

LITERAL_NAMES: Dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "True": True,
    "False": False,
    "None": None,
}


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float))


def _number(value: Any) -> Any:
    """Coerce an arithmetic operand; booleans count as 0/1."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    raise TypeError(f"expected a number, got {type(value).__name__} ({value!r})")


def to_text(value: Any) -> str:
    """String form of a runtime value, as used by concatenation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise ValueError(f"not an ISO date: {value!r}")
    raise TypeError(f"expected a date, got {type(value).__name__} ({value!r})")


def _to_number(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return float(text)
    return _number(value)


def _years_between(start: Any, end: Any) -> int:
    start_date = _to_date(start)
    end_date = _to_date(end)
    years = end_date.year - start_date.year
    if (end_date.month, end_date.day) < (start_date.month, start_date.day):
        years -= 1
    return years


def _round(value: Any, digits: Any = 0) -> Any:
    """Round half away from zero (spreadsheet rounding, not banker's)."""
    places = int(_number(digits))
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(_number(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    if places <= 0:
        return int(rounded)
    return float(rounded)


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "abs": lambda x: abs(_number(x)),
    "min": lambda *xs: min(_number(x) for x in xs),
    "max": lambda *xs: max(_number(x) for x in xs),
    "round": _round,
    "floor": lambda x: math.floor(_number(x)),
    "ceil": lambda x: math.ceil(_number(x)),
    "sqrt": lambda x: math.sqrt(_number(x)),
    "len": lambda x: len(x) if isinstance(x, (list, tuple)) else len(to_text(x)),
    "upper": lambda x: to_text(x).upper(),
    "lower": lambda x: to_text(x).lower(),
    "trim": lambda x: to_text(x).strip(),
    "concat": lambda *xs: "".join(to_text(x) for x in xs),
    "str": to_text,
    "num": _to_number,
    "today": lambda: date.today(),
    "now": lambda: datetime.now(timezone.utc),
    "date": _to_date,
    "days_between": lambda a, b: (_to_date(b) - _to_date(a)).days,
    "years_between": _years_between,
    "age": lambda birthdate: _years_between(birthdate, date.today()),
    "add_days": lambda d, n: _to_date(d) + timedelta(days=_number(n)),
}


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        return to_text(left) + to_text(right)
    if isinstance(left, date) and _is_number(right):
        return left + timedelta(days=_number(right))
    if _is_number(left) and isinstance(right, date):
        return right + timedelta(days=_number(left))
    return _number(left) + _number(right)


def _sub(left: Any, right: Any) -> Any:
    if isinstance(left, date) and isinstance(right, date):
        return (_to_date(left) - _to_date(right)).days
    if isinstance(left, date) and _is_number(right):
        return left - timedelta(days=_number(right))
    return _number(left) - _number(right)


class _Interpreter:
    """Tree-walking evaluator over a validated expression AST."""

    def __init__(self, formula: str, max_exponent: int):
        self.formula = formula
        self.max_exponent = max_exponent

    def _pow(self, left: Any, right: Any) -> Any:
        base = _number(left)
        exponent = _number(right)
        if abs(exponent) > self.max_exponent:
            raise ValueError(f"exponent {exponent} exceeds limit {self.max_exponent}")
        # Integer powers grow without overflow; cap the result size instead
        if isinstance(base, int) and isinstance(exponent, int) and abs(base) > 1:
            if base.bit_length() * exponent > MAX_INTEGER_BITS:
                raise ValueError(f"integer result of {base} ** {exponent} is too large")
        return base ** exponent

    def binary(self, op: ast.operator, left: Any, right: Any) -> Any:
        if isinstance(op, ast.Add):
            return _add(left, right)
        if isinstance(op, ast.Sub):
            return _sub(left, right)
        if isinstance(op, ast.Mult):
            return _number(left) * _number(right)
        if isinstance(op, ast.Div):
            return _number(left) / _number(right)
        if isinstance(op, ast.FloorDiv):
            return _number(left) // _number(right)
        if isinstance(op, ast.Mod):
            return _number(left) % _number(right)
        if isinstance(op, ast.Pow):
            return self._pow(left, right)
        raise FormulaEvaluationError(self.formula, f"Unsupported operator {type(op).__name__}")

    @staticmethod
    def compare(op: ast.cmpop, left: Any, right: Any) -> bool:
        if isinstance(op, ast.Eq):
            return left == right
        if isinstance(op, ast.NotEq):
            return left != right
        if isinstance(op, ast.Lt):
            return left < right
        if isinstance(op, ast.LtE):
            return left <= right
        if isinstance(op, ast.Gt):
            return left > right
        return left >= right

    def eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return self.eval(node.body)

        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            if node.id in LITERAL_NAMES:
                return LITERAL_NAMES[node.id]
            raise FormulaEvaluationError(
                self.formula, f"Function '{node.id}' must be called"
            )

        if isinstance(node, ast.BinOp):
            return self.binary(node.op, self.eval(node.left), self.eval(node.right))

        if isinstance(node, ast.UnaryOp):
            operand = self.eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not operand
            if isinstance(node.op, ast.USub):
                return -_number(operand)
            return +_number(operand)

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result = True
                for value in node.values:
                    result = self.eval(value)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self.eval(value)
                if result:
                    return result
            return result

        if isinstance(node, ast.Compare):
            left = self.eval(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                right = self.eval(comparator)
                if not self.compare(op, left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            if self.eval(node.test):
                return self.eval(node.body)
            return self.eval(node.orelse)

        if isinstance(node, ast.Call):
            func = FUNCTIONS[node.func.id]
            args = [self.eval(arg) for arg in node.args]
            return func(*args)

        raise FormulaEvaluationError(self.formula, f"Unsupported syntax {type(node).__name__}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompiledFormula:
    """A parsed and whitelisted formula, ready to evaluate."""

    source: str
    tree: ast.Expression


class ExpressionEngine:
    """
    Compile and evaluate sandboxed formula expressions.

    Limits bound the work a single formula can request: source length,
    AST node count and exponent magnitude.
    """

    def __init__(
        self,
        max_formula_length: int = DEFAULT_MAX_FORMULA_LENGTH,
        max_formula_nodes: int = DEFAULT_MAX_FORMULA_NODES,
        max_exponent: int = DEFAULT_MAX_EXPONENT,
    ):
        self.max_formula_length = max_formula_length
        self.max_formula_nodes = max_formula_nodes
        self.max_exponent = max_exponent

    def compile(self, formula: str) -> CompiledFormula:
        """
        Parse and validate formula text.

        Raises:
            UnsafeFormulaError: If the text is too large or uses disallowed syntax
            FormulaSyntaxError: If the text does not parse
        """
        if len(formula) > self.max_formula_length:
            raise UnsafeFormulaError(
                formula[:80],
                f"Formula length {len(formula)} exceeds limit {self.max_formula_length}",
            )
        if not formula.strip():
            raise FormulaSyntaxError(formula, "Formula is empty")

        try:
            tree = ast.parse(formula.strip(), mode="eval")
        except (SyntaxError, ValueError, RecursionError, MemoryError) as e:
            raise FormulaSyntaxError(formula, f"Invalid formula syntax: {e}") from e

        nodes = list(ast.walk(tree))
        if len(nodes) > self.max_formula_nodes:
            raise UnsafeFormulaError(
                formula, f"Formula has {len(nodes)} nodes, limit is {self.max_formula_nodes}"
            )

        for node in nodes:
            if not isinstance(node, ALLOWED_NODES):
                raise UnsafeFormulaError(formula, f"Disallowed syntax: {type(node).__name__}")
            if isinstance(node, ast.Constant) and not isinstance(node.value, LITERAL_TYPES):
                raise UnsafeFormulaError(
                    formula, f"Unsupported literal of type {type(node.value).__name__}"
                )
            if isinstance(node, ast.Name) and node.id not in LITERAL_NAMES and node.id not in FUNCTIONS:
                raise UnsafeFormulaError(formula, f"Unknown identifier '{node.id}'")
            if isinstance(node, ast.Call):
                if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                    raise UnsafeFormulaError(formula, "Only built-in formula functions can be called")
                if node.keywords:
                    raise UnsafeFormulaError(formula, "Keyword arguments are not supported")

        return CompiledFormula(source=formula, tree=tree)

    def evaluate(self, formula: "str | CompiledFormula") -> Any:
        """
        Evaluate formula text (or a compiled formula).

        Returns:
            The raw result value (number, string, bool, date or None)

        Raises:
            FormulaError: On any parse, sandbox or runtime failure
        """
        compiled = formula if isinstance(formula, CompiledFormula) else self.compile(formula)
        interpreter = _Interpreter(compiled.source, self.max_exponent)
        try:
            result = interpreter.eval(compiled.tree)
        except FormulaError:
            raise
        except (ArithmeticError, TypeError, ValueError, RecursionError) as e:
            raise FormulaEvaluationError(compiled.source, f"{type(e).__name__}: {e}") from e

        if isinstance(result, float) and not math.isfinite(result):
            raise FormulaEvaluationError(compiled.source, f"Result is not finite: {result}")
        return result

