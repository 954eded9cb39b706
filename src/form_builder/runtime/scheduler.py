"""
Derivation Scheduler - keeps derived fields consistent with their parents.

Every value-map change (including initial default seeding) triggers exactly
one recomputation pass. Results are written to a working copy and returned
as a new value map; the input map is never mutated, so a pass cannot
re-trigger itself.

Strategies:
- single_pass: derived fields in declared ``order``, every field reads the
  snapshot taken at pass start. Chained derived fields (not produced by the
  builder) read their derived parent's previous value.
- dependency_graph: derived fields are topologically sorted over parent
  links and read the working copy, so chains see fresh values. Fields on a
  cycle are set to ERROR_MARKER and the cycle is logged as a configuration
  error.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from form_builder.runtime.evaluator import FormulaEvaluator, IFormulaEvaluator
from form_builder.schemas.form_schema import ERROR_MARKER, FormData, FormField, FormSchema

logger = logging.getLogger(__name__)

SINGLE_PASS = "single_pass"
DEPENDENCY_GRAPH = "dependency_graph"
STRATEGIES = (SINGLE_PASS, DEPENDENCY_GRAPH)


class DerivationCycleError(Exception):
    """Configuration error: derived fields depend on each other in a cycle."""

    def __init__(self, field_ids: List[str]):
        self.field_ids = field_ids
        super().__init__(f"Derived fields form a dependency cycle: {', '.join(field_ids)}")


def derivation_order(schema: FormSchema) -> Tuple[List[FormField], List[FormField]]:
    """
    Topologically sort derived fields over their derived parents.

    Only derived parents create ordering edges; input-field parents are
    always available. Ties are broken by declared ``order`` (stable).

    Args:
        schema: The form schema

    Returns:
        Tuple of (ordered acyclic derived fields, derived fields on or
        behind a cycle, in declared order)
    """
    derived = schema.derived_fields()
    by_id = {f.id: f for f in derived}

    pending: Dict[str, Set[str]] = {
        f.id: {pid for pid in (f.parent_fields or []) if pid in by_id}
        for f in derived
    }

    ordered: List[FormField] = []
    done: Set[str] = set()
    progress = True
    while progress:
        progress = False
        for field in derived:
            if field.id in done:
                continue
            if pending[field.id] <= done:
                ordered.append(field)
                done.add(field.id)
                progress = True
                break

    blocked = [f for f in derived if f.id not in done]
    return ordered, blocked


def find_derivation_cycles(schema: FormSchema) -> List[List[str]]:
    """
    Find dependency cycles among derived fields.

    Returns:
        List of cycles, each as a list of field ids in dependency order
        (a self-reference is a one-element cycle)
    """
    derived_ids = {f.id for f in schema.derived_fields()}
    graph = {
        f.id: [pid for pid in (f.parent_fields or []) if pid in derived_ids]
        for f in schema.derived_fields()
    }

    cycles: List[List[str]] = []
    seen_cycles: Set[frozenset] = set()
    state: Dict[str, int] = {}  # 1 = on stack, 2 = finished
    stack: List[str] = []

    def visit(node: str) -> None:
        state[node] = 1
        stack.append(node)
        for parent in graph[node]:
            if state.get(parent) == 1:
                cycle = stack[stack.index(parent):]
                key = frozenset(cycle)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(list(cycle))
            elif parent not in state:
                visit(parent)
        stack.pop()
        state[node] = 2

    for node in graph:
        if node not in state:
            visit(node)
    return cycles


class DerivationScheduler:
    """
    Recompute derived fields after a value-map change.

    Args:
        evaluator: Formula evaluator (defaults to FormulaEvaluator)
        strategy: "single_pass" or "dependency_graph"
    """

    def __init__(
        self,
        evaluator: Optional[IFormulaEvaluator] = None,
        strategy: str = SINGLE_PASS,
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown derivation strategy '{strategy}' (must be one of {STRATEGIES})")
        self.evaluator = evaluator or FormulaEvaluator()
        self.strategy = strategy

    def recompute(self, schema: FormSchema, values: FormData) -> FormData:
        """
        Run one recomputation pass over all derived fields.

        Args:
            schema: The form schema
            values: Latest value map; not mutated

        Returns:
            New value map with derived values committed
        """
        if self.strategy == DEPENDENCY_GRAPH:
            return self._recompute_graph(schema, values)
        return self._recompute_single_pass(schema, values)

    def initial_values(self, schema: FormSchema) -> FormData:
        """
        Seed a value map from non-derived defaults, then derive once.

        Fields whose default is None are left out of the map.
        """
        seeded: FormData = {}
        for field in schema.input_fields():
            if field.default_value is not None:
                seeded[field.id] = field.default_value
        return self.recompute(schema, seeded)

    def _recompute_single_pass(self, schema: FormSchema, values: FormData) -> FormData:
        snapshot = dict(values)
        working = dict(values)
        derived = schema.derived_fields()

        for field in derived:
            if not field.derived_formula:
                continue
            working[field.id] = self.evaluator.evaluate(field, snapshot)

        logger.debug(f"Recomputed {len(derived)} derived field(s) for schema '{schema.id}'")
        return working

    def _recompute_graph(self, schema: FormSchema, values: FormData) -> FormData:
        working = dict(values)
        ordered, blocked = derivation_order(schema)

        for field in ordered:
            if not field.derived_formula:
                continue
            working[field.id] = self.evaluator.evaluate(field, working)

        if blocked:
            for cycle in find_derivation_cycles(schema):
                logger.error(f"Configuration error in schema '{schema.id}': {DerivationCycleError(cycle)}")
            for field in blocked:
                working[field.id] = ERROR_MARKER

        logger.debug(
            f"Recomputed {len(ordered)} derived field(s) for schema '{schema.id}' "
            f"({len(blocked)} blocked by cycles)"
        )
        return working
