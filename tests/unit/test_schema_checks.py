"""Unit tests for schema configuration checks."""

import json

from conftest import make_derived, make_field, rule
from form_builder.runtime.schema_checks import IssueCode, Severity, check_schema, has_errors
from form_builder.schemas.form_schema import FormSchema


def codes(issues):
    return [(issue.code, issue.field_id) for issue in issues]


def schema_of(*fields):
    return FormSchema(id="s", name="S", fields=list(fields))


class TestCheckSchema:
    """Tests for check_schema."""

    def test_clean_schema(self, signup_schema, sum_schema):
        assert check_schema(signup_schema) == []
        assert check_schema(sum_schema) == []

    def test_duplicate_ids(self):
        issues = check_schema(schema_of(make_field("a"), make_field("a", order=1)))
        assert (IssueCode.DUPLICATE_ID, "a") in codes(issues)
        assert has_errors(issues)

    def test_formula_syntax_error(self):
        issues = check_schema(schema_of(
            make_field("a", "number"),
            make_derived("d", ["a"], "(a + 1", order=1),
        ))
        assert codes(issues) == [(IssueCode.FORMULA_SYNTAX, "d")]
        assert issues[0].severity == Severity.ERROR

    def test_unsafe_formula_reported(self):
        issues = check_schema(schema_of(make_derived("d", [], "__import__('os')")))
        assert (IssueCode.FORMULA_SYNTAX, "d") in codes(issues)

    def test_json_logic_formula_not_parsed(self):
        formula = json.dumps({"+": [{"var": "a"}, 1]})
        issues = check_schema(schema_of(make_field("a", "number"), make_derived("d", ["a"], formula, order=1)))
        assert issues == []

    def test_unknown_parent_is_warning(self):
        issues = check_schema(schema_of(make_derived("d", ["gone"], "gone + 1")))
        assert codes(issues) == [(IssueCode.UNKNOWN_PARENT, "d")]
        assert not has_errors(issues)

    def test_missing_parents_and_empty_formula(self):
        issues = check_schema(schema_of(make_derived("d", [], "")))
        assert set(codes(issues)) == {
            (IssueCode.MISSING_PARENTS, "d"),
            (IssueCode.EMPTY_FORMULA, "d"),
        }

    def test_self_reference(self):
        issues = check_schema(schema_of(make_derived("d", ["d"], "d + 1")))
        assert (IssueCode.SELF_REFERENCE, "d") in codes(issues)
        assert all(issue.code != IssueCode.DERIVATION_CYCLE for issue in issues)

    def test_cycle(self):
        issues = check_schema(schema_of(
            make_derived("x", ["y"], "y + 1"),
            make_derived("y", ["x"], "x + 1", order=1),
        ))
        cycle_issues = [i for i in issues if i.code == IssueCode.DERIVATION_CYCLE]
        assert len(cycle_issues) == 1
        assert "x" in cycle_issues[0].message and "y" in cycle_issues[0].message
        assert [i.code for i in issues].count(IssueCode.DERIVED_PARENT) == 2

    def test_option_mismatches(self):
        issues = check_schema(schema_of(
            make_field("t", "text", options=["x"]),
            make_field("s", "select", order=1, options=[]),
        ))
        assert codes(issues) == [
            (IssueCode.UNEXPECTED_OPTIONS, "t"),
            (IssueCode.MISSING_OPTIONS, "s"),
        ]

    def test_contradictory_length_bounds(self):
        field = make_field("t", validation_rules=[rule("minLength", 5), rule("maxLength", 3)])
        issues = check_schema(schema_of(field))
        assert codes(issues) == [(IssueCode.LENGTH_BOUNDS, "t")]

    def test_issue_to_dict(self):
        issue = check_schema(schema_of(make_derived("d", ["gone"], "gone")))[0]
        assert issue.to_dict() == {
            "code": "UNKNOWN_PARENT",
            "severity": "WARNING",
            "message": issue.message,
            "field_id": "d",
        }
