"""CLI tests for schema, check and fill commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import make_derived, make_field
from form_builder.cli import app
from form_builder.cli.cmd_fill import parse_assignments
from form_builder.schemas.form_schema import FormSchema

runner = CliRunner()


def invoke(*args):
    return runner.invoke(app, list(args))


def invoke_json(*args):
    """Run with --json --quiet and parse stdout."""
    result = invoke("--json", "-q", *args)
    return result, json.loads(result.stdout) if result.stdout.strip() else None


def write_schema(path: Path, schema: FormSchema) -> Path:
    path.write_text(json.dumps(schema.to_json_dict()), encoding="utf-8")
    return path


@pytest.fixture
def sum_file(tmp_path, sum_schema):
    return write_schema(tmp_path / "sum.json", sum_schema)


@pytest.fixture
def broken_file(tmp_path):
    schema = FormSchema(
        id="broken",
        name="Broken",
        fields=[make_field("a", "number"), make_derived("d", ["a"], "(a + 1", order=1)],
    )
    return write_schema(tmp_path / "broken.json", schema)


class TestParseAssignments:

    def test_pairs(self):
        assert parse_assignments(["a=1", "b=x=y"]) == {"a": "1", "b": "x=y"}

    def test_repeated_id_collects_list(self):
        assert parse_assignments(["c=x", "c=y", "c=z"]) == {"c": ["x", "y", "z"]}

    def test_missing_equals(self):
        with pytest.raises(ValueError):
            parse_assignments(["oops"])


class TestSchemaCommands:
    """Tests for the schema sub-commands."""

    def test_import_list_show(self, store_env, sum_file):
        result = invoke("schema", "import", str(sum_file))
        assert result.exit_code == 0, result.output
        assert store_env.exists()

        result, rows = invoke_json("schema", "list")
        assert result.exit_code == 0
        assert [row["id"] for row in rows] == ["sum-form"]
        assert rows[0]["fields"] == 3
        assert rows[0]["derived"] == 1

        result, data = invoke_json("schema", "show", "sum-form")
        assert data["fields"][2]["derivedFormula"] == "a + b"

    def test_list_empty(self, store_env):
        result, rows = invoke_json("schema", "list")
        assert result.exit_code == 0
        assert rows == []

    def test_list_mixed_timestamps_newest_first(self, store_env):
        store_env.write_text(
            json.dumps({
                "dynamicForms": [
                    {"id": "old", "name": "Old", "fields": [], "createdAt": "2024-01-01T00:00:00Z"},
                    {"id": "new", "name": "New", "fields": [], "createdAt": "2024-01-02T00:00:00"},
                ]
            }),
            encoding="utf-8",
        )
        result, rows = invoke_json("schema", "list")
        assert result.exit_code == 0, result.output
        assert [row["id"] for row in rows] == ["new", "old"]
        assert rows[0]["created_at"] == "2024-01-02T00:00:00+00:00"

    def test_show_unknown(self, store_env):
        result = invoke("schema", "show", "missing")
        assert result.exit_code == 1

    def test_import_with_errors_needs_force(self, store_env, broken_file):
        assert invoke("schema", "import", str(broken_file)).exit_code == 1
        assert invoke("schema", "import", "--force", str(broken_file)).exit_code == 0

    def test_import_invalid_file(self, store_env, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("[]", encoding="utf-8")
        assert invoke("schema", "import", str(bad)).exit_code == 1

    def test_export_yaml_and_reimport(self, store_env, sum_file, tmp_path):
        invoke("schema", "import", str(sum_file))
        out = tmp_path / "exported.yaml"
        result = invoke("schema", "export", "sum-form", str(out))
        assert result.exit_code == 0, result.output
        assert "derivedFormula: a + b" in out.read_text(encoding="utf-8")

        invoke("schema", "delete", "sum-form")
        assert invoke("schema", "import", str(out)).exit_code == 0

    def test_delete(self, store_env, sum_file):
        invoke("schema", "import", str(sum_file))
        assert invoke("schema", "delete", "sum-form").exit_code == 0
        assert invoke("schema", "delete", "sum-form").exit_code == 1


class TestCheckCommand:

    def test_clean_file(self, store_env, sum_file):
        result, data = invoke_json("check", str(sum_file))
        assert result.exit_code == 0
        assert data == {"schema_id": "sum-form", "ok": True, "issues": []}

    def test_errors_exit_nonzero(self, store_env, broken_file):
        result, data = invoke_json("check", str(broken_file))
        assert result.exit_code == 1
        assert data["ok"] is False
        assert data["issues"][0]["code"] == "FORMULA_SYNTAX"

    def test_stored_id(self, store_env, sum_file):
        invoke("schema", "import", str(sum_file))
        assert invoke("check", "sum-form").exit_code == 0

    def test_unknown_ref(self, store_env):
        assert invoke("check", "nothing-here").exit_code == 1


class TestFillCommand:
    """Tests for headless form filling."""

    def test_defaults_and_edit(self, store_env, sum_file):
        result, data = invoke_json("fill", str(sum_file), "--set", "a=5")
        assert result.exit_code == 0, result.output
        assert data["values"] == {"a": 5, "b": 4, "sum": 9}
        assert data["ok"] is True

    def test_values_file(self, store_env, sum_file, tmp_path):
        values = tmp_path / "values.json"
        values.write_text(json.dumps({"a": 10, "b": 1}), encoding="utf-8")
        result, data = invoke_json("fill", str(sum_file), "--values", str(values), "--set", "b=2")
        assert data["values"]["sum"] == 12

    def test_validation_failure_exit_code(self, store_env, tmp_path, signup_schema):
        path = write_schema(tmp_path / "signup.json", signup_schema)
        result, data = invoke_json("fill", str(path), "--set", "name=Ada", "--set", "email=bad")
        assert result.exit_code == 1
        assert data["errors"]["email"] == "Enter a valid email"
        assert data["values"]["greeting"] == "Hello, Ada"

    def test_no_submit(self, store_env, tmp_path, signup_schema):
        path = write_schema(tmp_path / "signup.json", signup_schema)
        result, data = invoke_json("fill", str(path), "--no-submit")
        assert result.exit_code == 0
        assert "errors" not in data

    def test_derived_field_rejected(self, store_env, sum_file):
        result = invoke("fill", str(sum_file), "--set", "sum=1")
        assert result.exit_code == 1

    def test_graph_strategy_from_env(self, store_env, tmp_path, monkeypatch):
        monkeypatch.setenv("FORM_BUILDER_DERIVATION_STRATEGY", "dependency_graph")
        schema = FormSchema(
            id="chain",
            name="Chain",
            fields=[
                make_field("a", "number", default_value=1),
                make_derived("d2", ["d1"], "d1 * 10", order=1),
                make_derived("d1", ["a"], "a + 1", order=2),
            ],
        )
        path = write_schema(tmp_path / "chain.json", schema)
        result, data = invoke_json("fill", str(path))
        assert data["values"]["d2"] == 20

    def test_table_output(self, store_env, sum_file):
        result = invoke("fill", str(sum_file))
        assert result.exit_code == 0
        assert "Submission passed validation" in result.output
