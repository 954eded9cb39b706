"""
Pytest fixtures and configuration for form_builder tests.
Provides field/schema factories and isolated startup state.
"""

from datetime import datetime, timezone

import pytest

from form_builder import startup
from form_builder.schemas.form_schema import FormField, FormSchema, ValidationRule


def make_field(field_id, field_type="text", order=0, **kwargs):
    """Build a FormField with terse keyword arguments."""
    return FormField(id=field_id, type=field_type, order=order, **kwargs)


def make_derived(field_id, parents, formula, order=0, **kwargs):
    return FormField(
        id=field_id,
        type=kwargs.pop("type", "number"),
        order=order,
        is_derived=True,
        parent_fields=list(parents),
        derived_formula=formula,
        **kwargs,
    )


def rule(rule_type, value=None, message=None):
    return ValidationRule(type=rule_type, value=value, message=message or f"{rule_type} failed")


@pytest.fixture(autouse=True)
def reset_startup():
    """Each test starts with uninitialized startup state."""
    startup.reset_for_testing()
    yield
    startup.reset_for_testing()


@pytest.fixture
def sum_schema():
    """Two number inputs and a derived sum."""
    return FormSchema(
        id="sum-form",
        name="Sum",
        fields=[
            make_field("a", "number", order=0, default_value=3),
            make_field("b", "number", order=1, default_value=4),
            make_derived("sum", ["a", "b"], "a + b", order=2),
        ],
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def signup_schema():
    """Realistic form with rules, choices and a derived greeting."""
    return FormSchema(
        id="signup",
        name="Sign up",
        fields=[
            make_field(
                "name",
                order=0,
                label="Name",
                required=True,
                validation_rules=[rule("required", message="Name is required")],
            ),
            make_field(
                "email",
                order=1,
                label="Email",
                validation_rules=[
                    rule("required", message="Email is required"),
                    rule("email", message="Enter a valid email"),
                ],
            ),
            make_field(
                "password",
                order=2,
                label="Password",
                validation_rules=[rule("password", message="Weak password")],
            ),
            make_field("plan", "select", order=3, options=["Free", "Pro"], default_value="Free"),
            make_derived("greeting", ["name"], '"Hello, " + name', order=4, type="text"),
        ],
        created_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def store_env(tmp_path, monkeypatch):
    """Point the JSON schema store at a temp file via environment overrides."""
    store_path = tmp_path / "forms.json"
    monkeypatch.setenv("FORM_BUILDER_STORE_PATH", str(store_path))
    monkeypatch.delenv("FORM_BUILDER_CONFIG", raising=False)
    monkeypatch.delenv("FORM_BUILDER_DERIVATION_STRATEGY", raising=False)
    monkeypatch.delenv("FORM_BUILDER_STORAGE_KEY", raising=False)
    return store_path
