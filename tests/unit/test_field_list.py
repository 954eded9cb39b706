"""Unit tests for the field list builder."""

import itertools

import pytest

from conftest import make_field
from form_builder.builder.field_list import FieldListBuilder, reorder_fields
from form_builder.runtime.session import UnknownFieldError
from form_builder.schemas.form_schema import FieldType, RuleType
from form_builder.storage.memory import InMemorySchemaStore
from form_builder.storage.preview_slot import PREVIEW_SCHEMA_ID, PreviewSlot


@pytest.fixture
def builder():
    counter = itertools.count(1)
    return FieldListBuilder(id_factory=lambda: f"f{next(counter)}")


class TestAddField:
    """Tests for palette defaults."""

    def test_text_defaults(self, builder):
        field = builder.add_field("text")
        assert field.id == "f1"
        assert field.label == "New text field"
        assert field.required is False
        assert field.default_value == ""
        assert field.validation_rules == []
        assert field.options is None
        assert field.order == 0
        assert builder.selected_field_id == "f1"

    def test_choice_types_get_default_option(self, builder):
        for field_type in ("select", "radio", "checkbox"):
            assert builder.add_field(field_type).options == ["Option 1"]

    def test_order_is_field_count(self, builder):
        builder.add_field("text")
        builder.add_field("number")
        assert builder.add_field("date").order == 2

    def test_overrides(self, builder):
        field = builder.add_field(FieldType.NUMBER, label="Age", default_value=18)
        assert field.label == "Age"
        assert field.default_value == 18

    def test_default_ids_are_unique(self):
        builder = FieldListBuilder()
        ids = {builder.add_field("text").id for _ in range(5)}
        assert len(ids) == 5


class TestEditAndDelete:

    def test_update_replaces_and_clears_selection(self, builder):
        field = builder.add_field("text")
        field.label = "Full name"
        builder.update_field(field)
        assert builder.get_field("f1").label == "Full name"
        assert builder.selected_field_id is None

    def test_delete_clears_selection(self, builder):
        builder.add_field("text")
        builder.delete_field("f1")
        assert builder.fields == []
        assert builder.selected_field_id is None

    def test_delete_keeps_dependent_derived_field(self, builder):
        builder.add_field("number")
        builder.add_field("number")
        builder.set_derived("f2", True)
        builder.set_parent_fields("f2", ["f1"])
        builder.delete_field("f1")
        assert builder.get_field("f2").parent_fields == ["f1"]

    def test_unknown_field(self, builder):
        with pytest.raises(UnknownFieldError):
            builder.delete_field("missing")


class TestReorder:
    """Tests for reorder_fields and move_field."""

    def test_move_first_to_last(self):
        fields = [make_field(f"f{i}", order=i) for i in range(3)]
        result = reorder_fields(fields, 0, 2)
        assert [f.id for f in result] == ["f1", "f2", "f0"]
        assert [f.order for f in result] == [0, 1, 2]

    def test_no_movement_leaves_order_unchanged(self):
        fields = [make_field(f"f{i}", order=i) for i in range(3)]
        result = reorder_fields(fields, 1, 1)
        assert [(f.id, f.order) for f in result] == [("f0", 0), ("f1", 1), ("f2", 2)]

    def test_input_not_mutated(self):
        fields = [make_field(f"f{i}", order=i) for i in range(3)]
        reorder_fields(fields, 0, 2)
        assert [f.order for f in fields] == [0, 1, 2]

    def test_out_of_range(self):
        with pytest.raises(IndexError):
            reorder_fields([make_field("a")], 0, 1)

    def test_move_field(self, builder):
        for _ in range(3):
            builder.add_field("text")
        builder.move_field(2, 0)
        assert [(f.id, f.order) for f in builder.fields] == [("f3", 0), ("f1", 1), ("f2", 2)]


class TestDerivation:
    """Tests for derived-field configuration."""

    def test_toggle_on_clears_rules(self, builder):
        builder.add_field("text")
        builder.add_validation_rule("f1", RuleType.REQUIRED)
        field = builder.set_derived("f1", True)
        assert field.is_derived is True
        assert field.validation_rules == []
        assert field.required is False
        assert field.parent_fields == []
        assert field.derived_formula == ""

    def test_toggle_off_drops_metadata(self, builder):
        builder.add_field("text")
        builder.set_derived("f1", True)
        field = builder.set_derived("f1", False)
        assert field.parent_fields is None
        assert field.derived_formula is None

    def test_available_parents_exclude_self_and_derived(self, builder):
        for _ in range(3):
            builder.add_field("number")
        builder.set_derived("f3", True)
        builder.set_derived("f2", True)
        assert [f.id for f in builder.available_parent_fields("f3")] == ["f1"]

    def test_derived_parent_rejected(self, builder):
        builder.add_field("number")
        builder.add_field("number")
        builder.set_derived("f1", True)
        builder.set_derived("f2", True)
        with pytest.raises(ValueError):
            builder.set_parent_fields("f2", ["f1"])

    def test_formula_requires_derived(self, builder):
        builder.add_field("number")
        with pytest.raises(ValueError):
            builder.set_formula("f1", "1 + 1")


class TestRulesAndOptions:

    def test_length_rule_defaults(self, builder):
        builder.add_field("text")
        rule = builder.add_validation_rule("f1", "minLength")
        assert rule.value == 1
        assert rule.message == "Please enter a valid minLength"

    def test_update_and_remove_rule(self, builder):
        builder.add_field("text")
        builder.add_validation_rule("f1", "maxLength")
        builder.add_validation_rule("f1", "email")
        builder.update_validation_rule("f1", 0, value=10, message="Too long")
        builder.remove_validation_rule("f1", 1)
        rules = builder.get_field("f1").validation_rules
        assert len(rules) == 1
        assert rules[0].value == 10
        assert rules[0].message == "Too long"

    def test_options(self, builder):
        builder.add_field("select")
        builder.add_option("f1", "  Option 2 ")
        builder.add_option("f1", "   ")
        builder.remove_option("f1", 0)
        assert builder.get_field("f1").options == ["Option 2"]


class TestSchemas:
    """Tests for building, saving and previewing schemas."""

    def test_blank_name_rejected(self, builder):
        builder.add_field("text")
        with pytest.raises(ValueError):
            builder.build_schema("   ")

    def test_build_sorts_fields(self, builder):
        for _ in range(3):
            builder.add_field("text")
        builder.move_field(0, 2)
        schema = builder.build_schema("Contact", schema_id="contact")
        assert schema.id == "contact"
        assert [f.id for f in schema.fields] == ["f2", "f3", "f1"]

    def test_save_persists_and_fills_preview(self, builder):
        preview = PreviewSlot()
        builder.preview = preview
        builder.add_field("text")
        store = InMemorySchemaStore()

        schema = builder.save(store, "Contact")

        assert store.get_by_id(schema.id) == schema
        assert preview.get().id == schema.id

    def test_changes_mirror_into_preview(self):
        preview = PreviewSlot()
        builder = FieldListBuilder(preview=preview)
        field = builder.add_field("number")
        mirrored = preview.get()
        assert mirrored.id == PREVIEW_SCHEMA_ID
        assert mirrored.fields[0].id == field.id

        builder.set_derived(field.id, True)
        assert preview.get().fields[0].is_derived is True

    def test_preview_schema_without_slot(self, builder):
        builder.add_field("text")
        assert builder.preview_schema().name == "Preview Form"
