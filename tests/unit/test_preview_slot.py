"""Unit tests for the preview slot."""

from conftest import make_field
from form_builder.schemas.form_schema import FormSchema
from form_builder.storage.preview_slot import PREVIEW_SCHEMA_ID, PREVIEW_SCHEMA_NAME, PreviewSlot


def test_empty_slot() -> None:
    assert PreviewSlot().get() is None


def test_put_sorts_fields_and_names_schema() -> None:
    slot = PreviewSlot()
    schema = slot.put([make_field("b", order=1), make_field("a", order=0)])
    assert schema.id == PREVIEW_SCHEMA_ID
    assert schema.name == PREVIEW_SCHEMA_NAME
    assert [f.id for f in slot.get().fields] == ["a", "b"]


def test_last_write_wins() -> None:
    slot = PreviewSlot()
    slot.put([make_field("a")])
    saved = FormSchema(id="saved", name="Saved", fields=[make_field("x")])
    slot.put_schema(saved)
    assert slot.get().id == "saved"


def test_clear() -> None:
    slot = PreviewSlot()
    slot.put([make_field("a")])
    slot.clear()
    assert slot.get() is None
