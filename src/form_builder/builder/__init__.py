"""Form builder - editor actions over an in-progress field list."""

from form_builder.builder.field_list import FieldListBuilder, reorder_fields

__all__ = ["FieldListBuilder", "reorder_fields"]
