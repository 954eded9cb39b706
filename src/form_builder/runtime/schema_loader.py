"""
Utility module for loading form schema files.

Accepts the persisted JSON shape (camelCase keys) or the same structure
written as YAML, and validates it into a FormSchema.
"""

import json
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from form_builder.schemas.form_schema import FormSchema


class SchemaLoadError(Exception):
    """Raised when a schema file cannot be loaded or is invalid."""
    pass


def parse_schema(data: Dict[str, Any]) -> FormSchema:
    """
    Validate a schema dictionary.

    Raises:
        SchemaLoadError: If the structure does not describe a FormSchema
    """
    if not isinstance(data, dict):
        raise SchemaLoadError(f"Schema must be a mapping, got {type(data).__name__}")
    if "fields" in data and not isinstance(data["fields"], list):
        raise SchemaLoadError("Schema 'fields' must be a list")
    try:
        return FormSchema.model_validate(data)
    except ValidationError as e:
        raise SchemaLoadError(f"Invalid schema: {e}")


def load_schema_file(file_path: str | Path) -> FormSchema:
    """
    Load and validate a form schema from a JSON or YAML file.

    Args:
        file_path: Path to the schema file (.json, .yaml or .yml)

    Returns:
        The validated FormSchema

    Raises:
        SchemaLoadError: If file cannot be loaded or doesn't have required structure

    Expected structure:
        {
            "id": str,
            "name": str,
            "fields": [...],
            "createdAt": ISO timestamp (optional)
        }
    """
    path = Path(file_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except FileNotFoundError:
        raise SchemaLoadError(f"Schema file not found: {path}")
    except json.JSONDecodeError as e:
        raise SchemaLoadError(f"Invalid JSON in schema file: {e}")
    except UnicodeDecodeError as e:
        raise SchemaLoadError(f"Schema file is not valid UTF-8: {e}")
    except yaml.YAMLError as e:
        raise SchemaLoadError(f"Invalid YAML in schema file: {e}")

    return parse_schema(data)


def dump_schema_file(schema: FormSchema, file_path: str | Path) -> Path:
    """Write a schema to JSON or YAML (chosen by suffix)."""
    path = Path(file_path)
    data = schema.to_json_dict()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        else:
            json.dump(data, f, indent=2, ensure_ascii=False)
    return path
