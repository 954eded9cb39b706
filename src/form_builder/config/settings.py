"""Engine settings schema and loader.

Settings come from an optional YAML file (default: ``form_builder.yaml`` in the
project root, or the path in ``FORM_BUILDER_CONFIG``), then individual
``FORM_BUILDER_<FIELD>`` environment variables override file values.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from form_builder.runtime.expression import (
    DEFAULT_MAX_EXPONENT,
    DEFAULT_MAX_FORMULA_LENGTH,
    DEFAULT_MAX_FORMULA_NODES,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "FORM_BUILDER_"
CONFIG_PATH_ENV = "FORM_BUILDER_CONFIG"
DEFAULT_CONFIG_FILENAME = "form_builder.yaml"

DerivationStrategy = Literal["single_pass", "dependency_graph"]


class SettingsError(Exception):
    """Raised when a settings file or override is invalid."""
    pass


class EngineSettings(BaseModel):
    """Settings for the schema store and the evaluation engine.

    Attributes:
        store_path: JSON file backing the schema store. Relative paths are
            resolved against the project root at startup.
        storage_key: Namespace key the schema table is stored under.
        derivation_strategy: "single_pass" (snapshot recompute in field order)
            or "dependency_graph" (topological order with cycle reporting).
        max_formula_length: Longest formula text accepted after substitution.
        max_formula_nodes: Largest formula syntax tree accepted.
        max_exponent: Largest exponent magnitude allowed for ``**``.
    """

    store_path: Path = Field(
        default=Path("output/forms.json"),
        description="JSON file backing the schema store",
    )
    storage_key: str = Field(
        default="dynamicForms",
        min_length=1,
        description="Namespace key for the schema table",
    )
    derivation_strategy: DerivationStrategy = Field(
        default="single_pass",
        description="Derived-field recomputation strategy",
    )
    max_formula_length: int = Field(default=DEFAULT_MAX_FORMULA_LENGTH, gt=0)
    max_formula_nodes: int = Field(default=DEFAULT_MAX_FORMULA_NODES, gt=0)
    max_exponent: int = Field(default=DEFAULT_MAX_EXPONENT, ge=0)

    @field_validator("storage_key")
    @classmethod
    def validate_storage_key(cls, v: str) -> str:
        """Storage key is used verbatim as a JSON object key."""
        if v != v.strip():
            raise ValueError("storage_key must not have leading or trailing whitespace")
        return v


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    """Collect FORM_BUILDER_<FIELD> overrides for known settings fields."""
    overrides = {}
    for name in EngineSettings.model_fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in env and env[key] != "":
            overrides[name] = env[key]
    return overrides


def load_settings(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> EngineSettings:
    """Load engine settings from YAML plus environment overrides.

    Args:
        config_path: Optional explicit path to a YAML settings file. If not
            provided, FORM_BUILDER_CONFIG or ./form_builder.yaml is used when present.
        env: Environment mapping (defaults to os.environ).

    Returns:
        EngineSettings with defaults for anything not configured.

    Raises:
        SettingsError: If the file exists but is invalid, or an override
            does not validate.
    """
    if env is None:
        env = os.environ

    explicit = config_path is not None
    if config_path is None:
        env_path = env.get(CONFIG_PATH_ENV)
        explicit = bool(env_path)
        config_path = Path(env_path) if env_path else Path.cwd() / DEFAULT_CONFIG_FILENAME
    config_path = Path(config_path)

    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SettingsError(f"Invalid YAML in settings file {config_path}: {e}")
        except OSError as e:
            raise SettingsError(f"Cannot read settings file {config_path}: {e}")

        if loaded is None:
            logger.warning(f"Empty settings file at {config_path}")
        elif not isinstance(loaded, dict):
            raise SettingsError(f"Settings file {config_path} must contain a mapping")
        else:
            data.update(loaded)
            logger.debug(f"Loaded settings from {config_path}")
    elif explicit:
        raise SettingsError(f"Settings file not found: {config_path}")

    data.update(_env_overrides(env))

    try:
        return EngineSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings: {e}")
