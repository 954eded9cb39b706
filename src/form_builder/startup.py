"""Centralized initialization for all form_builder entry points.

This module provides a single point of initialization for:
- Environment variables (.env loading)
- Engine settings (YAML file + FORM_BUILDER_* overrides)
- Schema store path resolution

Entry points (CLI, embedding applications) should use ensure_initialized()
to guarantee consistent startup behavior.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from form_builder.config.settings import DEFAULT_CONFIG_FILENAME, EngineSettings, load_settings

logger = logging.getLogger(__name__)


@dataclass
class StartupState:
    """Resolved configuration after initialization."""

    project_root: Path
    settings: EngineSettings
    env_loaded: bool = False


# Module-level state
_initialized: bool = False
_state: Optional[StartupState] = None


def _find_project_root(start_path: Optional[Path] = None) -> Path:
    """Find project root by looking for form_builder.yaml or pyproject.toml.

    Args:
        start_path: Starting path for search. Defaults to the working directory.

    Returns:
        Project root directory.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    for parent in [current] + list(current.parents):
        if (parent / DEFAULT_CONFIG_FILENAME).exists():
            return parent
        if (parent / "pyproject.toml").exists():
            return parent
    return current


def _load_env(project_root: Path) -> bool:
    """Load .env file from project root.

    Returns:
        True if .env was loaded, False otherwise.
    """
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded .env from {env_path}")
        return True
    logger.debug(f".env not found at {env_path}")
    return False


def _resolve_settings(project_root: Path, config_path: Optional[Path]) -> EngineSettings:
    """Load settings and anchor a relative store path at the project root."""
    if config_path is None and (project_root / DEFAULT_CONFIG_FILENAME).exists():
        config_path = project_root / DEFAULT_CONFIG_FILENAME

    settings = load_settings(config_path)
    if not settings.store_path.is_absolute():
        settings = settings.model_copy(update={"store_path": project_root / settings.store_path})
    logger.debug(f"Schema store: {settings.store_path} (key '{settings.storage_key}')")
    return settings


def ensure_initialized(config_path: Optional[Path] = None) -> StartupState:
    """Ensure the application is initialized (idempotent).

    Loads .env and settings on first call. Subsequent calls return cached
    state.

    Args:
        config_path: Optional explicit settings file (first call only).

    Raises:
        SettingsError: If the settings file or an override is invalid.

    Returns:
        Current StartupState.
    """
    global _initialized, _state

    if _initialized and _state is not None:
        return _state

    project_root = _find_project_root()
    env_loaded = _load_env(project_root)
    settings = _resolve_settings(project_root, config_path)
    _state = StartupState(project_root=project_root, settings=settings, env_loaded=env_loaded)
    _initialized = True

    return _state


def get_state() -> StartupState:
    """Get current startup state.

    Raises:
        RuntimeError: If not initialized. Call ensure_initialized() first.
    """
    if not _initialized or _state is None:
        raise RuntimeError(
            "startup not initialized. Call ensure_initialized() first."
        )
    return _state


def get_settings() -> EngineSettings:
    """Get engine settings, initializing if needed."""
    return ensure_initialized().settings


def reset_for_testing() -> None:
    """Reset initialization state for test isolation.

    Should only be used in tests.
    """
    global _initialized, _state
    _initialized = False
    _state = None
