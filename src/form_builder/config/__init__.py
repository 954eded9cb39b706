"""Engine configuration management."""

from form_builder.config.settings import (
    EngineSettings,
    SettingsError,
    load_settings,
)

__all__ = [
    "EngineSettings",
    "SettingsError",
    "load_settings",
]
