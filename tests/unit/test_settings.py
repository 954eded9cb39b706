"""Unit tests for engine settings loading."""

from pathlib import Path

import pytest

from form_builder.config.settings import EngineSettings, SettingsError, load_settings


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings(env={})
        assert settings.store_path == Path("output/forms.json")
        assert settings.storage_key == "dynamicForms"
        assert settings.derivation_strategy == "single_pass"

    def test_yaml_file(self, tmp_path: Path):
        config = tmp_path / "form_builder.yaml"
        config.write_text(
            "storage_key: forms\nderivation_strategy: dependency_graph\nmax_exponent: 10\n",
            encoding="utf-8",
        )
        settings = load_settings(config, env={})
        assert settings.storage_key == "forms"
        assert settings.derivation_strategy == "dependency_graph"
        assert settings.max_exponent == 10

    def test_env_overrides_file(self, tmp_path: Path):
        config = tmp_path / "form_builder.yaml"
        config.write_text("storage_key: forms\n", encoding="utf-8")
        settings = load_settings(
            config,
            env={"FORM_BUILDER_STORAGE_KEY": "other", "FORM_BUILDER_MAX_FORMULA_NODES": "50"},
        )
        assert settings.storage_key == "other"
        assert settings.max_formula_nodes == 50

    def test_config_path_from_env(self, tmp_path: Path):
        config = tmp_path / "custom.yaml"
        config.write_text("store_path: /data/forms.json\n", encoding="utf-8")
        settings = load_settings(env={"FORM_BUILDER_CONFIG": str(config)})
        assert settings.store_path == Path("/data/forms.json")

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(SettingsError):
            load_settings(tmp_path / "absent.yaml", env={})

    def test_invalid_yaml(self, tmp_path: Path):
        config = tmp_path / "bad.yaml"
        config.write_text("storage_key: [unclosed\n", encoding="utf-8")
        with pytest.raises(SettingsError):
            load_settings(config, env={})

    def test_non_mapping(self, tmp_path: Path):
        config = tmp_path / "list.yaml"
        config.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(SettingsError):
            load_settings(config, env={})

    def test_invalid_strategy(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SettingsError):
            load_settings(env={"FORM_BUILDER_DERIVATION_STRATEGY": "iterative"})

    def test_empty_file_uses_defaults(self, tmp_path: Path):
        config = tmp_path / "empty.yaml"
        config.write_text("", encoding="utf-8")
        assert load_settings(config, env={}) == EngineSettings()
