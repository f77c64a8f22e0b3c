"""
Tests unitaires du chargement de configuration.
"""
from pathlib import Path

import pytest

from context_gateway.config import loader
from context_gateway.config.loader import get_settings, load_config, reload_config
from context_gateway.config.settings import Settings
from context_gateway.core.constants import DEFAULT_PROTECTED_TOOLS, REDACTION_MARKER
from context_gateway.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clear_cache():
    loader._clear_config_cache()
    yield
    loader._clear_config_cache()


class TestLoadConfig:
    """Tests du loader TOML."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(tmp_path / "absent.toml"))
        assert exc_info.value.code == "config_error"

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[gateway\nenabled = ", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("UPSTREAM_TEST_URL", "http://amont.test")
        path = tmp_path / "config.toml"
        path.write_text('[upstream]\nbase_url = "${UPSTREAM_TEST_URL}"\n', encoding="utf-8")
        assert load_config(str(path))["upstream"]["base_url"] == "http://amont.test"

    def test_env_var_path_and_cache(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text("[gateway]\nrecency_floor_turns = 2\n", encoding="utf-8")
        monkeypatch.setenv(loader.CONFIG_ENV_VAR, str(path))

        first = load_config()
        path.write_text("[gateway]\nrecency_floor_turns = 5\n", encoding="utf-8")
        assert load_config() is first
        assert reload_config()["gateway"]["recency_floor_turns"] == 5

    def test_repository_config_is_valid(self):
        """Le config.toml livré se charge et donne les valeurs par défaut."""
        config_path = Path(__file__).resolve().parents[2] / "config.toml"
        settings = get_settings(load_config(str(config_path)))
        assert settings.enabled
        assert settings.protected_tools == DEFAULT_PROTECTED_TOOLS


class TestSettings:
    """Tests des dataclasses de configuration."""

    def test_defaults(self):
        settings = Settings.from_config({})
        assert settings.enabled
        assert settings.protected_tools == DEFAULT_PROTECTED_TOOLS
        assert settings.recency_floor_turns == 0
        assert settings.chars_per_token == 4
        assert settings.numeric_id_base == 0
        assert settings.redaction_marker == REDACTION_MARKER
        assert settings.supersede_writes.write_tools == ("write", "edit", "multiedit")
        assert settings.host.base_url == ""

    def test_sections_parsed(self):
        settings = Settings.from_config({
            "gateway": {"protected_tools": ["task"], "recency_floor_turns": 3, "session_header": "X-Conv"},
            "strategies": {"deduplication": {"enabled": False}},
            "prune_tool": {"nudge_frequency": 4},
            "upstream": {"base_url": "http://amont.test/"},
            "host": {"base_url": "http://hote.test"},
        })
        assert settings.protected_tools == ("task",)
        assert settings.recency_floor_turns == 3
        assert settings.session_header == "x-conv"
        assert not settings.deduplication.enabled
        assert settings.supersede_writes.enabled
        assert settings.prune_tool.nudge_frequency == 4
        assert settings.upstream.base_url == "http://amont.test"
        assert settings.host.base_url == "http://hote.test"

    def test_invalid_values_fall_back(self):
        settings = Settings.from_config({
            "gateway": {"enabled": "oui", "chars_per_token": "quatre", "recency_floor_turns": -5},
            "analysis": {"timeout_s": 10_000},
            "prune_tool": "pas une table",
        })
        assert settings.enabled
        assert settings.chars_per_token == 4
        assert settings.recency_floor_turns == 0
        assert settings.analysis_timeout_s == 600.0
        assert settings.prune_tool.nudge_frequency == 10

    def test_protected_tool_set_is_lowercase(self):
        settings = Settings.from_config({"gateway": {"protected_tools": ["Task", "TODOWRITE"]}})
        assert settings.protected_tool_set == frozenset({"task", "todowrite"})
