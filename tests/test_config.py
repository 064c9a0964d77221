"""Configuration profiles and persistence."""

import json

import pytest

from mcp_health.config.settings import (
    CheckerConfig,
    ConfigurationManager,
    HealthProfile,
    load_config_from_env,
)
from mcp_health.core.deadline import LONG_TIMEOUT, SHORT_TIMEOUT


class TestProfiles:
    def test_builtin_profiles(self):
        manager = ConfigurationManager()
        assert manager.list_profiles() == ["default", "conservative", "quick"]
        assert manager.get_active_profile().name == "default"

    def test_default_timeouts(self):
        profile = ConfigurationManager().get_active_profile()
        assert profile.checker_settings("connection")["timeout"] == SHORT_TIMEOUT
        assert profile.checker_settings("compliance")["timeout"] == LONG_TIMEOUT
        assert profile.batch_size("connection") == 10
        assert profile.batch_size("compliance") == 5
        assert profile.batch_size("score") == 20

    def test_quick_profile_disables_compliance(self):
        manager = ConfigurationManager()
        manager.set_active_profile("quick")
        profile = manager.get_active_profile()
        assert profile.is_enabled("connection")
        assert not profile.is_enabled("compliance")
        assert profile.checker_settings("compliance")["enabled"] is False

    def test_unknown_profile(self):
        with pytest.raises(ValueError):
            ConfigurationManager().set_active_profile("turbo")

    def test_checker_parameters_flattened(self):
        profile = HealthProfile(
            name="custom",
            description="",
            checkers={"connection": CheckerConfig(parameters={"include_resources": False})},
        )
        settings = profile.checker_settings("connection")
        assert settings["include_resources"] is False
        assert "timeout" not in settings

    def test_mutation_does_not_leak_into_defaults(self):
        first = ConfigurationManager()
        first.get_active_profile().checkers["connection"].timeout = 1.0
        assert ConfigurationManager().get_checker_config("connection").timeout == SHORT_TIMEOUT


class TestConfigFiles:
    def test_save_and_load_round_trip(self, tmp_path):
        path = tmp_path / "health.json"
        manager = ConfigurationManager()
        manager.create_profile(
            HealthProfile(
                name="nightly",
                description="Nightly sweep",
                checkers={"connection": CheckerConfig(timeout=30.0)},
                connection_batch_size=50,
                score_change_threshold=10,
            )
        )
        manager.set_active_profile("nightly")
        manager.save_config(str(path))

        saved = json.loads(path.read_text())
        assert list(saved["profiles"]) == ["nightly"]

        loaded = ConfigurationManager(str(path))
        profile = loaded.get_active_profile()
        assert profile.name == "nightly"
        assert profile.connection_batch_size == 50
        assert profile.score_change_threshold == 10
        assert profile.checkers["connection"].timeout == 30.0

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Failed to load configuration"):
            ConfigurationManager(str(path))

    def test_env_selects_file_and_profile(self, tmp_path, monkeypatch):
        path = tmp_path / "health.json"
        path.write_text(json.dumps({"profiles": {"slow": {"description": "", "close_grace": 9.0}}}))
        monkeypatch.setenv("MCP_HEALTH_CONFIG", str(path))
        monkeypatch.setenv("MCP_HEALTH_PROFILE", "slow")

        manager = load_config_from_env()

        assert manager.get_active_profile().close_grace == 9.0

    def test_env_unknown_profile_ignored(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("MCP_HEALTH_CONFIG", raising=False)
        monkeypatch.setenv("MCP_HEALTH_PROFILE", "missing")
        assert load_config_from_env().active_profile == "default"
