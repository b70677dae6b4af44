"""Tests for settingskit.config and execution mode detection."""

import pytest
from pydantic import ValidationError

from settingskit import config as engine_config_module
from settingskit.config import EngineConfig
from settingskit.mode import ExecutionMode, detect_execution_mode


class TestEngineConfig:
    def test_defaults(self, monkeypatch):
        for var in ("UNKNOWN_KEYS", "DEFAULT_LANG", "PREFERENCES_FORMAT", "FALLBACK_VERSION", "EXECUTION_MODE"):
            monkeypatch.delenv(f"SETTINGSKIT_{var}", raising=False)
        c = EngineConfig()
        assert c.UNKNOWN_KEYS == "drop"
        assert c.DEFAULT_LANG == "en"
        assert c.PREFERENCES_FORMAT == "binary"
        assert c.FALLBACK_VERSION == "v1.0.0"
        assert c.EXECUTION_MODE == "auto"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SETTINGSKIT_UNKNOWN_KEYS", "report")
        monkeypatch.setenv("SETTINGSKIT_PREFERENCES_FORMAT", "json")
        c = EngineConfig()
        assert c.UNKNOWN_KEYS == "report"
        assert c.PREFERENCES_FORMAT == "json"

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.delenv("SETTINGSKIT_UNKNOWN_KEYS", raising=False)
        monkeypatch.setenv("UNKNOWN_KEYS", "report")
        assert EngineConfig().UNKNOWN_KEYS == "drop"

    def test_invalid_policy(self):
        with pytest.raises(ValidationError):
            EngineConfig(UNKNOWN_KEYS="explode")

    def test_fallback_version_canonical(self):
        assert EngineConfig(FALLBACK_VERSION="2.0.0").FALLBACK_VERSION == "v2.0.0"

    def test_fallback_version_invalid(self):
        with pytest.raises(ValidationError):
            EngineConfig(FALLBACK_VERSION="two")

    def test_lang_normalized(self):
        assert EngineConfig(DEFAULT_LANG="en_GB").DEFAULT_LANG == "en-gb"
        assert EngineConfig(DEFAULT_LANG=" ").DEFAULT_LANG == "en"


class TestExecutionMode:
    def test_detects_pytest(self, monkeypatch):
        monkeypatch.setattr(engine_config_module, "engine_config", EngineConfig(EXECUTION_MODE="auto"))
        assert detect_execution_mode() is ExecutionMode.TESTING

    @pytest.mark.parametrize("configured, expected", [
        ("production", ExecutionMode.PRODUCTION),
        ("devel", ExecutionMode.DEVEL),
        ("testing", ExecutionMode.TESTING),
    ])
    def test_configured(self, monkeypatch, configured, expected):
        monkeypatch.setattr(engine_config_module, "engine_config", EngineConfig(EXECUTION_MODE=configured))
        assert detect_execution_mode() is expected
