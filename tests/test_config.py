"""Tests for settings loading."""

import pytest

from seabot.config import load_settings


class TestLoadSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SEABOT_PREFIXES", raising=False)
        settings = load_settings()
        assert settings.prefixes == [".", "!", "#", "/"]
        assert settings.daily_limit == 30
        assert settings.cooldown_ms == 2000

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SEABOT_PREFIXES", '["$", ""]')
        monkeypatch.setenv("SEABOT_DAILY_LIMIT", "5")
        settings = load_settings()
        assert settings.prefixes == ["$"]
        assert settings.daily_limit == 5

    def test_empty_prefixes_rejected(self, monkeypatch):
        monkeypatch.setenv("SEABOT_PREFIXES", '[""]')
        with pytest.raises(ValueError, match="prefix"):
            load_settings()
