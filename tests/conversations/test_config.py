"""Tests for engine settings loading."""

import pytest
from pydantic import ValidationError

from conversations.config import EngineSettings, get_settings


class TestEngineSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CONSOLE_USER_ID", raising=False)

        settings = EngineSettings(_env_file=None)

        assert settings.user_id == "me"
        assert settings.temp_id_prefix == "temp-"
        assert settings.sequential_gap_seconds == 60
        assert settings.send_grace_period_seconds == 30
        assert settings.disappearing_enabled is False
        assert settings.disappearing_timeout_hours == 24

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("CONSOLE_USER_ID", "agent-7")
        monkeypatch.setenv("CONSOLE_DISAPPEARING_ENABLED", "true")
        monkeypatch.setenv("CONSOLE_DISAPPEARING_TIMEOUT_HOURS", "168")

        settings = EngineSettings(_env_file=None)

        assert settings.user_id == "agent-7"
        assert settings.disappearing_enabled is True
        assert settings.disappearing_timeout_hours == 168

    def test_reads_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONSOLE_USER_NAME", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("CONSOLE_USER_NAME=Support Desk\nUNRELATED=1\n")

        settings = EngineSettings(_env_file=env_file)

        assert settings.user_name == "Support Desk"

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("CONSOLE_SWEEP_INTERVAL_SECONDS", "0")

        with pytest.raises(ValidationError):
            EngineSettings(_env_file=None)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
