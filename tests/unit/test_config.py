"""Tests for settings parsing and production validation."""

from datetime import time

import pytest

from solarsync_engine.common.config import (
    SolarSyncSettings,
    get_settings,
    parse_time_of_day,
)
from tests.conftest import make_settings


class TestParseTimeOfDay:
    def test_valid(self):
        assert parse_time_of_day("19:00") == time(19, 0)
        assert parse_time_of_day(" 06:30 ") == time(6, 30)

    @pytest.mark.parametrize("value", ["", "7pm", "25:00", "19:00:00"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_time_of_day(value)


class TestSettings:
    def test_defaults(self):
        settings = SolarSyncSettings()
        assert settings.sync_timezone == "Asia/Kolkata"
        assert settings.window_start == time(19, 0)
        assert settings.window_end == time(6, 0)
        assert settings.token_safety_buffer_seconds == 300
        assert settings.scheduler_enabled is True

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SOLARSYNC_SYNC_WINDOW_START", "20:15")
        monkeypatch.setenv("SOLARSYNC_PLANT_SYNC_ENABLED", "false")
        settings = SolarSyncSettings()
        assert settings.window_start == time(20, 15)
        assert settings.plant_sync_enabled is False

    def test_interval_bounds(self):
        with pytest.raises(ValueError):
            make_settings(default_sync_interval_minutes=0)
        with pytest.raises(ValueError):
            make_settings(default_sync_interval_minutes=1441)

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("SOLARSYNC_API_KEY", "cached-key")
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestValidateForProduction:
    def test_production_rejects_default_api_key(self):
        settings = SolarSyncSettings(environment="production")
        with pytest.raises(RuntimeError, match="SOLARSYNC_API_KEY"):
            settings.validate_for_production()

    def test_development_warns_on_default_api_key(self):
        settings = SolarSyncSettings(environment="development")
        with pytest.warns(UserWarning):
            settings.validate_for_production()

    def test_production_with_real_key(self):
        make_settings(environment="production").validate_for_production()

    def test_malformed_window_fails_fast(self):
        settings = make_settings(sync_window_end="six")
        with pytest.raises(ValueError):
            settings.validate_for_production()
