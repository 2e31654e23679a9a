"""Startup validation of settings."""

import pytest

from skilltrack.config import _load_settings


class TestLoadSettings:

    def test_defaults_load(self, monkeypatch):
        monkeypatch.delenv("TIMEZONE", raising=False)
        assert _load_settings().timezone == "UTC"

    def test_named_zone_accepted(self, monkeypatch):
        monkeypatch.setenv("TIMEZONE", "Europe/Warsaw")
        assert _load_settings().timezone == "Europe/Warsaw"

    @pytest.mark.parametrize("zone", ["Mars/Olympus_Mons", ""])
    def test_unknown_zone_exits(self, monkeypatch, zone):
        monkeypatch.setenv("TIMEZONE", zone)
        with pytest.raises(SystemExit):
            _load_settings()

    def test_short_jwt_secret_exits(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "too-short")
        with pytest.raises(SystemExit):
            _load_settings()

    def test_zero_ai_attempts_exits(self, monkeypatch):
        monkeypatch.setenv("AI_MAX_ATTEMPTS", "0")
        with pytest.raises(SystemExit):
            _load_settings()
