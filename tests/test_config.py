# Tests for settings and logging setup
# Created: 2026-02-14

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError
from rich.logging import RichHandler

import missioncontrol.logging_setup as logging_setup
from missioncontrol.config import Settings, get_config_dir, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self, monkeypatch):
        for var in ("MISSIONCONTROL_POLL_INTERVAL_MS", "MISSIONCONTROL_SINK"):
            monkeypatch.delenv(var, raising=False)
        settings = Settings()
        assert settings.poll_interval_ms == 2000
        assert settings.poll_interval == 2.0
        assert settings.sink == "cli"
        assert settings.sink_command == "openclaw"
        assert settings.standup_session_key == "agent:main:main"

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MISSIONCONTROL_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("MISSIONCONTROL_POLL_INTERVAL_MS", "500")
        monkeypatch.setenv("MISSIONCONTROL_SINK", "http")
        monkeypatch.setenv("MISSIONCONTROL_SINK_URL", "http://gw/send")

        settings = get_settings()

        assert settings.data_dir == Path(tmp_path)
        assert settings.store_dir == Path(tmp_path) / "store"
        assert settings.poll_interval == 0.5
        assert settings.sink == "http"
        assert settings.sink_url == "http://gw/send"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    @pytest.mark.parametrize("value", ["0", "-100"])
    def test_poll_interval_must_be_positive(self, monkeypatch, value):
        monkeypatch.setenv("MISSIONCONTROL_POLL_INTERVAL_MS", value)
        with pytest.raises(ValidationError):
            Settings()

    def test_unknown_sink_rejected(self, monkeypatch):
        monkeypatch.setenv("MISSIONCONTROL_SINK", "carrier-pigeon")
        with pytest.raises(ValidationError):
            Settings()

    def test_sink_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(sink_timeout=0)

    def test_get_config_dir_creates_directory(self, monkeypatch, tmp_path):
        target = tmp_path / "nested" / "mc"
        monkeypatch.setenv("MISSIONCONTROL_DATA_DIR", str(target))

        assert get_config_dir() == target
        assert target.is_dir()


class TestLogging:
    def test_setup_logging_is_idempotent(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(logging_setup, "_configured", False)
        before = list(root.handlers)
        original_level = root.level

        try:
            logging_setup.setup_logging("debug")
            logging_setup.setup_logging("WARNING")

            added = [h for h in root.handlers if h not in before]
            assert len(added) == 1
            assert isinstance(added[0], RichHandler)
            assert root.level == logging.WARNING
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(original_level)
