"""
Unit tests for settings and logging setup.
"""

import logging

import json_log_formatter
import pytest

from middleware.datagate.config import DEFAULT_ACTIONS, Settings
from middleware.datagate.instance import setup_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Defaults are valid."""
        settings = Settings()

        assert settings.log_level == "INFO"
        assert settings.log_format == "text"
        assert settings.auth_retries == 1
        assert settings.known_actions == DEFAULT_ACTIONS
        assert settings.generate_ids is False
        assert settings.validate_settings() == []

    def test_environment(self, monkeypatch):
        """Settings are read from DATAGATE_ variables."""
        monkeypatch.setenv("DATAGATE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DATAGATE_AUTH_RETRIES", "3")
        monkeypatch.setenv("DATAGATE_KNOWN_ACTIONS", '["GET", "SYNC"]')
        monkeypatch.setenv("DATAGATE_GENERATE_IDS", "true")

        settings = Settings()

        assert settings.log_level == "DEBUG"
        assert settings.auth_retries == 3
        assert settings.known_actions == ["GET", "SYNC"]
        assert settings.generate_ids is True

    def test_frozen(self):
        """Settings cannot be changed once created."""
        settings = Settings()
        with pytest.raises(Exception):
            settings.log_level = "DEBUG"

    def test_validate_reports_every_problem(self):
        """All problems are reported together."""
        settings = Settings(log_level="LOUD", log_format="xml", auth_retries=-1, known_actions=[])

        problems = settings.validate_settings()

        assert len(problems) == 4
        assert "log_level must be a logging level name, got 'LOUD'" in problems
        assert "log_format must be 'text' or 'json', got 'xml'" in problems

    def test_log_settings(self, caplog):
        """Settings are logged at info level."""
        with caplog.at_level(logging.INFO, logger="middleware.datagate.config"):
            Settings().log_settings()
        assert "Datagate settings" in caplog.text


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_text_format(self):
        """Text format uses a plain formatter."""
        setup_logging(Settings(log_level="WARNING"))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_json_format(self):
        """JSON format uses json_log_formatter."""
        setup_logging(Settings(log_format="json"))

        root = logging.getLogger()
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
