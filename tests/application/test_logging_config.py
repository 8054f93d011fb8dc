"""Tests for logging configuration."""

import logging

import structlog
from storefront.utils.logging import build_processors, configure_logging, get_environment, get_log_level


class TestLogLevel:
    def test_development_defaults_to_debug(self, monkeypatch):
        monkeypatch.delenv("STOREFRONT_ENV", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        assert get_environment() == "development"
        assert get_log_level() == "DEBUG"

    def test_environment_mapping(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("STOREFRONT_ENV", "Production")

        assert get_log_level() == "INFO"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_ENV", "test")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        assert get_log_level() == "ERROR"


class TestProcessors:
    def test_json_in_production(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_ENV", "production")
        assert isinstance(build_processors()[-1], structlog.processors.JSONRenderer)

    def test_console_in_development(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_ENV", "development")
        assert isinstance(build_processors()[-1], structlog.dev.ConsoleRenderer)


class TestConfigureLogging:
    def test_file_handlers(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STOREFRONT_ENV", "test")
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        root = logging.getLogger()
        previous_handlers, previous_level = root.handlers[:], root.level

        try:
            configure_logging(log_dir=tmp_path / "logs")

            assert len(root.handlers) == 3
            assert (tmp_path / "logs" / "storefront.log").exists()
            assert root.level == logging.WARNING
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = previous_handlers
            root.setLevel(previous_level)
            structlog.reset_defaults()

    def test_console_only(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_ENV", "test")
        root = logging.getLogger()
        previous_handlers, previous_level = root.handlers[:], root.level

        try:
            configure_logging(log_dir=None)

            assert len(root.handlers) == 1
        finally:
            root.handlers = previous_handlers
            root.setLevel(previous_level)
            structlog.reset_defaults()
