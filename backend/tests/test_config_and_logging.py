"""Tests for settings, logging setup and the database session module."""

import logging

import pytest
import structlog
from pydantic import ValidationError

from running_numbers.config import Settings, settings
from running_numbers.logging import configure_logging, setup_logging


class TestSettings:
    def test_defaults(self):
        assert settings.period_min == 2000
        assert settings.period_max == 3000
        assert settings.allocation_retry_attempts >= 1

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PERIOD_MIN", "2010")
        monkeypatch.setenv("LOCK_TIMEOUT_MS", "0")

        custom = Settings()

        assert custom.period_min == 2010
        assert custom.lock_timeout_ms == 0

    def test_rejects_inverted_period_range(self, monkeypatch):
        monkeypatch.setenv("PERIOD_MIN", "2100")
        monkeypatch.setenv("PERIOD_MAX", "2050")

        with pytest.raises(ValidationError):
            Settings()


class TestLogging:
    def test_configure_installs_structlog_formatter(self):
        configure_logging()

        handlers = [
            h
            for h in logging.getLogger().handlers
            if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)
        ]
        assert len(handlers) == 1

    def test_setup_logging_is_idempotent(self):
        setup_logging()
        before = list(logging.getLogger().handlers)
        setup_logging()

        assert logging.getLogger().handlers == before


class TestSession:
    def test_engine_uses_configured_url(self):
        from running_numbers.db import async_session_maker, engine

        assert engine.url.render_as_string(hide_password=False) == settings.database_url
        assert async_session_maker.kw["expire_on_commit"] is False
