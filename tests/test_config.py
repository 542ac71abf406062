"""Tests for settings loading and structured logging setup."""

from __future__ import annotations

import pytest
import structlog

from src.account360.config import Environment, Settings, get_settings
from src.account360.observability.logging import configure_structlog


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestSettings:
    def test_defaults(self, monkeypatch) -> None:
        for name in ("ENVIRONMENT", "LOG_LEVEL", "PORTFOLIO_MAX_CONCURRENCY"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.ENVIRONMENT == Environment.development
        assert settings.LOG_LEVEL == "INFO"
        assert settings.PORTFOLIO_MAX_CONCURRENCY == 8

    def test_environment_override(self, monkeypatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("PORTFOLIO_MAX_CONCURRENCY", "2")
        get_settings.cache_clear()

        settings = get_settings()

        assert settings.ENVIRONMENT == Environment.production
        assert settings.PORTFOLIO_MAX_CONCURRENCY == 2

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestConfigureStructlog:
    @pytest.mark.parametrize("environment", ["development", "production"])
    def test_configures_renderer(self, monkeypatch, reset_structlog, environment: str) -> None:
        monkeypatch.setenv("ENVIRONMENT", environment)
        get_settings.cache_clear()

        configure_structlog()

        renderer = structlog.get_config()["processors"][-1]
        if environment == "production":
            assert isinstance(renderer, structlog.processors.JSONRenderer)
        else:
            assert isinstance(renderer, structlog.dev.ConsoleRenderer)
