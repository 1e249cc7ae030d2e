"""
Tests for configuration management in `pain_insights/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Boolean parsing for the parallel analyses switch
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog
from pydantic import ValidationError

from pain_insights.config import (
    AnalyticsConfig,
    AppConfig,
    LoggingConfig,
    get_config,
    load_config_from_env,
)
from pain_insights.observability import configure_logging


@pytest.fixture(autouse=True)
def clear_config_cache() -> Iterator[None]:
    """Ensure get_config cache is cleared before and after each test."""
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("MAX_RECOMMENDATIONS", raising=False)
    monkeypatch.delenv("ENGAGEMENT_WINDOW_DAYS", raising=False)
    monkeypatch.delenv("PARALLEL_ANALYSES", raising=False)

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.analytics.max_recommendations == 8
    assert config.analytics.engagement_window_days == 7
    assert config.analytics.parallel_analyses is True


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("dev", "development"), ("Stage", "staging"), ("prod", "production")],
)
def test_environment_aliases(monkeypatch: pytest.MonkeyPatch, raw: str, expected: str) -> None:
    monkeypatch.setenv("ENVIRONMENT", raw)

    config = load_config_from_env()

    assert config.environment == expected
    assert config.debug is (expected == "development")
    assert config.logging.format == ("console" if config.debug else "json")


def test_parallel_analyses_boolean_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")

    monkeypatch.setenv("PARALLEL_ANALYSES", "false")
    assert load_config_from_env().analytics.parallel_analyses is False

    monkeypatch.setenv("PARALLEL_ANALYSES", "Yes")
    assert load_config_from_env().analytics.parallel_analyses is True


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")

    # Unknown level should coerce to INFO
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    assert load_config_from_env().logging.level == "INFO"

    monkeypatch.setenv("LOG_LEVEL", "error")
    assert load_config_from_env().logging.level == "ERROR"


def test_analytics_tunables_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_RECOMMENDATIONS", "3")
    monkeypatch.setenv("ENGAGEMENT_WINDOW_DAYS", "14")

    analytics = load_config_from_env().analytics

    assert analytics.max_recommendations == 3
    assert analytics.engagement_window_days == 14


@pytest.mark.parametrize("field", ["max_recommendations", "engagement_window_days"])
def test_non_positive_tunables_rejected(field: str) -> None:
    with pytest.raises(ValidationError):
        AnalyticsConfig(**{field: 0})


def test_get_config_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache


def test_app_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        AppConfig(environment="production", debug=True, logging=LoggingConfig())


@pytest.mark.parametrize("log_format", ["json", "console"])
def test_configure_logging(log_format: str) -> None:
    configure_logging(LoggingConfig(level="DEBUG", format=log_format))

    processors = structlog.get_config()["processors"]
    expected = (
        structlog.dev.ConsoleRenderer
        if log_format == "console"
        else structlog.processors.JSONRenderer
    )
    assert isinstance(processors[-1], expected)
    structlog.reset_defaults()
