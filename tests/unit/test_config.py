"""Unit tests for configuration management."""

import logging
import os
from collections.abc import Generator
from decimal import Decimal

import pytest

from invoice_pipeline.shared.config import Settings, configure_logging, get_settings


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables before and after test."""
    original_env = dict(os.environ)
    env_vars = [k for k in os.environ if k.upper().startswith("INVOICE_")]
    for var in env_vars:
        del os.environ[var]
    yield
    os.environ.clear()
    os.environ.update(original_env)


def test_settings_defaults(clean_env: None) -> None:
    """Test that settings have correct default values."""
    settings = Settings(_env_file=None)

    assert settings.environment == "development"
    assert settings.log_level == "INFO"
    assert settings.service_name == "invoice-extraction-pipeline"
    assert settings.service_version == "0.1.0"


def test_policy_defaults(clean_env: None) -> None:
    """Test detection and validation thresholds default to the documented policy."""
    settings = Settings(_env_file=None)

    assert settings.language_confidence_threshold == 0.5
    assert settings.ocr_price_threshold == Decimal("5000")
    assert settings.ocr_magnitude_ratio == Decimal("10")
    assert settings.subtotal_rounding_tolerance == Decimal("0.10")
    assert settings.subtotal_minor_tolerance == Decimal("1.00")
    assert settings.subtotal_critical_tolerance == Decimal("5.00")
    assert settings.suspicious_price_threshold == Decimal("1000")
    assert settings.corrupted_price_threshold == Decimal("10000")
    assert settings.error_penalty == 20
    assert settings.warning_penalty == 5
    assert settings.batch_max_workers == 4


def test_settings_from_env_vars(clean_env: None) -> None:
    """Test that settings can be overridden via environment variables."""
    os.environ["INVOICE_ENVIRONMENT"] = "production"
    os.environ["INVOICE_LOG_LEVEL"] = "ERROR"
    os.environ["INVOICE_OCR_PRICE_THRESHOLD"] = "2500"
    os.environ["INVOICE_BATCH_MAX_WORKERS"] = "8"

    settings = Settings(_env_file=None)

    assert settings.environment == "production"
    assert settings.log_level == "ERROR"
    assert settings.ocr_price_threshold == Decimal("2500")
    assert settings.batch_max_workers == 8


def test_settings_case_insensitive(clean_env: None) -> None:
    """Test that environment variables are case insensitive."""
    os.environ["invoice_log_level"] = "DEBUG"

    settings = Settings(_env_file=None)

    assert settings.log_level == "DEBUG"


def test_settings_reject_invalid_threshold(clean_env: None) -> None:
    """Test that out-of-range confidence thresholds are rejected."""
    with pytest.raises(ValueError):
        Settings(_env_file=None, language_confidence_threshold=1.5)


def test_get_settings_factory() -> None:
    """Test that factory function returns Settings instance."""
    settings = get_settings()

    assert isinstance(settings, Settings)


def test_configure_logging_applies_level(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that configure_logging passes the configured level to basicConfig."""
    calls: list[dict] = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging(Settings(_env_file=None, log_level="WARNING"))

    assert calls[0]["level"] == logging.WARNING
    assert "%(name)s" in calls[0]["format"]
