"""Unit tests for parser selection.

Tests cover:
- Parser registry lookups and runtime registration
- Route resolution, EU-table and English fallbacks
- Parser health check
"""

import logging

import pytest

from invoice_pipeline.classification.schema import (
    FormatClassification,
    InvoiceFormat,
    Language,
    LanguageDetectionResult,
)
from invoice_pipeline.extraction.english_parsers import (
    BritishParser,
    StandardParser,
    UnitedStatesParser,
)
from invoice_pipeline.extraction.eu_parsers import BusinessFrenchParser
from invoice_pipeline.extraction.factory import (
    DEFAULT_PARSER,
    ParserRegistry,
    check_parser_health,
    select_parser,
)
from invoice_pipeline.extraction.locales import UNITED_STATES
from invoice_pipeline.shared.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Create settings without .env overrides."""
    return Settings(_env_file=None, metrics_enabled=False)


def _classification(invoice_format: InvoiceFormat) -> FormatClassification:
    return FormatClassification(format=invoice_format, confidence=1.0)


def _detection(language: Language) -> LanguageDetectionResult:
    return LanguageDetectionResult(language=language, confidence=1.0)


def test_parser_registry_default_parsers() -> None:
    """Test that registry contains every variant tag."""
    parsers = ParserRegistry.list_parsers()

    for tag in ("consumer-de", "business-fr", "en-us", "en-gb", "en-ca", "de-ch", "jp"):
        assert tag in parsers
    assert len(parsers) >= 17


def test_parser_registry_get_parser_class() -> None:
    """Test getting a parser class from the registry."""
    assert ParserRegistry.get_parser_class("business-fr") == BusinessFrenchParser


def test_parser_registry_unknown_parser() -> None:
    """Test that unknown variant raises ValueError listing available parsers."""
    with pytest.raises(ValueError, match="Unknown parser variant") as exc_info:
        ParserRegistry.get_parser_class("nonexistent")

    assert "Available parsers" in str(exc_info.value)
    assert "en-us" in str(exc_info.value)


def test_parser_registry_register_new_parser(settings: Settings) -> None:
    """Test registering a new parser variant with its own route."""

    class TestParser(StandardParser):
        profile = UNITED_STATES

        @property
        def variant(self) -> str:
            return "test"

    route = (InvoiceFormat.BUSINESS_EX_VAT, Language.JP)
    ParserRegistry.register("test", TestParser, routes=(route,))
    try:
        assert "test" in ParserRegistry.list_parsers()
        assert ParserRegistry.get_parser_class("test") == TestParser
        assert ParserRegistry.resolve(*route) == "test"
    finally:
        del ParserRegistry._parsers["test"]
        del ParserRegistry._routes[route]


@pytest.mark.parametrize(
    ("invoice_format", "language", "expected"),
    [
        (InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE, Language.DE, "consumer-de"),
        (InvoiceFormat.BUSINESS_EX_VAT, Language.FR, "business-fr"),
        (InvoiceFormat.CONSUMER_STANDARD, Language.EN, "en-us"),
        (InvoiceFormat.CONSUMER_STANDARD, Language.JP, "jp"),
        (InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE, Language.CH, "de-ch"),
        (InvoiceFormat.BUSINESS_EX_VAT, Language.CH, "de-ch-business"),
    ],
)
def test_resolve_registered_routes(
    invoice_format: InvoiceFormat, language: Language, expected: str
) -> None:
    """Test that registered (format, language) pairs resolve to their variant."""
    assert ParserRegistry.resolve(invoice_format, language) == expected


@pytest.mark.parametrize(
    ("invoice_format", "language", "expected"),
    [
        (InvoiceFormat.UNKNOWN, Language.DE, DEFAULT_PARSER),
        (InvoiceFormat.UNKNOWN, Language.EN, DEFAULT_PARSER),
        (InvoiceFormat.UNKNOWN, Language.GB, "en-gb"),
        (InvoiceFormat.BUSINESS_EX_VAT, Language.AU, "en-au"),
        (InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE, Language.CA, "en-ca"),
        (InvoiceFormat.CONSUMER_STANDARD, Language.DE, DEFAULT_PARSER),
    ],
)
def test_resolve_falls_back_to_english(
    invoice_format: InvoiceFormat, language: Language, expected: str
) -> None:
    """Test that unknown formats and unregistered pairs select an English parser."""
    assert ParserRegistry.resolve(invoice_format, language) == expected


@pytest.mark.parametrize(
    ("invoice_format", "language", "scores", "expected"),
    [
        (InvoiceFormat.BUSINESS_EX_VAT, Language.EN, {"EN": 0, "FR": 23, "DE": 8}, "business-fr"),
        (InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE, Language.EN, {"DE": 15, "FR": 15}, "consumer-de"),
        (InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE, Language.JP, {"JP": 40, "IT": 12}, "consumer-it"),
        (InvoiceFormat.BUSINESS_EX_VAT, Language.EN, {"EN": 30, "DE": 0}, "business-gb"),
        (InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE, Language.EN, None, "consumer-gb"),
    ],
)
def test_resolve_eu_layouts_stay_on_eu_table_parsers(
    invoice_format: InvoiceFormat,
    language: Language,
    scores: dict[str, int] | None,
    expected: str,
) -> None:
    """Test that unrouted EU and business pairs pick the best-scoring EU-table variant."""
    assert ParserRegistry.resolve(invoice_format, language, scores) == expected


def test_select_parser_weak_language_business_invoice(
    settings: Settings, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a business invoice with an English fallback still gets a business parser."""
    detection = LanguageDetectionResult(
        language=Language.EN, confidence=0.0, scores={"EN": 0, "FR": 23}, fallback=True
    )

    with caplog.at_level(logging.INFO):
        parser = select_parser(_classification(InvoiceFormat.BUSINESS_EX_VAT), detection, settings)

    assert isinstance(parser, BusinessFrenchParser)
    assert "falling back to 'business-fr'" in caplog.text


def test_select_parser_returns_instance(settings: Settings) -> None:
    """Test that the factory instantiates the selected variant."""
    parser = select_parser(
        _classification(InvoiceFormat.CONSUMER_STANDARD), _detection(Language.GB), settings
    )

    assert isinstance(parser, BritishParser)
    assert parser.variant == "en-gb"


def test_select_parser_unknown_format_logs_fallback(
    settings: Settings, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that an Unknown format selects en-us and logs the fallback."""
    with caplog.at_level(logging.INFO):
        parser = select_parser(
            _classification(InvoiceFormat.UNKNOWN), _detection(Language.FR), settings
        )

    assert isinstance(parser, UnitedStatesParser)
    assert "falling back to 'en-us'" in caplog.text
    assert "Selected parser: en-us" in caplog.text


def test_check_parser_health_all_variants(settings: Settings) -> None:
    """Test that every registered variant passes the health check."""
    health = check_parser_health(settings)

    assert set(health) == set(ParserRegistry.list_parsers())
    assert all(health.values())
