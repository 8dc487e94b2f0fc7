"""Unit tests for language detection.

Tests cover:
- Signal scoring per language variant
- Tie-breaking between generic and regional English
- English fallback below the confidence threshold
"""

import logging

import pytest

from invoice_pipeline.classification.language_detector import (
    CORE_POINTS,
    SIGNAL_TABLE,
    LanguageDetector,
)
from invoice_pipeline.classification.schema import Language
from invoice_pipeline.shared.config import Settings

US_INVOICE = """amazon.com
Order Placed: January 15, 2024
Order Number: 123-4567890-1234567
Items Ordered Price
1 of: USB-C Cable, 6ft
Sold by: Cable Co
$12.99
Subtotal: $12.99
Shipping: $0.00
Tax: $1.07
Grand Total: $14.06
Payment Method: Visa
Thank you for your order"""

GERMAN_INVOICE = """Rechnung
amazon.de
Bestellnummer 302-1234567-1234567
Bestelldatum 15.03.2024
Zwischensumme 66,38 €
Versand 0,00 €
Gesamtbetrag 66,38 €"""

JAPANESE_INVOICE = """amazon.co.jp
注文番号: 250-1234567-1234567
注文日: 2024年3月15日
小計 ￥2,980
合計 ￥3,280"""


@pytest.fixture
def detector() -> LanguageDetector:
    """Create detector with default threshold."""
    return LanguageDetector(Settings(_env_file=None))


def test_signal_table_order() -> None:
    """Test that generic English precedes its regional variants."""
    languages = [signals.language for signals in SIGNAL_TABLE]

    assert languages[0] == Language.EN
    assert languages.index(Language.EN) < languages.index(Language.GB)
    assert len(set(languages)) == len(Language)


def test_detect_us_english(detector: LanguageDetector) -> None:
    """Test that amazon.com vocabulary beats British English."""
    result = detector.detect(US_INVOICE)

    assert result.language == Language.EN
    assert result.confidence == 1.0
    assert result.fallback is False
    assert result.scores["EN"] > result.scores["GB"]


def test_detect_german(detector: LanguageDetector) -> None:
    """Test that German terms, comma-euro amounts and dotted dates detect DE."""
    result = detector.detect(GERMAN_INVOICE)

    assert result.language == Language.DE
    assert result.scores["DE"] > result.scores["CH"]
    assert result.fallback is False


def test_detect_japanese(detector: LanguageDetector) -> None:
    """Test that kanji terminology and yen amounts detect JP."""
    result = detector.detect(JAPANESE_INVOICE)

    assert result.language == Language.JP
    assert result.confidence == 1.0


def test_score_counts_core_terms(detector: LanguageDetector) -> None:
    """Test that one core term scores the core weight."""
    scores = detector.score("Zwischensumme")

    assert scores["DE"] == CORE_POINTS


@pytest.mark.parametrize("text", [None, "", "lorem ipsum dolor", "Subtotal"])
def test_detect_falls_back_to_english(detector: LanguageDetector, text: str | None) -> None:
    """Test that low-confidence text falls back to English without raising."""
    result = detector.detect(text)

    assert result.language == Language.EN
    assert result.fallback is True
    assert result.confidence < 0.5


def test_detect_fallback_logs_warning(
    detector: LanguageDetector, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a fallback is logged as a warning."""
    with caplog.at_level(logging.WARNING):
        detector.detect("lorem ipsum")

    assert "falling back to English" in caplog.text


def test_detect_threshold_is_configurable() -> None:
    """Test that lowering the threshold accepts weaker evidence."""
    detector = LanguageDetector(Settings(_env_file=None, language_confidence_threshold=0.1))

    result = detector.detect("Zwischensumme")

    assert result.language == Language.DE
    assert result.fallback is False
