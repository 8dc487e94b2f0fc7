"""Parser selection by (format, language).

Implements Factory Pattern for parser selection with registry pattern for extensibility.

Based on:
- Factory Pattern: https://refactoring.guru/design-patterns/factory-method/python
- Registry Pattern: Python Cookbook 3rd Edition, Recipe 9.22

Parser variants are a closed set of tags. Selection is a pure function of the
format classification and language detection, resolved through a static
route table; unregistered pairs fall back to the closest parser for the
layout (an EU-table variant for EU and business invoices, an English parser
otherwise) so a parser always exists.
"""

import logging
from collections.abc import Mapping

from invoice_pipeline.classification.schema import (
    FormatClassification,
    InvoiceFormat,
    Language,
    LanguageDetectionResult,
)
from invoice_pipeline.extraction.base import BaseParser
from invoice_pipeline.extraction.english_parsers import (
    AustralianParser,
    BritishParser,
    CanadianParser,
    UnitedStatesParser,
)
from invoice_pipeline.extraction.eu_parsers import (
    BusinessBritishParser,
    BusinessFrenchParser,
    BusinessGermanParser,
    BusinessItalianParser,
    BusinessSpanishParser,
    ConsumerBritishParser,
    ConsumerFrenchParser,
    ConsumerGermanParser,
    ConsumerItalianParser,
    ConsumerSpanishParser,
)
from invoice_pipeline.extraction.japanese_parser import JapaneseParser
from invoice_pipeline.extraction.swiss_parser import SwissBusinessParser, SwissParser
from invoice_pipeline.shared import metrics
from invoice_pipeline.shared.config import Settings
from invoice_pipeline.validation.service import ValidationEngine

logger = logging.getLogger(__name__)

DEFAULT_PARSER = "en-us"

_STANDARD = InvoiceFormat.CONSUMER_STANDARD
_CONSUMER_EU = InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE
_BUSINESS = InvoiceFormat.BUSINESS_EX_VAT

# Regions whose own English parser is closer than the US one
_REGIONAL_ENGLISH = (Language.GB, Language.AU, Language.CA)

# EU-table layouts never fall back to a dollar-column parser
_EU_TABLE_FALLBACKS = {
    _CONSUMER_EU: "consumer-gb",
    _BUSINESS: "business-gb",
}

Route = tuple[InvoiceFormat, Language]


class ParserRegistry:
    """Registry of available parser variants.

    Maintains a mapping of variant tags to parser classes, and of
    (format, language) pairs to variant tags. Supports runtime registration
    of new variants.
    """

    _parsers: dict[str, type[BaseParser]] = {
        "consumer-de": ConsumerGermanParser,
        "consumer-fr": ConsumerFrenchParser,
        "consumer-es": ConsumerSpanishParser,
        "consumer-it": ConsumerItalianParser,
        "consumer-gb": ConsumerBritishParser,
        "business-de": BusinessGermanParser,
        "business-fr": BusinessFrenchParser,
        "business-es": BusinessSpanishParser,
        "business-it": BusinessItalianParser,
        "business-gb": BusinessBritishParser,
        "en-us": UnitedStatesParser,
        "en-gb": BritishParser,
        "en-au": AustralianParser,
        "en-ca": CanadianParser,
        "de-ch": SwissParser,
        "de-ch-business": SwissBusinessParser,
        "jp": JapaneseParser,
    }

    _routes: dict[Route, str] = {
        (_CONSUMER_EU, Language.DE): "consumer-de",
        (_CONSUMER_EU, Language.FR): "consumer-fr",
        (_CONSUMER_EU, Language.ES): "consumer-es",
        (_CONSUMER_EU, Language.IT): "consumer-it",
        (_CONSUMER_EU, Language.GB): "consumer-gb",
        (_BUSINESS, Language.DE): "business-de",
        (_BUSINESS, Language.FR): "business-fr",
        (_BUSINESS, Language.ES): "business-es",
        (_BUSINESS, Language.IT): "business-it",
        (_BUSINESS, Language.GB): "business-gb",
        (_STANDARD, Language.EN): "en-us",
        (_STANDARD, Language.GB): "en-gb",
        (_STANDARD, Language.AU): "en-au",
        (_STANDARD, Language.CA): "en-ca",
        (_STANDARD, Language.CH): "de-ch",
        (_CONSUMER_EU, Language.CH): "de-ch",
        (_BUSINESS, Language.CH): "de-ch-business",
        (_STANDARD, Language.JP): "jp",
    }

    @classmethod
    def register(
        cls, tag: str, parser_class: type[BaseParser], routes: tuple[Route, ...] = ()
    ) -> None:
        """Register a new parser variant.

        Args:
            tag: Variant identifier
            parser_class: Parser class implementing BaseParser
            routes: (format, language) pairs served by the variant
        """
        cls._parsers[tag] = parser_class
        for route in routes:
            cls._routes[route] = tag
        logger.info(f"Registered parser variant: {tag}")

    @classmethod
    def get_parser_class(cls, tag: str) -> type[BaseParser]:
        """Get parser class by variant tag.

        Args:
            tag: Variant identifier

        Returns:
            Parser class implementing BaseParser

        Raises:
            ValueError: If the tag is not in the registry
        """
        if tag not in cls._parsers:
            available = ", ".join(cls._parsers.keys())
            raise ValueError(f"Unknown parser variant: '{tag}'. Available parsers: {available}")
        return cls._parsers[tag]

    @classmethod
    def list_parsers(cls) -> list[str]:
        """List all registered variant tags.

        Returns:
            List of variant tags
        """
        return list(cls._parsers.keys())

    @classmethod
    def is_routed(cls, invoice_format: InvoiceFormat, language: Language) -> bool:
        """Check whether a pair has its own registered variant (no fallback)."""
        return (
            invoice_format != InvoiceFormat.UNKNOWN and (invoice_format, language) in cls._routes
        )

    @classmethod
    def resolve(
        cls,
        invoice_format: InvoiceFormat,
        language: Language,
        scores: Mapping[str, int] | None = None,
    ) -> str:
        """Resolve a (format, language) pair to a variant tag.

        EU-table formats without a route for the detected language go to the
        routed language with the highest detection score (earlier signal-table
        entry on ties), or to the English EU-table variant when no routed
        language scored. Other unregistered pairs fall back to the same-region
        English parser for GB/AU/CA and to en-us otherwise.

        Args:
            invoice_format: Classified layout family
            language: Detected language variant
            scores: Raw detection points per language code

        Returns:
            Registered variant tag
        """
        if cls.is_routed(invoice_format, language):
            return cls._routes[(invoice_format, language)]
        if language in _REGIONAL_ENGLISH:
            return cls._routes.get((_STANDARD, language), DEFAULT_PARSER)
        if invoice_format in _EU_TABLE_FALLBACKS:
            return cls._best_scoring_route(invoice_format, scores or {})
        return DEFAULT_PARSER

    @classmethod
    def _best_scoring_route(cls, invoice_format: InvoiceFormat, scores: Mapping[str, int]) -> str:
        best_tag, best_score = _EU_TABLE_FALLBACKS[invoice_format], 0
        for code, score in scores.items():
            tag = cls._routes.get((invoice_format, Language(code)))
            if tag is not None and score > best_score:
                best_tag, best_score = tag, score
        return best_tag


def select_parser(
    classification: FormatClassification,
    detection: LanguageDetectionResult,
    settings: Settings,
    validator: ValidationEngine | None = None,
) -> BaseParser:
    """Factory function to create the parser for one invoice.

    Args:
        classification: Format classifier result
        detection: Language detector result
        settings: Application settings
        validator: Shared validation engine (built from settings when omitted)

    Returns:
        Parser instance; never fails for supported enums

    Example:
        >>> parser = select_parser(classification, detection, settings)
        >>> record = parser.extract(cleaned_text)
    """
    tag = ParserRegistry.resolve(classification.format, detection.language, detection.scores)
    if not ParserRegistry.is_routed(classification.format, detection.language):
        logger.warning(
            f"No parser registered for ({classification.format.value}, "
            f"{detection.language.value}); falling back to '{tag}'"
        )

    parser = ParserRegistry.get_parser_class(tag)(settings, validator)
    if not parser.is_available():
        logger.warning(f"Parser '{tag}' is not fully available. Check its locale tables.")

    if settings.metrics_enabled:
        metrics.parser_selections_total.labels(parser=tag).inc()
    logger.info(f"Selected parser: {tag}")
    return parser


def check_parser_health(settings: Settings) -> dict[str, bool]:
    """Instantiate every registered variant and check its field extractors.

    A variant is healthy when it is available and every field extractor
    returns absence for empty input instead of raising.

    Args:
        settings: Application settings

    Returns:
        Mapping of variant tag to health status
    """
    health: dict[str, bool] = {}
    for tag in ParserRegistry.list_parsers():
        try:
            parser = ParserRegistry.get_parser_class(tag)(settings)
            healthy = parser.is_available() and all(
                extractor(empty) is None
                for empty in (None, "")
                for extractor in (
                    parser.extract_order_number,
                    parser.extract_order_date,
                    parser.extract_subtotal,
                    parser.extract_shipping,
                    parser.extract_tax,
                    parser.extract_total,
                    parser.extract_discount,
                )
            )
            healthy = (
                healthy and parser.extract_items(None) == [] and parser.extract_items("") == []
            )
        except Exception as e:
            logger.error(f"Parser '{tag}' failed health check: {e}")
            healthy = False
        health[tag] = healthy
    return health
