"""Parsers for EU VAT table invoices (amazon.de/.fr/.es/.it/.co.uk).

Consumer and business invoices share the table layout and differ only in
which price column is reported; see items.py for the column rules.
"""

from typing import ClassVar

from invoice_pipeline.classification.schema import InvoiceFormat
from invoice_pipeline.extraction.base import BaseParser
from invoice_pipeline.extraction.items import LineItemBuilder, TableRowScanner
from invoice_pipeline.extraction.locales import FRENCH, GERMAN, ITALIAN, SPANISH, UNITED_KINGDOM
from invoice_pipeline.extraction.schema import LineItem


class EUTableParser(BaseParser):
    """Shared item extraction for ASIN-anchored VAT tables."""

    business: ClassVar[bool] = False

    def extract_items(self, text: str | None) -> list[LineItem]:
        if not text:
            return []
        scanner = TableRowScanner(self.profile.amount_style, self.settings.item_window_lines)
        builder = LineItemBuilder(self.settings, self.detect_currency(text), self.business)
        return builder.build(scanner.scan(text))


class EUConsumerParser(EUTableParser):
    """VAT-inclusive prices, as printed for private buyers."""

    invoice_format = InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE
    business = False


class EUBusinessParser(EUTableParser):
    """Ex-VAT prices with VAT itemized, as printed for business buyers."""

    invoice_format = InvoiceFormat.BUSINESS_EX_VAT
    business = True


class ConsumerGermanParser(EUConsumerParser):
    profile = GERMAN

    @property
    def variant(self) -> str:
        return "consumer-de"


class ConsumerFrenchParser(EUConsumerParser):
    profile = FRENCH

    @property
    def variant(self) -> str:
        return "consumer-fr"


class ConsumerSpanishParser(EUConsumerParser):
    profile = SPANISH

    @property
    def variant(self) -> str:
        return "consumer-es"


class ConsumerItalianParser(EUConsumerParser):
    profile = ITALIAN

    @property
    def variant(self) -> str:
        return "consumer-it"


class ConsumerBritishParser(EUConsumerParser):
    profile = UNITED_KINGDOM

    @property
    def variant(self) -> str:
        return "consumer-gb"


class BusinessGermanParser(EUBusinessParser):
    profile = GERMAN

    @property
    def variant(self) -> str:
        return "business-de"


class BusinessFrenchParser(EUBusinessParser):
    profile = FRENCH

    @property
    def variant(self) -> str:
        return "business-fr"


class BusinessSpanishParser(EUBusinessParser):
    profile = SPANISH

    @property
    def variant(self) -> str:
        return "business-es"


class BusinessItalianParser(EUBusinessParser):
    profile = ITALIAN

    @property
    def variant(self) -> str:
        return "business-it"


class BusinessBritishParser(EUBusinessParser):
    profile = UNITED_KINGDOM

    @property
    def variant(self) -> str:
        return "business-gb"
