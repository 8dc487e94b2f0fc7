"""Parser for Swiss invoices (CHF, German labels, dot decimals).

Swiss invoices come both as order summaries ("1 x Artikel CHF 49.90") and as
VAT tables with ASIN markers; the table layout is preferred when present.
"""

from typing import ClassVar

from invoice_pipeline.classification.schema import InvoiceFormat
from invoice_pipeline.extraction.english_parsers import StandardParser
from invoice_pipeline.extraction.items import LineItemBuilder, TableRowScanner
from invoice_pipeline.extraction.locales import SWITZERLAND
from invoice_pipeline.extraction.schema import LineItem


class SwissParser(StandardParser):
    """German-speaking Switzerland, VAT-inclusive prices."""

    profile = SWITZERLAND
    business: ClassVar[bool] = False

    def extract_items(self, text: str | None) -> list[LineItem]:
        if not text:
            return []
        scanner = TableRowScanner(self.profile.amount_style, self.settings.item_window_lines)
        rows = scanner.scan(text)
        if rows:
            builder = LineItemBuilder(self.settings, self.detect_currency(text), self.business)
            return builder.build(rows)
        return super().extract_items(text)

    @property
    def variant(self) -> str:
        return "de-ch"


class SwissBusinessParser(SwissParser):
    """Swiss business invoices reporting ex-VAT prices."""

    invoice_format = InvoiceFormat.BUSINESS_EX_VAT
    business = True

    @property
    def variant(self) -> str:
        return "de-ch-business"
