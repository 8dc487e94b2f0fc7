"""Parsers for order-summary invoices (amazon.com, .co.uk, .com.au, .ca).

These layouts list articles as "1 of: <description> ... $39.99" or
"2 x <description> £12.99" with per-unit prices; there are no separate VAT
columns, so inflated prices can only be flagged, not replaced.
"""

import re
from decimal import Decimal
from typing import ClassVar

from invoice_pipeline.classification.schema import InvoiceFormat
from invoice_pipeline.extraction.amounts import to_money
from invoice_pipeline.extraction.base import BaseParser
from invoice_pipeline.extraction.items import LineItemBuilder
from invoice_pipeline.extraction.locales import AUSTRALIA, CANADA, UNITED_KINGDOM, UNITED_STATES
from invoice_pipeline.extraction.schema import LineItem
from invoice_pipeline.shared.config import Settings
from invoice_pipeline.validation.service import ValidationEngine

# Trailing order-summary annotations that are not part of the description
_DESCRIPTION_NOISE_RE = re.compile(
    r"\s*(?:Sold by|Vendu par|Condition|Supplied by|Shipped by)\b.*$", re.IGNORECASE
)


class StandardParser(BaseParser):
    """Item extraction for order-summary layouts."""

    invoice_format = InvoiceFormat.CONSUMER_STANDARD
    quantity_marker: ClassVar[str] = r"[x×]"

    def __init__(self, settings: Settings, validator: ValidationEngine | None = None) -> None:
        super().__init__(settings, validator)
        amount = self.profile.amount_style.pattern.pattern
        symbol = self.profile.price_symbol
        self._of_pattern = re.compile(
            rf"^(\d{{1,3}})\s+of:\s*(.{{1,300}}?)\s*(?:(?:{symbol})\s*)({amount})",
            re.MULTILINE | re.DOTALL,
        )
        self._times_pattern = re.compile(
            rf"^(\d{{1,3}})\s*{self.quantity_marker}\s*(.+?)\s+(?:(?:{symbol})\s*)?({amount})"
            rf"(?:\s*(?:{symbol}))?\s*$",
            re.MULTILINE,
        )

    def extract_items(self, text: str | None) -> list[LineItem]:
        if not text:
            return []

        currency = self.detect_currency(text)
        matches = sorted(
            [*self._of_pattern.finditer(text), *self._times_pattern.finditer(text)],
            key=lambda match: match.start(),
        )

        items = []
        for match in matches:
            unit_price = self._parse_price(match.group(3))
            if unit_price is None:
                continue
            quantity = max(int(match.group(1)), 1)
            items.append(
                LineItem(
                    description=self._clean_description(match.group(2)),
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=to_money(unit_price * quantity),
                    currency=currency,
                )
            )

        builder = LineItemBuilder(self.settings, currency, business=False)
        return builder.contain_outliers(items)

    def _parse_price(self, token: str) -> Decimal | None:
        amounts = self.profile.amount_style.find_all(token)
        return amounts[0] if amounts else None

    @staticmethod
    def _clean_description(raw: str) -> str:
        first_line = raw.strip().split("\n")[0]
        return _DESCRIPTION_NOISE_RE.sub("", first_line).strip(" ,-")


class UnitedStatesParser(StandardParser):
    profile = UNITED_STATES

    @property
    def variant(self) -> str:
        return "en-us"


class BritishParser(StandardParser):
    profile = UNITED_KINGDOM

    @property
    def variant(self) -> str:
        return "en-gb"


class AustralianParser(StandardParser):
    profile = AUSTRALIA

    @property
    def variant(self) -> str:
        return "en-au"


class CanadianParser(StandardParser):
    """amazon.ca invoices, with English or French labels."""

    profile = CANADA

    @property
    def variant(self) -> str:
        return "en-ca"
