"""Layout-specific cleanup, applied once the invoice format is known.

Runs after normalize() and the format classifier, before parsing:

    normalize -> classify -> FormatCleaner.clean -> detect language -> parse

EU VAT tables suffer most from PDF-text extraction: price columns land on
separate lines, adjacent cells are glued together ("66,38 €66,38 €") and
every page carries the Luxembourg legal footer. Those artefacts are repaired
here so the parsers can work line by line.
"""

import logging
import re

from invoice_pipeline.classification.schema import InvoiceFormat
from invoice_pipeline.preprocessing.normalizer import normalize_whitespace

logger = logging.getLogger(__name__)

_PAGE_MARKER_RE = re.compile(
    r"(?:Seite\s+\d+\s*von\s*\d+|Page\s+\d+\s+(?:of|sur)\s+\d+"
    r"|P[áa]gina\s+\d+\s+de\s+\d+|Pagina\s+\d+\s+di\s+\d+)",
    re.IGNORECASE,
)
_SEPARATOR_LINE_RE = re.compile(r"^[ \t]*(?:[-_=]{4,}[ \t]*)+$", re.MULTILINE)
_CHECKBOX_RE = re.compile(r"\[\s*(?:X|_{3,})?\s*\]", re.IGNORECASE)

_EU_BOILERPLATE_LINE_RE = re.compile(
    r"^.*(?:Amazon EU S\.\s?[àa]\s?r\.?\s?l\.?.*(?:avenue|Luxembourg|L-\d{4})"
    r"|Sitz der Gesellschaft|Handelsregister|RCS Luxembourg|Stammkapital"
    r"|Société à responsabilité limitée|eingetragen im Luxemburgischen"
    r"|Steuerfreie innergemeinschaftliche).*$\n?",
    re.MULTILINE | re.IGNORECASE,
)
_HYPHEN_BREAK_RE = re.compile(r"([a-zà-ÿß])-\n([a-zà-ÿß])")

# Glued money cells
_EURO_SPACING_RE = re.compile(r"(\d,\d{2})\s?€")
_EURO_GLUED_RE = re.compile(r"€(?=[\d(])")
_RATE_GLUED_RE = re.compile(r"(\d\s?%)(?=\d)")

_MONEY_TOKEN = r"\d{1,3}(?:[.,']\d{3})*[.,]\d{2}|\d+[.,]\d{2}"
_PRICE_CELL = (
    rf"(?:(?:{_MONEY_TOKEN})\s*(?:€|£|CHF|EUR|GBP)?"
    r"|\d{1,2}(?:[.,]\d{1,2})?\s*%"
    r"|\(\s*\d{1,3}\s*\))"
)
_PRICE_ONLY_LINE_RE = re.compile(rf"^{_PRICE_CELL}(?:\s+{_PRICE_CELL})*$")
_MONEY_TOKEN_RE = re.compile(rf"(?<![\d.,])(?:{_MONEY_TOKEN})(?![\d])")

_MAX_MERGED_LINES = 4
_MAX_MERGED_AMOUNTS = 3

_STANDARD_FOOTER_RE = re.compile(r"^.*Conditions of Use \| Privacy Notice.*$", re.MULTILINE)
_SELLER_PROFILE_RE = re.compile(r"\s*\(seller profile\)", re.IGNORECASE)


def merge_price_lines(text: str) -> str:
    """Reassemble price columns spread over consecutive lines into one row.

    A run of price-only lines (money amounts, VAT rate, "(qty)") is joined
    with spaces until it holds four lines or three money amounts.

    Args:
        text: Invoice text with one table cell per line

    Returns:
        Text with merged price rows
    """
    merged: list[str] = []
    run: list[str] = []
    amounts = 0

    def flush() -> None:
        nonlocal amounts
        if run:
            merged.append(" ".join(run))
            run.clear()
        amounts = 0

    for line in text.split("\n"):
        if _PRICE_ONLY_LINE_RE.match(line):
            run.append(line)
            amounts += len(_MONEY_TOKEN_RE.findall(line))
            if len(run) >= _MAX_MERGED_LINES or amounts >= _MAX_MERGED_AMOUNTS:
                flush()
        else:
            flush()
            merged.append(line)
    flush()
    return "\n".join(merged)


class FormatCleaner:
    """Applies the cleanup rules matching an invoice format."""

    def clean(self, text: str | None, invoice_format: InvoiceFormat) -> str:
        """Clean normalized text for the given layout family.

        Args:
            text: Output of normalize()
            invoice_format: Format assigned by the classifier

        Returns:
            Cleaned text, whitespace-normalized
        """
        if not text:
            return ""

        cleaned = self._clean_common(text)
        if invoice_format in (
            InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE,
            InvoiceFormat.BUSINESS_EX_VAT,
        ):
            cleaned = self._clean_eu(cleaned)
        elif invoice_format == InvoiceFormat.CONSUMER_STANDARD:
            cleaned = self._clean_standard(cleaned)

        cleaned = normalize_whitespace(cleaned)
        logger.debug(
            f"Cleaned {invoice_format.value} text: {len(text)} -> {len(cleaned)} characters"
        )
        return cleaned

    @staticmethod
    def _clean_common(text: str) -> str:
        text = _PAGE_MARKER_RE.sub("", text)
        text = _SEPARATOR_LINE_RE.sub("", text)
        return _CHECKBOX_RE.sub("", text)

    @staticmethod
    def _clean_eu(text: str) -> str:
        text = _EU_BOILERPLATE_LINE_RE.sub("", text)
        text = _HYPHEN_BREAK_RE.sub(r"\1\2", text)
        text = _EURO_SPACING_RE.sub(r"\1 €", text)
        text = _EURO_GLUED_RE.sub("€ ", text)
        text = _RATE_GLUED_RE.sub(r"\1 ", text)
        # Merging needs stripped lines
        return merge_price_lines(normalize_whitespace(text))

    @staticmethod
    def _clean_standard(text: str) -> str:
        text = _STANDARD_FOOTER_RE.sub("", text)
        return _SELLER_PROFILE_RE.sub("", text)
