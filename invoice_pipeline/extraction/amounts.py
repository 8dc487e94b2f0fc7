"""Money token matching and parsing.

Amounts are always parsed into Decimal quantized to cents. Three notations
cover every supported marketplace:

- COMMA_DECIMAL: 1.234,56 (DE, FR, ES, IT, French-Canadian)
- DOT_DECIMAL: 1,234.56 / 1'234.56 (US, GB, AU, CA, CH)
- YEN: ¥1,234 or 1,234円 (JPY, symbol required)
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


@dataclass(frozen=True)
class AmountStyle:
    """Regex and decimal separator for one money notation."""

    name: str
    pattern: re.Pattern[str]
    decimal_separator: str | None

    def find_all(self, text: str) -> list[Decimal]:
        """Parse every money token in text, in order of appearance."""
        amounts = []
        for match in self.pattern.finditer(text):
            amount = parse_amount(match.group(0), self.decimal_separator)
            if amount is not None:
                amounts.append(amount)
        return amounts


COMMA_DECIMAL = AmountStyle(
    name="comma",
    pattern=re.compile(r"(?<![\d.,])(?:\d{1,3}(?:\.\d{3})+|\d+),\d{2}(?!\d)"),
    decimal_separator=",",
)
DOT_DECIMAL = AmountStyle(
    name="dot",
    pattern=re.compile(r"(?<![\d.,'])(?:\d{1,3}(?:[,']\d{3})+|\d+)\.\d{2}(?!\d)(?!\.\d)"),
    decimal_separator=".",
)
YEN = AmountStyle(
    name="yen",
    pattern=re.compile(
        r"[¥￥]\s*(?:\d{1,3}(?:,\d{3})+|\d+)(?![\d,])"
        r"|(?<![\d,])(?:\d{1,3}(?:,\d{3})+|\d+)\s*円"
    ),
    decimal_separator=None,
)

# Checked in order; the first hit wins
_CURRENCY_MARKERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?<![A-Za-z])CHF(?![A-Za-z])"), "CHF"),
    (re.compile(r"CDN\$|C\$|(?<![A-Za-z])CAD(?![A-Za-z])"), "CAD"),
    (re.compile(r"A\$|AU\$|(?<![A-Za-z])AUD(?![A-Za-z])"), "AUD"),
    (re.compile(r"[¥￥]|円|(?<![A-Za-z])JPY(?![A-Za-z])"), "JPY"),
    (re.compile(r"€|(?<![A-Za-z])EUR(?![A-Za-z])"), "EUR"),
    (re.compile(r"£|(?<![A-Za-z])GBP(?![A-Za-z])"), "GBP"),
    (re.compile(r"\$|(?<![A-Za-z])USD(?![A-Za-z])"), "USD"),
)


def to_money(value: Decimal) -> Decimal:
    """Quantize to cents using commercial rounding."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: str | None, decimal_separator: str | None = ",") -> Decimal | None:
    """Parse a money string into a Decimal.

    Args:
        value: Money token, optionally with currency symbols and spaces
        decimal_separator: "," or "." for the decimal mark, None for
            integer-only currencies where every separator is a thousands mark

    Returns:
        Amount quantized to cents, or None if the token holds no number
    """
    if not value:
        return None

    cleaned = re.sub(r"[^\d.,']", "", value)
    if decimal_separator == ",":
        cleaned = cleaned.replace(".", "").replace("'", "").replace(",", ".")
    elif decimal_separator == ".":
        cleaned = cleaned.replace(",", "").replace("'", "")
    else:
        cleaned = re.sub(r"[.,']", "", cleaned)

    try:
        return to_money(Decimal(cleaned))
    except InvalidOperation:
        return None


def detect_currency(text: str | None, default: str) -> str:
    """Detect the ISO currency code from symbols or codes in text.

    Args:
        text: Invoice text
        default: Code returned when no marker is present

    Returns:
        ISO 4217 currency code
    """
    if not text:
        return default
    for pattern, code in _CURRENCY_MARKERS:
        if pattern.search(text):
            return code
    return default


def guess_amount_style(text: str | None) -> AmountStyle:
    """Guess the money notation of text whose locale is unknown.

    Yen markers win outright; otherwise the notation with more matching
    tokens wins, comma-decimal on a tie.
    """
    if not text:
        return COMMA_DECIMAL
    if YEN.pattern.search(text):
        return YEN
    comma = len(COMMA_DECIMAL.pattern.findall(text))
    dot = len(DOT_DECIMAL.pattern.findall(text))
    return DOT_DECIMAL if dot > comma else COMMA_DECIMAL


def find_labeled_amount(
    text: str | None,
    labels: Iterable[re.Pattern[str]],
    style: AmountStyle,
    take_last: bool = False,
) -> Decimal | None:
    """Find the money amount printed on the same line as a label.

    Labels are tried in priority order; within a label, the first line
    carrying an amount wins.

    Args:
        text: Invoice text
        labels: Label patterns in priority order
        style: Money notation to match
        take_last: Use the last amount on the line instead of the first

    Returns:
        Amount or None when no label line carries money
    """
    if not text:
        return None
    for label in labels:
        for match in label.finditer(text):
            line_end = text.find("\n", match.end())
            rest = text[match.end() : line_end if line_end != -1 else len(text)]
            amounts = style.find_all(rest)
            if amounts:
                return amounts[-1] if take_last else amounts[0]
    return None
