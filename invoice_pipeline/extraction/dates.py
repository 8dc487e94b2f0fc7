"""Localized date parsing.

Invoices print order dates as DD.MM.YYYY, "15 décembre 2023", "1er mars 2024",
"15 de enero de 2024", "November 8, 2025", "2023年12月15日", ISO dates or
slash dates. Everything is normalized to datetime.date.
"""

import re
from collections.abc import Mapping
from datetime import date
from functools import lru_cache
from types import MappingProxyType

ENGLISH_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3,
        "april": 4, "apr": 4, "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7,
        "august": 8, "aug": 8, "september": 9, "sept": 9, "sep": 9,
        "october": 10, "oct": 10, "november": 11, "nov": 11, "december": 12, "dec": 12,
    }
)  # fmt: skip

GERMAN_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "januar": 1, "jänner": 1, "jan": 1, "februar": 2, "feb": 2, "märz": 3,
        "maerz": 3, "mär": 3, "april": 4, "apr": 4, "mai": 5, "juni": 6, "jun": 6,
        "juli": 7, "jul": 7, "august": 8, "aug": 8, "september": 9, "sept": 9,
        "sep": 9, "oktober": 10, "okt": 10, "november": 11, "nov": 11,
        "dezember": 12, "dez": 12,
    }
)  # fmt: skip

FRENCH_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "janvier": 1, "janv": 1, "février": 2, "fevrier": 2, "févr": 2, "mars": 3,
        "avril": 4, "avr": 4, "mai": 5, "juin": 6, "juillet": 7, "juil": 7,
        "août": 8, "aout": 8, "septembre": 9, "sept": 9, "octobre": 10, "oct": 10,
        "novembre": 11, "nov": 11, "décembre": 12, "decembre": 12, "déc": 12,
    }
)  # fmt: skip

SPANISH_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "enero": 1, "febrero": 2, "marzo": 3, "abril": 4, "mayo": 5, "junio": 6,
        "julio": 7, "agosto": 8, "septiembre": 9, "setiembre": 9, "octubre": 10,
        "noviembre": 11, "diciembre": 12,
    }
)  # fmt: skip

ITALIAN_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "gennaio": 1, "febbraio": 2, "marzo": 3, "aprile": 4, "maggio": 5,
        "giugno": 6, "luglio": 7, "agosto": 8, "settembre": 9, "ottobre": 10,
        "novembre": 11, "dicembre": 12,
    }
)  # fmt: skip

ALL_MONTHS: Mapping[str, int] = MappingProxyType(
    {
        **ENGLISH_MONTHS,
        **GERMAN_MONTHS,
        **FRENCH_MONTHS,
        **SPANISH_MONTHS,
        **ITALIAN_MONTHS,
    }
)

_ISO_RE = re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)")
_KANJI_RE = re.compile(r"(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日")
_YEAR_FIRST_SLASH_RE = re.compile(r"(?<!\d)(\d{4})/(\d{1,2})/(\d{1,2})(?!\d)")
_DOTTED_RE = re.compile(r"(?<!\d)(\d{1,2})\.(\d{1,2})\.(\d{4}|\d{2})(?!\d)")
_SLASH_RE = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")


def month_alternation(months: Mapping[str, int]) -> str:
    """Build a regex alternation for month names, longest first."""
    return "|".join(re.escape(name) for name in sorted(months, key=len, reverse=True))


@lru_cache(maxsize=32)
def _named_patterns(
    months_key: tuple[tuple[str, int], ...],
) -> tuple[re.Pattern[str], re.Pattern[str]]:
    names = month_alternation(dict(months_key))
    day_month_year = re.compile(
        rf"(?<!\d)(\d{{1,2}})(?:er|\.|º|°)?\s*(?:de\s+)?({names})(?![^\W\d_])\.?"
        rf"\s*(?:de\s+)?,?\s*(\d{{4}})(?!\d)",
        re.IGNORECASE,
    )
    month_day_year = re.compile(
        rf"(?<![^\W\d_])({names})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?,?\s+(\d{{4}})(?!\d)",
        re.IGNORECASE,
    )
    return day_month_year, month_day_year


def _safe_date(year: int, month: int, day: int) -> date | None:
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _candidates(
    text: str, months: Mapping[str, int], day_first: bool
) -> list[tuple[int, date | None]]:
    found: list[tuple[int, date | None]] = []

    for match in _ISO_RE.finditer(text):
        y, m, d = (int(g) for g in match.groups())
        found.append((match.start(), _safe_date(y, m, d)))
    for match in _KANJI_RE.finditer(text):
        y, m, d = (int(g) for g in match.groups())
        found.append((match.start(), _safe_date(y, m, d)))
    for match in _YEAR_FIRST_SLASH_RE.finditer(text):
        y, m, d = (int(g) for g in match.groups())
        found.append((match.start(), _safe_date(y, m, d)))
    for match in _DOTTED_RE.finditer(text):
        d, m, y = (int(g) for g in match.groups())
        found.append((match.start(), _safe_date(y, m, d)))
    for match in _SLASH_RE.finditer(text):
        first, second, y = (int(g) for g in match.groups())
        # A component above 12 can only be the day
        if first > 12 or (day_first and second <= 12):
            found.append((match.start(), _safe_date(y, second, first)))
        else:
            found.append((match.start(), _safe_date(y, first, second)))

    day_month_year, month_day_year = _named_patterns(tuple(sorted(months.items())))
    for match in day_month_year.finditer(text):
        month = months.get(match.group(2).lower())
        if month:
            parsed = _safe_date(int(match.group(3)), month, int(match.group(1)))
            found.append((match.start(), parsed))
    for match in month_day_year.finditer(text):
        month = months.get(match.group(1).lower())
        if month:
            parsed = _safe_date(int(match.group(3)), month, int(match.group(2)))
            found.append((match.start(), parsed))

    return found


def parse_date(
    text: str | None,
    months: Mapping[str, int] = ALL_MONTHS,
    day_first: bool = True,
) -> date | None:
    """Parse the first recognisable date in text.

    Args:
        text: Text containing a date
        months: Month-name table of the invoice locale
        day_first: Interpret ambiguous slash dates as DD/MM/YYYY

    Returns:
        Earliest valid date in the text, or None
    """
    if not text:
        return None
    candidates = _candidates(text, months, day_first)
    valid = [(position, parsed) for position, parsed in candidates if parsed]
    if not valid:
        return None
    return min(valid, key=lambda candidate: candidate[0])[1]


def find_labeled_date(
    text: str | None,
    labels: tuple[re.Pattern[str], ...],
    months: Mapping[str, int] = ALL_MONTHS,
    day_first: bool = True,
) -> date | None:
    """Find a date printed after one of the given labels.

    The date is searched on the label's own line and, when that line holds no
    date, on the following line (label and value split by table layout).

    Args:
        text: Invoice text
        labels: Label patterns in priority order
        months: Month-name table of the invoice locale
        day_first: Interpret ambiguous slash dates as DD/MM/YYYY

    Returns:
        Parsed date or None
    """
    if not text:
        return None
    for label in labels:
        for match in label.finditer(text):
            line_end = text.find("\n", match.end())
            if line_end == -1:
                line_end = len(text)
            parsed = parse_date(text[match.end() : line_end], months, day_first)
            if parsed is None and line_end < len(text):
                next_end = text.find("\n", line_end + 1)
                if next_end == -1:
                    next_end = len(text)
                parsed = parse_date(text[line_end + 1 : next_end], months, day_first)
            if parsed is not None:
                return parsed
    return None
