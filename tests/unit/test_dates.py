"""Unit tests for localized date parsing."""

from datetime import date

import pytest

from invoice_pipeline.extraction.dates import (
    ENGLISH_MONTHS,
    FRENCH_MONTHS,
    GERMAN_MONTHS,
    SPANISH_MONTHS,
    find_labeled_date,
    month_alternation,
    parse_date,
)
from invoice_pipeline.extraction.locales import labels


@pytest.mark.parametrize(
    ("text", "months", "expected"),
    [
        ("15.03.2024", GERMAN_MONTHS, date(2024, 3, 15)),
        ("15.03.24", GERMAN_MONTHS, date(2024, 3, 15)),
        ("8 März 2024", GERMAN_MONTHS, date(2024, 3, 8)),
        ("15 décembre 2023", FRENCH_MONTHS, date(2023, 12, 15)),
        ("1er mars 2024", FRENCH_MONTHS, date(2024, 3, 1)),
        ("15 de enero de 2024", SPANISH_MONTHS, date(2024, 1, 15)),
        ("November 8, 2025", ENGLISH_MONTHS, date(2025, 11, 8)),
        ("5 March 2024", ENGLISH_MONTHS, date(2024, 3, 5)),
        ("2023年12月15日", ENGLISH_MONTHS, date(2023, 12, 15)),
        ("2024-03-15", ENGLISH_MONTHS, date(2024, 3, 15)),
        ("2024/03/15", ENGLISH_MONTHS, date(2024, 3, 15)),
    ],
)
def test_parse_date_formats(text: str, months: dict[str, int], expected: date) -> None:
    """Test every supported date notation."""
    assert parse_date(text, months) == expected


def test_slash_dates_follow_day_first() -> None:
    """Test that ambiguous slash dates honour day_first."""
    assert parse_date("03/04/2024", day_first=True) == date(2024, 4, 3)
    assert parse_date("03/04/2024", day_first=False) == date(2024, 3, 4)


def test_slash_date_day_above_twelve() -> None:
    """Test that a first component above 12 is always the day."""
    assert parse_date("13/04/2024", day_first=False) == date(2024, 4, 13)


def test_earliest_date_wins() -> None:
    """Test that the first date in the text is returned."""
    text = "Lieferdatum 20.03.2024 Bestelldatum 15.03.2024"

    assert parse_date(text) == date(2024, 3, 20)


@pytest.mark.parametrize("text", [None, "", "31.02.2024", "keine Angabe"])
def test_parse_date_invalid(text: str | None) -> None:
    """Test that missing or impossible dates give None."""
    assert parse_date(text) is None


def test_month_alternation_longest_first() -> None:
    """Test that longer month names are tried before their prefixes."""
    assert month_alternation({"mar": 3, "march": 3}).startswith("march|")


class TestFindLabeledDate:
    """Tests for find_labeled_date."""

    def test_same_line(self) -> None:
        """Test a date on the label's line."""
        text = "Rechnungsdatum 20.03.2024\nBestelldatum 15.03.2024"

        assert find_labeled_date(text, labels(r"Bestelldatum")) == date(2024, 3, 15)

    def test_next_line(self) -> None:
        """Test a date printed below its label."""
        text = "Bestelldatum\n15.03.2024"

        assert find_labeled_date(text, labels(r"Bestelldatum")) == date(2024, 3, 15)

    def test_missing_label(self) -> None:
        """Test that text without the label gives None."""
        assert find_labeled_date("15.03.2024", labels(r"Bestelldatum")) is None
