"""Unit tests for text normalization.

Tests cover:
- Mojibake repair (cp1252 and MacRoman decodings)
- Whitespace and line-ending normalization
- Idempotence (including nested mojibake) and empty input
"""

import pytest

from invoice_pipeline.preprocessing.normalizer import (
    light_preprocess,
    normalize,
    normalize_whitespace,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Gesamtbetrag 12,99 â‚¬", "Gesamtbetrag 12,99 €"),
        ("Gesamtbetrag 12,99 ‚Ç¨", "Gesamtbetrag 12,99 €"),
        ("Menge: 1 StÃ¼ck", "Menge: 1 Stück"),
        ("Menge: 1 St√ºck", "Menge: 1 Stück"),
        ("Date de la commande", "Date de la commande"),
    ],
)
def test_normalize_repairs_mojibake(raw: str, expected: str) -> None:
    """Test that mis-decoded currency and umlaut glyphs are repaired."""
    assert normalize(raw) == expected


def test_normalize_whitespace_keeps_lines() -> None:
    """Test that spacing is collapsed but line boundaries survive."""
    raw = "Order #\t123-1234567-1234567\r\n\r\n\r\n\r\n  Subtotal:  $10.00  "

    assert normalize(raw) == "Order # 123-1234567-1234567\n\nSubtotal: $10.00"


def test_normalize_removes_zero_width_characters() -> None:
    """Test that zero-width characters are dropped."""
    assert normalize("Zwischen\u200bsumme\ufeff") == "Zwischensumme"


@pytest.mark.parametrize("raw", [None, ""])
def test_normalize_empty_input(raw: str | None) -> None:
    """Test that missing text normalizes to an empty string."""
    assert normalize(raw) == ""


def _mis_decoded(text: str, codec: str, layers: int) -> str:
    for _ in range(layers):
        text = text.encode("utf-8").decode(codec, errors="replace")
    return text


IDEMPOTENCE_INPUTS = [
    "Rechnung\r\n\r\n\r\nGesamt  â‚¬ 10,00",
    "  Order Total:\t$1,234.56\n\n\n\nItems Ordered  ",
    "Ã©tÃ© √º\u3000\u3000x",
    *("Â" * depth + "£" for depth in range(1, 30)),
    *(
        _mis_decoded(sample, codec, layers)
        for sample in ("Gesamtbetrag 12,99 €", "Stück Größe", "Total TTC 9,99 € à payer")
        for codec in ("cp1252", "mac_roman")
        for layers in range(1, 4)
    ),
]


@pytest.mark.parametrize("raw", IDEMPOTENCE_INPUTS)
def test_normalize_is_idempotent(raw: str) -> None:
    """Test that normalizing twice equals normalizing once."""
    once = normalize(raw)

    assert normalize(once) == once


@pytest.mark.parametrize("depth", [1, 10, 12, 50])
def test_normalize_repairs_deeply_nested_mojibake(depth: int) -> None:
    """Test that every nested layer of a repeatedly mis-decoded glyph is removed."""
    assert normalize("Â" * depth + "£") == "£"


def test_normalize_whitespace_direct() -> None:
    """Test whitespace normalization without encoding repair."""
    assert normalize_whitespace(" a \n\n\n\n b ") == "a\n\nb"


def test_light_preprocess_matches_normalize() -> None:
    """Test that the recovery preprocessing applies the same normalization."""
    raw = "Bestellnr.  123-1234567-1234567\r\nâ‚¬"

    assert light_preprocess(raw) == normalize(raw)
