"""Text normalization applied to every invoice before classification.

Upstream PDF-text extraction frequently decodes UTF-8 bytes as cp1252 or
MacRoman, which turns currency and accented glyphs into mojibake ("â‚¬" for
"€", "√º" for "ü"). This module repairs those sequences and normalizes
whitespace while keeping line boundaries intact, since every extractor
downstream is line-oriented.

`normalize` is total and idempotent.
"""

import re
import unicodedata

# UTF-8 read as cp1252
_CP1252_MOJIBAKE: dict[str, str] = {
    "â‚¬": "€",
    "Â£": "£",
    "Â¥": "¥",
    "Â°": "°",
    "Â·": "·",
    "Ã¤": "ä",
    "Ã¶": "ö",
    "Ã¼": "ü",
    "ÃŸ": "ß",
    "Ã„": "Ä",
    "Ã–": "Ö",
    "Ãœ": "Ü",
    "Ã©": "é",
    "Ã¨": "è",
    "Ãª": "ê",
    "Ã«": "ë",
    "Ã‰": "É",
    "Ãˆ": "È",
    "Ã\xa0": "à",
    "Ã¢": "â",
    "Ã§": "ç",
    "Ã‡": "Ç",
    "Ã®": "î",
    "Ã¯": "ï",
    "Ã´": "ô",
    "Ã»": "û",
    "Ã¹": "ù",
    "Ã±": "ñ",
    "Ã‘": "Ñ",
    "Ã³": "ó",
    "Ã­": "í",
    "Ã¡": "á",
    "Ãº": "ú",
    "Ã²": "ò",
    "Ã¬": "ì",
    "â€“": "-",
    "â€”": "-",
    "â€™": "'",
    "â€œ": '"',
    "â€\x9d": '"',
}

# UTF-8 read as MacRoman
_MACROMAN_MOJIBAKE: dict[str, str] = {
    "‚Ç¨": "€",
    "¬£": "£",
    "√§": "ä",
    "√∂": "ö",
    "√º": "ü",
    "√ü": "ß",
    "√Ñ": "Ä",
    "√ñ": "Ö",
    "√ú": "Ü",
    "√©": "é",
    "√®": "è",
    "√†": "à",
    "√ß": "ç",
    "√±": "ñ",
    "√≥": "ó",
    "√≠": "í",
    "√°": "á",
    "√∫": "ú",
}

_MOJIBAKE = {**_CP1252_MOJIBAKE, **_MACROMAN_MOJIBAKE}
_MOJIBAKE_RE = re.compile(
    "|".join(re.escape(key) for key in sorted(_MOJIBAKE, key=len, reverse=True))
)

# Tabs, NBSP, narrow NBSP, thin spaces, ideographic space etc.
_HORIZONTAL_SPACE_RE = re.compile(r"[\t\f\v\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]")
_ZERO_WIDTH_RE = re.compile(r"[\u200b\u200c\u200d\u2060\ufeff]")
_MULTI_SPACE_RE = re.compile(r" {2,}")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def _repair_encoding(text: str) -> str:
    # One mis-decoding layer per pass; every replacement shortens the text
    while True:
        repaired = _MOJIBAKE_RE.sub(lambda match: _MOJIBAKE[match.group(0)], text)
        repaired = unicodedata.normalize("NFC", repaired)
        if repaired == text:
            return text
        text = repaired


def normalize_whitespace(text: str) -> str:
    """Normalize line endings and spacing while preserving line structure.

    Args:
        text: Text to clean

    Returns:
        Text with unified newlines, single spaces, stripped lines and at most
        one consecutive blank line
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_SPACE_RE.sub(" ", text)
    text = _MULTI_SPACE_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def normalize(raw: str | None) -> str:
    """Normalize raw extractor output.

    Args:
        raw: Raw text from the PDF-text extractor (None is treated as empty)

    Returns:
        Normalized text. normalize(normalize(x)) == normalize(x).
    """
    if not raw:
        return ""
    return normalize_whitespace(_repair_encoding(_ZERO_WIDTH_RE.sub("", raw)))


def light_preprocess(raw: str | None) -> str:
    """Lightweight cleanup used by error recovery (no layout-specific steps)."""
    return normalize(raw)
