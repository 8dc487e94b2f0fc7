"""Parser for amazon.co.jp invoices (yen amounts, 年月日 dates)."""

from invoice_pipeline.extraction.english_parsers import StandardParser
from invoice_pipeline.extraction.locales import JAPAN


class JapaneseParser(StandardParser):
    """Order-summary layout with yen prices and "N 点" quantities."""

    profile = JAPAN
    quantity_marker = r"(?:[x×]|点)"

    @property
    def variant(self) -> str:
        return "jp"
