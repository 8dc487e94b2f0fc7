"""Line item extraction for VAT table layouts.

EU invoices print one row per article with four price columns:

    Beschreibung | Menge | Stückpreis (ohne USt.) | USt. % |
    Stückpreis (inkl. USt.) | Zwischensumme (inkl. USt.)

After PDF-text extraction the row is either pipe-delimited, on one physical
line after the ASIN marker, or spread over several lines following it. The
scanner collects the amounts in column order, then the builder selects the
reported columns for the invoice format:

- consumer: VAT-inclusive unit price and VAT-inclusive line total
- business: ex-VAT unit price, VAT-inclusive total kept separately

Upstream OCR sometimes glues the quantity digit onto the following price
("1" + "176,46 €" -> "1176,46 €"). Such amounts are contained, never trusted:
the row is flagged and a safer secondary column is used when one exists.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from statistics import median

from invoice_pipeline.extraction.amounts import AmountStyle, to_money
from invoice_pipeline.extraction.schema import LineItem
from invoice_pipeline.shared import metrics
from invoice_pipeline.shared.config import Settings

logger = logging.getLogger(__name__)

ASIN_RE = re.compile(r"ASIN\s*:?\s*([A-Z0-9]{10})")
_RATE_RE = re.compile(r"(?<![\d,.])(\d{1,2}(?:[.,]\d{1,2})?)\s*%")
_RATE_ONLY_RE = re.compile(r"^(?:USt\.?|MwSt\.?|TVA|IVA|VAT)?\s*\d{1,2}(?:[.,]\d{1,2})?\s*%$")
_QTY_PAREN_RE = re.compile(r"^\(\s*(\d{1,3})\s*\)$")
_QTY_INLINE_RE = re.compile(r"(?<!\S)\(\s*(\d{1,3})\s*\)(?!\S)")
_INTEGER_CELL_RE = re.compile(r"^\d{1,3}$")
_ORDER_NUMBER_RE = re.compile(r"\d{3}-\d{7}-\d{7}")
_HEADER_RE = re.compile(
    r"^(?:Beschreibung|Menge|St[üu]ckpreis|Zwischensumme|\((?:inkl|ohne)\.? ?USt\.?\)|USt\.? ?%"
    r"|Description|Quantit[ée]|Prix unitaire|Taux de TVA|Descripci[óo]n|Cantidad|Precio"
    r"|Tipo de IVA|Descrizione|Quantit[àa]|Prezzo|Aliquota|Qty|Quantity|Unit price|VAT rate"
    r"|Rechnung|Facture|Factura|Fattura|Invoice|Bestell|Commande|Pedido|Ordine|Order"
    r"|Lieferadresse|Rechnungsadresse|Adresse|Direcci[óo]n|Indirizzo|Address)",
    re.IGNORECASE,
)

_ONE = Decimal("1")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PriceRow:
    """Raw columns collected for one table row, before column selection."""

    asin: str | None
    description: str
    amounts: tuple[Decimal, ...]
    vat_rate: Decimal | None = None
    quantity: int | None = None


@dataclass(frozen=True)
class _Columns:
    unit_excl: Decimal | None
    unit_incl: Decimal | None
    line_total: Decimal | None


def _parse_rate(value: str) -> Decimal:
    return Decimal(value.replace(",", "."))


class TableRowScanner:
    """Collects PriceRows from EU VAT table text."""

    def __init__(self, style: AmountStyle, window_lines: int = 8) -> None:
        """Initialize scanner.

        Args:
            style: Money notation of the invoice locale
            window_lines: Lines scanned after an ASIN marker
        """
        self.style = style
        self.window_lines = window_lines

    def scan(self, text: str | None) -> list[PriceRow]:
        """Scan invoice text for item rows, in document order.

        Args:
            text: Preprocessed invoice text

        Returns:
            One PriceRow per table row; identical rows are kept
        """
        if not text:
            return []

        lines = text.split("\n")
        rows: list[PriceRow] = []
        consumed: set[int] = set()
        block_end = 0

        for index, line in enumerate(lines):
            if index in consumed:
                continue
            if self._is_pipe_row(line):
                row, used = self._parse_pipe_row(lines, index)
                rows.append(row)
                consumed.update(used)
                block_end = max(used) + 1
                continue
            marker = ASIN_RE.search(line)
            if marker:
                row, last = self._parse_marker_row(lines, index, marker, block_end)
                rows.append(row)
                consumed.update(range(index, last + 1))
                block_end = last + 1
        return rows

    def _is_pipe_row(self, line: str) -> bool:
        return line.count("|") >= 3 and len(self.style.pattern.findall(line)) >= 2

    def _parse_pipe_row(self, lines: list[str], index: int) -> tuple[PriceRow, list[int]]:
        cells = [cell.strip() for cell in lines[index].split("|")]
        cells = [cell for cell in cells if cell]
        used = [index]

        asin = None
        description_parts: list[str] = []
        quantity: int | None = None
        rate: Decimal | None = None
        amounts: list[Decimal] = []

        for cell in cells:
            marker = ASIN_RE.search(cell)
            if marker:
                asin = marker.group(1)
                cell = (cell[: marker.start()] + cell[marker.end() :]).strip()
            cell_amounts = self.style.find_all(cell)
            rate_match = _RATE_RE.search(cell)
            if cell_amounts:
                amounts.extend(cell_amounts)
            elif rate_match:
                rate = _parse_rate(rate_match.group(1))
            elif quantity is None and _INTEGER_CELL_RE.match(cell) and amounts == []:
                quantity = int(cell)
            elif cell and not amounts:
                description_parts.append(cell)

        # ASIN printed on the line below the row
        if asin is None and index + 1 < len(lines):
            below = ASIN_RE.fullmatch(lines[index + 1].strip())
            if below:
                asin = below.group(1)
                used.append(index + 1)

        description = " ".join(description_parts) or (f"ASIN {asin}" if asin else "")
        row = PriceRow(asin, description, tuple(amounts), rate, quantity or None)
        return row, used

    def _parse_marker_row(
        self, lines: list[str], index: int, marker: re.Match[str], block_end: int
    ) -> tuple[PriceRow, int]:
        asin = marker.group(1)
        amounts: list[Decimal] = []
        rate: Decimal | None = None
        quantity: int | None = None
        after: list[str] = []

        remainder = lines[index][marker.end() :]
        amounts.extend(self.style.find_all(remainder))
        rate_match = _RATE_RE.search(remainder)
        if rate_match:
            rate = _parse_rate(rate_match.group(1))

        last = index
        position = index + 1
        limit = min(len(lines), index + 1 + self.window_lines)
        while position < limit and len(amounts) < 3:
            line = lines[position]
            if ASIN_RE.search(line) or self._is_pipe_row(line):
                break
            line_amounts = self.style.find_all(line)
            rate_match = _RATE_RE.search(line)
            qty_match = _QTY_PAREN_RE.match(line)
            if line_amounts:
                # A label followed by money is a totals row, not a price column
                if line[0].isalpha():
                    break
                amounts.extend(line_amounts)
                if rate_match and rate is None:
                    rate = _parse_rate(rate_match.group(1))
                inline_qty = _QTY_INLINE_RE.search(line)
                if inline_qty and quantity is None:
                    quantity = int(inline_qty.group(1))
            elif qty_match:
                quantity = int(qty_match.group(1))
            elif rate_match and _RATE_ONLY_RE.match(line):
                rate = _parse_rate(rate_match.group(1))
            elif not line:
                if amounts:
                    break
            elif amounts:
                # Description of the next article
                break
            else:
                after.append(line)
            last = position
            position += 1

        description = self._description_before(lines, index, block_end) or " ".join(after[:2])
        return PriceRow(asin, description or f"ASIN {asin}", tuple(amounts), rate, quantity), last

    def _description_before(self, lines: list[str], index: int, block_end: int) -> str:
        parts: list[str] = []
        position = index - 1
        while position >= block_end and len(parts) < 3:
            line = lines[position]
            if (
                not line
                or _HEADER_RE.match(line)
                or ASIN_RE.search(line)
                or self.style.pattern.search(line)
                or _RATE_ONLY_RE.match(line)
                or _ORDER_NUMBER_RE.search(line)
            ):
                break
            parts.insert(0, line)
            position -= 1
        return " ".join(parts)


def _resolve_columns(row: PriceRow) -> _Columns:
    amounts = row.amounts
    if len(amounts) >= 3:
        return _Columns(amounts[0], amounts[1], amounts[2])
    if len(amounts) == 2:
        first, second = amounts
        if row.vat_rate:
            expected_incl = to_money(first * (_ONE + row.vat_rate / _HUNDRED))
            if abs(expected_incl - second) <= Decimal("0.05"):
                return _Columns(first, second, None)
        return _Columns(None, first, second)
    if len(amounts) == 1:
        return _Columns(None, amounts[0], None)
    return _Columns(None, None, None)


def infer_quantity(unit: Decimal | None, line_total: Decimal | None) -> int | None:
    """Derive the quantity from a unit price and line total.

    Returns:
        round(line_total / unit) when it lies in 1..100 and reproduces the line
        total within 0.10, else None
    """
    if not unit or not line_total or unit <= 0:
        return None
    quantity = int((line_total / unit).to_integral_value())
    if 1 <= quantity <= 100 and abs(unit * quantity - line_total) < Decimal("0.10"):
        return quantity
    return None


class LineItemBuilder:
    """Turns PriceRows into LineItems for one invoice format."""

    def __init__(self, settings: Settings, currency: str, business: bool) -> None:
        """Initialize builder.

        Args:
            settings: Application settings (OCR containment thresholds)
            currency: Invoice currency code
            business: Report ex-VAT prices (business format) instead of VAT-inclusive
        """
        self.settings = settings
        self.currency = currency
        self.business = business

    def build(self, rows: list[PriceRow]) -> list[LineItem]:
        """Select price columns and contain OCR-inflated amounts.

        Args:
            rows: Scanned table rows

        Returns:
            LineItems in row order (rows without any amount are skipped)
        """
        items = [item for item in (self._build_one(row) for row in rows) if item is not None]
        return self.contain_outliers(items)

    def _build_one(self, row: PriceRow) -> LineItem | None:
        columns = _resolve_columns(row)
        unit_excl, unit_incl, line_total = columns.unit_excl, columns.unit_incl, columns.line_total
        if unit_incl is None:
            return None

        tolerance = self.settings.subtotal_rounding_tolerance
        quantity = row.quantity or infer_quantity(unit_incl, line_total) or 1
        suspect = False

        # The inclusive unit can never exceed its own line total
        if line_total is not None and unit_incl > line_total + tolerance:
            safer = to_money(line_total / quantity)
            logger.warning(
                f"Inclusive unit price {unit_incl} exceeds line total {line_total} "
                f"(ASIN {row.asin}); using {safer}"
            )
            unit_incl = safer
            suspect = True

        # The ex-VAT unit can never exceed the inclusive unit
        if unit_excl is not None and unit_excl > unit_incl + tolerance:
            safer = min(self._excl_from_incl(unit_incl, row.vat_rate), unit_excl)
            logger.warning(
                f"Ex-VAT unit price {unit_excl} exceeds inclusive price {unit_incl} "
                f"(ASIN {row.asin}); treating as OCR digit merge, using {safer}"
            )
            unit_excl = safer
            suspect = True

        if suspect:
            self._count_correction()

        incl_total = line_total if line_total is not None else to_money(unit_incl * quantity)
        if self.business:
            if unit_excl is None:
                unit_excl = self._excl_from_incl(unit_incl, row.vat_rate)
            unit_price = unit_excl
            total_price = to_money(unit_excl * quantity)
        else:
            unit_price = unit_incl
            total_price = incl_total

        return LineItem(
            asin=row.asin,
            description=row.description,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
            currency=self.currency,
            vat_rate=row.vat_rate,
            total_price_incl_vat=incl_total if self.business else None,
            confidence=self.settings.ocr_item_confidence if suspect else 1.0,
            ocr_suspect=suspect,
        )

    @staticmethod
    def _excl_from_incl(unit_incl: Decimal, vat_rate: Decimal | None) -> Decimal:
        if vat_rate is None:
            return unit_incl
        return to_money(unit_incl / (_ONE + vat_rate / _HUNDRED))

    def contain_outliers(self, items: list[LineItem]) -> list[LineItem]:
        """Flag prices that are implausible relative to the other rows."""
        if len(items) < 2:
            return [self._flag_if_absurd(item) for item in items]

        contained = []
        for index, item in enumerate(items):
            peers = [other.unit_price for i, other in enumerate(items) if i != index]
            baseline = median(peers)
            if (
                item.unit_price > self.settings.ocr_price_threshold
                and baseline > 0
                and item.unit_price >= baseline * self.settings.ocr_magnitude_ratio
            ):
                contained.append(self._contain(item, reason=f"median of other rows is {baseline}"))
            else:
                contained.append(item)
        return contained

    def _flag_if_absurd(self, item: LineItem) -> LineItem:
        if item.unit_price > self.settings.ocr_price_threshold * self.settings.ocr_magnitude_ratio:
            return self._contain(item, reason="no comparable rows")
        return item

    def _contain(self, item: LineItem, reason: str) -> LineItem:
        update: dict[str, object] = {
            "ocr_suspect": True,
            "confidence": self.settings.ocr_item_confidence,
        }
        if self.business and item.total_price_incl_vat is not None:
            safer = self._excl_from_incl(
                to_money(item.total_price_incl_vat / item.quantity), item.vat_rate
            )
            if safer < item.unit_price:
                update["unit_price"] = safer
                update["total_price"] = to_money(safer * item.quantity)
        logger.warning(
            f"Unit price {item.unit_price} for ASIN {item.asin} looks inflated ({reason})"
        )
        self._count_correction()
        return item.model_copy(update=update)

    def _count_correction(self) -> None:
        if self.settings.metrics_enabled:
            metrics.ocr_price_corrections_total.inc()
