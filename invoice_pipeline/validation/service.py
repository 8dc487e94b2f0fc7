"""Validation engine for extracted invoice records.

Checks a record for arithmetic consistency, implausible amounts and missing
fields, and turns the findings into a score:

    score = 100 - error_penalty * errors - warning_penalty * warnings  (floor 0)

A record is invalid iff at least one critical error exists. Missing order
number or date are tracked as recoverable warnings only; they feed the
recovery confidence model instead of invalidating the record.

The item-to-subtotal check is tiered because the two failure modes look
very different: rounding produces cent-level gaps, while OCR digit merges
inflate a line by whole multiples of a price.
"""

import logging
from datetime import date
from decimal import Decimal

from invoice_pipeline.extraction.amounts import to_money
from invoice_pipeline.extraction.schema import (
    InvoiceRecord,
    IssueSeverity,
    ValidationIssue,
    ValidationResult,
)
from invoice_pipeline.shared import metrics
from invoice_pipeline.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

_ONE_CENT = Decimal("0.01")
_TOTAL_RELATIVE_TOLERANCE = Decimal("0.01")


def looks_like_ocr_merge(gap: Decimal, unit_prices: list[Decimal]) -> bool:
    """Check whether a discrepancy has the magnitude of an OCR digit merge.

    A merged quantity digit inflates a line by a whole multiple of its unit
    price, or by a leading digit times a power of ten ("1" + "176,46" adds
    1000.00).

    Args:
        gap: Absolute item/subtotal discrepancy
        unit_prices: Unit prices of the invoice's items

    Returns:
        True if the gap matches one of the merge magnitudes
    """
    for unit in unit_prices:
        if unit > 0 and gap >= unit:
            remainder = gap % unit
            if remainder <= _ONE_CENT or unit - remainder <= _ONE_CENT:
                return True

    if gap == gap.to_integral_value():
        digits = str(int(gap))
        if len(digits) >= 3 and digits[0] != "0" and set(digits[1:]) == {"0"}:
            return True
    return False


class ValidationEngine:
    """Scores extracted invoice records.

    Attributes:
        settings: Application settings holding tolerances, bounds and penalties
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize validation engine.

        Args:
            settings: Application settings (defaults to environment settings)
        """
        self.settings = settings or get_settings()

    def validate(self, record: InvoiceRecord) -> ValidationResult:
        """Validate an invoice record.

        Args:
            record: Extracted record (its own validation field is ignored)

        Returns:
            ValidationResult with errors, warnings, score and summary
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        self._check_item_subtotal(record, errors, warnings)
        self._check_price_sanity(record, errors, warnings)
        self._check_required_fields(record, warnings)
        self._check_line_items(record, warnings)
        self._check_totals(record, warnings)
        self._check_dates(record, warnings)
        self._check_total_plausibility(record, warnings)
        self._check_currency(record, warnings)
        self._check_duplicates(record, warnings)

        score = max(
            0,
            100
            - self.settings.error_penalty * len(errors)
            - self.settings.warning_penalty * len(warnings),
        )
        is_valid = not any(issue.severity == IssueSeverity.CRITICAL for issue in errors)

        if self.settings.metrics_enabled:
            for issue in [*errors, *warnings]:
                metrics.validation_issues_total.labels(
                    type=issue.type, severity=issue.severity.value
                ).inc()

        result = ValidationResult(
            errors=errors,
            warnings=warnings,
            score=score,
            is_valid=is_valid,
            summary=self._summarize(errors, warnings),
        )
        logger.debug(f"Validated order {record.order_number}: {result.summary} (score {score})")
        return result

    def _check_item_subtotal(
        self,
        record: InvoiceRecord,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        if not record.items or record.subtotal is None:
            return

        items_total = to_money(record.items_total)
        gap = abs(items_total - record.subtotal)
        details = {
            "items_total": items_total,
            "subtotal": record.subtotal,
            "discrepancy": gap,
        }

        if gap <= self.settings.subtotal_rounding_tolerance:
            return
        if gap <= self.settings.subtotal_minor_tolerance:
            warnings.append(
                ValidationIssue(
                    type="minor_discrepancy",
                    severity=IssueSeverity.WARNING,
                    message=f"Items total {items_total} differs from subtotal "
                    f"{record.subtotal} by {gap}",
                    details=details,
                )
            )
            return

        unit_prices = [item.unit_price for item in record.items]
        if gap >= self.settings.subtotal_critical_tolerance or looks_like_ocr_merge(
            gap, unit_prices
        ):
            errors.append(
                ValidationIssue(
                    type="item_subtotal_mismatch",
                    severity=IssueSeverity.CRITICAL,
                    message=f"Sum of item prices ({items_total}) doesn't match subtotal "
                    f"({record.subtotal}): discrepancy {gap}",
                    details=details,
                )
            )
            return

        warnings.append(
            ValidationIssue(
                type="subtotal_discrepancy",
                severity=IssueSeverity.WARNING,
                message=f"Items total {items_total} differs from subtotal "
                f"{record.subtotal} by {gap}",
                details=details,
            )
        )

    def _check_price_sanity(
        self,
        record: InvoiceRecord,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        for index, item in enumerate(record.items):
            details = {"item_index": index, "asin": item.asin, "unit_price": item.unit_price}
            if item.unit_price > self.settings.corrupted_price_threshold:
                errors.append(
                    ValidationIssue(
                        type="price_sanity_check_failed",
                        severity=IssueSeverity.CRITICAL,
                        message=f"Item price {item.unit_price} exceeds "
                        f"{self.settings.corrupted_price_threshold}; amount is likely corrupted",
                        details=details,
                    )
                )
            elif item.unit_price > self.settings.suspicious_price_threshold:
                warnings.append(
                    ValidationIssue(
                        type="high_price_warning",
                        severity=IssueSeverity.WARNING,
                        message=f"Item price {item.unit_price} is unusually high",
                        details=details,
                    )
                )

    def _check_required_fields(
        self, record: InvoiceRecord, warnings: list[ValidationIssue]
    ) -> None:
        if not record.order_number:
            warnings.append(
                ValidationIssue(
                    type="missing_order_number",
                    severity=IssueSeverity.RECOVERABLE,
                    message="Order number is missing",
                )
            )
        if record.order_date is None:
            warnings.append(
                ValidationIssue(
                    type="missing_order_date",
                    severity=IssueSeverity.RECOVERABLE,
                    message="Order date is missing",
                )
            )
        if record.total is None:
            warnings.append(
                ValidationIssue(
                    type="missing_total",
                    severity=IssueSeverity.WARNING,
                    message="Invoice total is missing",
                )
            )

    def _check_line_items(self, record: InvoiceRecord, warnings: list[ValidationIssue]) -> None:
        tolerance = self.settings.subtotal_rounding_tolerance
        for index, item in enumerate(record.items):
            expected = to_money(item.unit_price * item.quantity)
            if abs(expected - item.total_price) > tolerance:
                warnings.append(
                    ValidationIssue(
                        type="line_total_mismatch",
                        severity=IssueSeverity.WARNING,
                        message=f"Line total {item.total_price} != {item.quantity} x "
                        f"{item.unit_price}",
                        details={"item_index": index, "expected": expected},
                    )
                )
            if item.ocr_suspect:
                warnings.append(
                    ValidationIssue(
                        type="ocr_price_suspect",
                        severity=IssueSeverity.WARNING,
                        message=f"Price of item {index} looked like an OCR digit merge "
                        f"and was contained",
                        details={"item_index": index, "asin": item.asin},
                    )
                )

    def _check_totals(self, record: InvoiceRecord, warnings: list[ValidationIssue]) -> None:
        if record.total is None or record.subtotal is None:
            return

        base = record.subtotal + (record.shipping or 0) - (record.discount or 0)
        # Subtotals may already include tax (EU consumer invoices) or not (US)
        candidates = [base, base + record.tax] if record.tax is not None else [base]
        tolerance = max(
            record.total * _TOTAL_RELATIVE_TOLERANCE, self.settings.subtotal_rounding_tolerance
        )
        if any(abs(candidate - record.total) <= tolerance for candidate in candidates):
            return

        expected = to_money(candidates[-1])
        warnings.append(
            ValidationIssue(
                type="total_mismatch",
                severity=IssueSeverity.WARNING,
                message=f"Calculated total ({expected}) differs from extracted total "
                f"({record.total})",
                details={"calculated_total": expected, "total": record.total},
            )
        )

    def _check_dates(self, record: InvoiceRecord, warnings: list[ValidationIssue]) -> None:
        if record.order_date is None:
            return
        year = record.order_date.year
        if year > date.today().year + 1:
            warnings.append(
                ValidationIssue(
                    type="future_date",
                    severity=IssueSeverity.WARNING,
                    message=f"Order date appears to be in the future: {record.order_date}",
                )
            )
        elif year < self.settings.earliest_plausible_year:
            warnings.append(
                ValidationIssue(
                    type="very_old_date",
                    severity=IssueSeverity.WARNING,
                    message=f"Order date appears to be very old: {record.order_date}",
                )
            )

    def _check_total_plausibility(
        self, record: InvoiceRecord, warnings: list[ValidationIssue]
    ) -> None:
        if record.total is None or record.total <= 0:
            return
        if record.total > self.settings.high_total_threshold:
            warnings.append(
                ValidationIssue(
                    type="high_total_amount",
                    severity=IssueSeverity.WARNING,
                    message=f"Total amount is unusually high: {record.total}",
                )
            )
        elif record.total < self.settings.low_total_threshold:
            warnings.append(
                ValidationIssue(
                    type="low_total_amount",
                    severity=IssueSeverity.WARNING,
                    message=f"Total amount is unusually low: {record.total}",
                )
            )

    def _check_currency(self, record: InvoiceRecord, warnings: list[ValidationIssue]) -> None:
        foreign = sorted({item.currency for item in record.items} - {record.currency})
        if foreign:
            warnings.append(
                ValidationIssue(
                    type="currency_mismatch",
                    severity=IssueSeverity.WARNING,
                    message=f"Items priced in {', '.join(foreign)} on a {record.currency} invoice",
                    details={"currencies": foreign},
                )
            )

    def _check_duplicates(self, record: InvoiceRecord, warnings: list[ValidationIssue]) -> None:
        repeated = [
            index
            for index in range(1, len(record.items))
            if record.items[index].asin is not None
            and (record.items[index].asin, record.items[index].unit_price)
            == (record.items[index - 1].asin, record.items[index - 1].unit_price)
        ]
        if repeated:
            warnings.append(
                ValidationIssue(
                    type="duplicate_line_items",
                    severity=IssueSeverity.INFO,
                    message=f"{len(repeated)} line item(s) repeat the previous row",
                    details={"item_indexes": repeated},
                )
            )

    @staticmethod
    def _summarize(errors: list[ValidationIssue], warnings: list[ValidationIssue]) -> str:
        issues = len(errors) + len(warnings)
        if issues == 0:
            return "All validation checks passed"
        return (
            f"{issues} validation issues found: {len(errors)} errors, {len(warnings)} warnings"
        )
