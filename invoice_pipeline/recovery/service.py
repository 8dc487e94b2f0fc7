"""Error recovery for failed invoice extractions.

When the normal pipeline raises, this service:

1. categorizes the error into a small fixed taxonomy
2. re-runs a minimal, locale-agnostic field extraction on lightly
   normalized text, each field in its own guarded step
3. proposes ordered remediation steps

Recovery never goes through format or language dispatch, so it still works
when those stages were the ones that failed.
"""

import logging
import re
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from statistics import mean
from typing import Any

from invoice_pipeline.classification.schema import InvoiceFormat
from invoice_pipeline.extraction.amounts import (
    detect_currency,
    find_labeled_amount,
    guess_amount_style,
)
from invoice_pipeline.extraction.base import ORDER_NUMBER_RE
from invoice_pipeline.extraction.dates import ALL_MONTHS, find_labeled_date, parse_date
from invoice_pipeline.extraction.items import LineItemBuilder, TableRowScanner
from invoice_pipeline.extraction.locales import ALL_PROFILES
from invoice_pipeline.extraction.schema import (
    ExtractionMetadata,
    FieldExtractionIssue,
    InvoiceRecord,
    LineItem,
)
from invoice_pipeline.preprocessing.normalizer import light_preprocess
from invoice_pipeline.recovery.schema import (
    CategorizedError,
    ErrorLevel,
    RecoverySuggestion,
)
from invoice_pipeline.shared.config import Settings, get_settings
from invoice_pipeline.validation.service import ValidationEngine

logger = logging.getLogger(__name__)

CRITICAL_FIELDS = ("order_number", "order_date")
RECOVERED_FIELDS = ("order_number", "order_date", "items", "subtotal", "shipping", "tax", "total")

_FILE_ACCESS_MESSAGES = ("file not found", "no such file", "permission denied", "invalid file type")
_PDF_MESSAGES = ("pdf parsing failed", "invalid pdf")
_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

_SUMMARY_ROW_RE = re.compile(
    r"^(\d{1,3})\s*(?:of:|[x×]|点)\s*(.+?)\s+\D{0,4}?\s*(\S*\d[\d.,']*\S*)\s*$", re.MULTILINE
)


def _labels(attribute: str) -> tuple[re.Pattern[str], ...]:
    return tuple(label for profile in ALL_PROFILES for label in getattr(profile, attribute))


ORDER_DATE_LABELS = _labels("order_date_labels")
SUBTOTAL_LABELS = _labels("subtotal_labels")
SHIPPING_LABELS = _labels("shipping_labels")
TAX_LABELS = _labels("tax_labels")
TOTAL_LABELS = _labels("total_labels")


class ErrorRecoveryService:
    """Categorizes extraction failures and salvages partial invoice data."""

    def __init__(
        self, settings: Settings | None = None, validator: ValidationEngine | None = None
    ) -> None:
        """Initialize recovery service.

        Args:
            settings: Application settings (defaults to environment settings)
            validator: Validation engine for partial records (built from settings when omitted)
        """
        self.settings = settings or get_settings()
        self.validator = validator or ValidationEngine(self.settings)

    def categorize_error(self, error: BaseException | str, context: str = "") -> CategorizedError:
        """Map an error onto the recovery taxonomy (first match wins).

        Args:
            error: Exception raised by the pipeline or handed in by the caller
            context: Processing stage, e.g. 'pdf-parsing' or 'field-extraction'

        Returns:
            CategorizedError with level, recoverability and suggestion
        """
        message = str(error)
        lowered = message.lower()
        context = context or ""

        if isinstance(error, FileNotFoundError | PermissionError | IsADirectoryError) or any(
            term in lowered for term in _FILE_ACCESS_MESSAGES
        ):
            return CategorizedError(
                type="file_access_error",
                level=ErrorLevel.CRITICAL,
                message=message,
                context=context,
                recoverable=False,
                suggestion="Check file path and permissions",
            )

        if any(term in lowered for term in _PDF_MESSAGES) or context == "pdf-parsing":
            return CategorizedError(
                type="pdf_parsing_error",
                level=ErrorLevel.RECOVERABLE,
                message=message,
                context=context,
                recoverable=True,
                suggestion="Try re-saving PDF or check file corruption",
            )

        if "field-extraction" in context or "extraction failed" in lowered:
            return CategorizedError(
                type="field_extraction_error",
                level=ErrorLevel.RECOVERABLE,
                message=message,
                context=context,
                recoverable=True,
                suggestion="Partial data extraction attempted - check results",
            )

        if "validation" in lowered or "validation" in context:
            return CategorizedError(
                type="validation_warning",
                level=ErrorLevel.INFO,
                message=message,
                context=context,
                recoverable=True,
                suggestion="Data validated with warnings - review validation results",
            )

        return CategorizedError(
            type="unknown_error",
            level=ErrorLevel.RECOVERABLE,
            message=message,
            context=context,
            recoverable=True,
            suggestion="Unexpected error occurred - partial recovery attempted",
        )

    def extract_partial_invoice_data(
        self,
        raw_text: str | None,
        original_error: BaseException | str | None = None,
        invoice_format: InvoiceFormat | None = None,
    ) -> InvoiceRecord:
        """Salvage whatever fields can still be found.

        Args:
            raw_text: Raw invoice text as received by the pipeline
            original_error: Error that made the normal extraction fail
            invoice_format: Layout family, when classification succeeded before
                the failure; business invoices keep ex-VAT item prices

        Returns:
            Validated InvoiceRecord carrying ExtractionMetadata
        """
        text = light_preprocess(raw_text)
        values: dict[str, Any] = {}
        confidence: dict[str, float] = {}
        issues: list[FieldExtractionIssue] = []

        business = invoice_format == InvoiceFormat.BUSINESS_EX_VAT
        steps: list[tuple[str, Callable[[str], Any]]] = [
            ("order_number", self._extract_order_number),
            ("order_date", self._extract_order_date),
            ("items", lambda text: self._extract_items(text, business)),
            ("subtotal", self._extract_subtotal),
            ("shipping", self._extract_shipping),
            ("tax", self._extract_tax),
            ("total", self._extract_total),
        ]
        for field, step in steps:
            try:
                value = step(text)
            except Exception as e:
                logger.warning(f"Partial extraction of '{field}' failed: {e}")
                confidence[field] = 0.0
                issues.append(
                    FieldExtractionIssue(field=field, type="extraction_error", message=str(e))
                )
                if field in CRITICAL_FIELDS:
                    issues.append(
                        FieldExtractionIssue(
                            field=field,
                            type="critical_field_error",
                            message=f"Critical field {field} failed: {e}",
                        )
                    )
                continue

            if value is None or value == []:
                confidence[field] = 0.0
                issues.append(
                    FieldExtractionIssue(
                        field=field,
                        type="field_not_found",
                        message=f"{field} could not be extracted",
                    )
                )
            else:
                values[field] = value
                confidence[field] = 1.0

        confidence["overall"] = mean(confidence[field] for field in RECOVERED_FIELDS)
        usable = all(
            confidence[field] >= self.settings.recovery_field_confidence
            for field in CRITICAL_FIELDS
        )

        metadata = ExtractionMetadata(
            confidence=confidence,
            errors=issues,
            usable=usable,
            original_error=str(original_error) if original_error is not None else None,
        )
        record = InvoiceRecord(
            **values,
            currency=detect_currency(text, self._default_currency(text)),
            extraction_metadata=metadata,
            parser="partial-recovery",
        )
        logger.info(
            f"Partial recovery: overall confidence {confidence['overall']:.2f}, usable={usable}"
        )
        return record.with_validation(self.validator.validate(record))

    def generate_recovery_suggestions(
        self, categorized: CategorizedError, partial: InvoiceRecord | None = None
    ) -> list[RecoverySuggestion]:
        """Propose remediation steps, highest priority first.

        Args:
            categorized: Categorized error
            partial: Partial record from extract_partial_invoice_data, if any

        Returns:
            Suggestions sorted by priority (stable within a priority)
        """
        metadata = partial.extraction_metadata if partial is not None else None
        usable = metadata.usable if metadata is not None else False
        overall = metadata.confidence.get("overall", 0.0) if metadata is not None else 0.0

        suggestions: list[RecoverySuggestion] = []
        if overall > self.settings.recovery_high_confidence:
            suggestions.append(
                RecoverySuggestion(
                    action="high_confidence_data",
                    description="High confidence data extracted - safe to use",
                    priority="high",
                )
            )
        elif overall > self.settings.recovery_medium_confidence:
            suggestions.append(
                RecoverySuggestion(
                    action="medium_confidence_data",
                    description="Medium confidence data - manual verification recommended",
                    priority="medium",
                )
            )

        if categorized.type == "pdf_parsing_error":
            suggestions.append(
                RecoverySuggestion(
                    action="resave_pdf",
                    description='Re-save the PDF using "Save As" in your PDF viewer',
                    priority="high",
                )
            )
            suggestions.append(
                RecoverySuggestion(
                    action="check_corruption",
                    description="Verify PDF is not corrupted by opening in a PDF viewer",
                    priority="high",
                )
            )
            if usable:
                suggestions.append(
                    RecoverySuggestion(
                        action="use_partial_data",
                        description="Partial data extracted - review and supplement manually",
                        priority="medium",
                    )
                )
        elif categorized.type == "field_extraction_error":
            if usable:
                suggestions.append(
                    RecoverySuggestion(
                        action="manual_review",
                        description="Review partial data and manually add missing fields",
                        priority="medium",
                    )
                )
            suggestions.append(
                RecoverySuggestion(
                    action="check_format",
                    description="Verify invoice format matches supported marketplace templates",
                    priority="low",
                )
            )
        elif categorized.type == "file_access_error":
            suggestions.append(
                RecoverySuggestion(
                    action="check_permissions",
                    description="Ensure read permissions on file and directory",
                    priority="high",
                )
            )
            suggestions.append(
                RecoverySuggestion(
                    action="verify_path",
                    description="Double-check file path and filename",
                    priority="high",
                )
            )
        elif categorized.type == "validation_warning":
            suggestions.append(
                RecoverySuggestion(
                    action="review_validation",
                    description="Review the validation warnings before using the data",
                    priority="low",
                )
            )
        else:
            suggestions.append(
                RecoverySuggestion(
                    action="use_extracted_data",
                    description="Extracted data available for use after review",
                    priority="medium",
                )
            )
            suggestions.append(
                RecoverySuggestion(
                    action="contact_support",
                    description="Report issue for investigation",
                    priority="low",
                )
            )

        return sorted(suggestions, key=lambda suggestion: _PRIORITY_ORDER[suggestion.priority])

    # Locale-agnostic field steps

    def _extract_order_number(self, text: str) -> str | None:
        found = ORDER_NUMBER_RE.search(text)
        return found.group(1) if found else None

    def _extract_order_date(self, text: str) -> date | None:
        day_first = detect_currency(text, self._default_currency(text)) != "USD"
        labelled = find_labeled_date(text, ORDER_DATE_LABELS, ALL_MONTHS, day_first)
        return labelled or parse_date(text, ALL_MONTHS, day_first)

    def _extract_items(self, text: str, business: bool = False) -> list[LineItem]:
        style = guess_amount_style(text)
        currency = detect_currency(text, self._default_currency(text))
        rows = TableRowScanner(style, self.settings.item_window_lines).scan(text)
        builder = LineItemBuilder(self.settings, currency, business=business)
        if rows:
            return builder.build(rows)

        items = []
        for match in _SUMMARY_ROW_RE.finditer(text):
            amounts = style.find_all(match.group(3))
            if not amounts:
                continue
            quantity = max(int(match.group(1)), 1)
            items.append(
                LineItem(
                    description=match.group(2).strip(),
                    quantity=quantity,
                    unit_price=amounts[0],
                    total_price=amounts[0] * quantity,
                    currency=currency,
                )
            )
        return builder.contain_outliers(items)

    def _extract_subtotal(self, text: str) -> Decimal | None:
        return find_labeled_amount(text, SUBTOTAL_LABELS, guess_amount_style(text))

    def _extract_shipping(self, text: str) -> Decimal | None:
        return find_labeled_amount(text, SHIPPING_LABELS, guess_amount_style(text))

    def _extract_tax(self, text: str) -> Decimal | None:
        return find_labeled_amount(text, TAX_LABELS, guess_amount_style(text), take_last=True)

    def _extract_total(self, text: str) -> Decimal | None:
        return find_labeled_amount(text, TOTAL_LABELS, guess_amount_style(text))

    @staticmethod
    def _default_currency(text: str) -> str:
        style = guess_amount_style(text)
        if style.decimal_separator is None:
            return "JPY"
        return "USD" if style.decimal_separator == "." else "EUR"
