"""Unit tests for error recovery.

Tests cover:
- Error categorization taxonomy
- Partial extraction confidence and usability
- Guarded field steps
- Suggestion generation and ordering
"""

from datetime import date
from decimal import Decimal

import pytest

from invoice_pipeline.classification.schema import InvoiceFormat
from invoice_pipeline.recovery.schema import ErrorLevel
from invoice_pipeline.recovery.service import ErrorRecoveryService
from invoice_pipeline.shared.config import Settings
from invoice_pipeline.shared.errors import ExtractionFailedError

ORDER_ONLY_TEXT = "Bestellnummer 302-1234567-1234567\nBestelldatum 15.03.2024"

GERMAN_CONSUMER_INVOICE = """Rechnung
amazon.de
Bestellnummer 302-1234567-1234567
Bestelldatum 15.03.2024
Ladekabel USB-C 2m
ASIN: B08N5WRWNW
155,32 €
20%
66,38 €66,38 €
Zwischensumme 66,38 €
Versand 0,00 €
USt. Gesamt 11,06 €
Gesamtbetrag 66,38 €"""

FRENCH_BUSINESS_INVOICE = """Facture
Total HT 155,32 €
Câble USB | 1 | 155,32 € | 20% | 186,38 € | 186,38 €
ASIN: B07XYZ1234"""


@pytest.fixture
def service() -> ErrorRecoveryService:
    """Create recovery service with default thresholds."""
    return ErrorRecoveryService(Settings(_env_file=None, metrics_enabled=False))


class TestCategorizeError:
    """Tests for the error taxonomy."""

    @pytest.mark.parametrize(
        "error",
        [
            FileNotFoundError("invoice.pdf"),
            PermissionError("invoice.pdf"),
            "Permission denied: /data/invoice.pdf",
            "Invalid file type: invoice.docx",
        ],
    )
    def test_file_access_is_critical(
        self, service: ErrorRecoveryService, error: BaseException | str
    ) -> None:
        """Test that file access failures are critical and not recoverable."""
        categorized = service.categorize_error(error)

        assert categorized.type == "file_access_error"
        assert categorized.level == ErrorLevel.CRITICAL
        assert categorized.recoverable is False
        assert categorized.suggestion == "Check file path and permissions"

    @pytest.mark.parametrize(
        ("error", "context"),
        [(RuntimeError("PDF parsing failed: bad xref"), ""), (ValueError("boom"), "pdf-parsing")],
    )
    def test_pdf_parsing(
        self, service: ErrorRecoveryService, error: BaseException, context: str
    ) -> None:
        """Test that PDF failures are recoverable."""
        categorized = service.categorize_error(error, context)

        assert categorized.type == "pdf_parsing_error"
        assert categorized.recoverable is True
        assert categorized.context == context

    @pytest.mark.parametrize(
        ("error", "context"),
        [
            (ExtractionFailedError("Field extraction failed: no fields"), ""),
            (ValueError("boom"), "field-extraction"),
        ],
    )
    def test_field_extraction(
        self, service: ErrorRecoveryService, error: BaseException, context: str
    ) -> None:
        """Test that extraction failures are recoverable field extraction errors."""
        categorized = service.categorize_error(error, context)

        assert categorized.type == "field_extraction_error"
        assert categorized.level == ErrorLevel.RECOVERABLE

    def test_validation_is_info(self, service: ErrorRecoveryService) -> None:
        """Test that validation problems are informational."""
        categorized = service.categorize_error("validation produced warnings")

        assert categorized.type == "validation_warning"
        assert categorized.level == ErrorLevel.INFO

    def test_first_match_wins(self, service: ErrorRecoveryService) -> None:
        """Test that file access takes precedence over later categories."""
        categorized = service.categorize_error("file not found during validation", "pdf-parsing")

        assert categorized.type == "file_access_error"

    def test_unknown_error(self, service: ErrorRecoveryService) -> None:
        """Test that anything else is an unknown, recoverable error."""
        categorized = service.categorize_error(KeyError("items"))

        assert categorized.type == "unknown_error"
        assert categorized.recoverable is True
        assert categorized.message == "'items'"


class TestPartialExtraction:
    """Tests for partial invoice recovery."""

    def test_order_fields_without_totals_are_usable(self, service: ErrorRecoveryService) -> None:
        """Test that order number and date alone make a partial record usable."""
        record = service.extract_partial_invoice_data(ORDER_ONLY_TEXT, "extraction failed")

        metadata = record.extraction_metadata
        assert metadata is not None
        assert metadata.mode == "partial_recovery"
        assert metadata.usable is True
        assert metadata.original_error == "extraction failed"
        assert record.order_number == "302-1234567-1234567"
        assert record.order_date == date(2024, 3, 15)
        assert metadata.confidence["order_number"] == 1.0
        assert metadata.confidence["total"] == 0.0
        assert metadata.confidence["overall"] == pytest.approx(2 / 7)
        assert record.parser == "partial-recovery"

    def test_missing_order_fields_are_unusable(self, service: ErrorRecoveryService) -> None:
        """Test that a record without order number and date is not usable."""
        record = service.extract_partial_invoice_data("Gesamtbetrag 12,99 €")

        metadata = record.extraction_metadata
        assert metadata is not None
        assert metadata.usable is False
        not_found = {issue.field for issue in metadata.errors if issue.type == "field_not_found"}
        assert {"order_number", "order_date"} <= not_found
        assert record.total == Decimal("12.99")
        assert record.currency == "EUR"

    def test_complete_text_has_full_confidence(self, service: ErrorRecoveryService) -> None:
        """Test that every field is recovered from a complete invoice."""
        record = service.extract_partial_invoice_data(GERMAN_CONSUMER_INVOICE)

        metadata = record.extraction_metadata
        assert metadata is not None
        assert metadata.confidence["overall"] == 1.0
        assert metadata.errors == []
        assert record.items[0].unit_price == Decimal("66.38")
        assert record.tax == Decimal("11.06")

    def test_partial_record_is_validated(self, service: ErrorRecoveryService) -> None:
        """Test that the partial record carries a validation result."""
        record = service.extract_partial_invoice_data(ORDER_ONLY_TEXT)

        assert record.validation is not None
        assert "missing_total" in record.validation.issue_types()

    def test_failing_step_is_isolated(
        self, service: ErrorRecoveryService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a raising step only costs its own field."""

        def broken(text: str) -> None:
            raise RuntimeError("subtotal step exploded")

        monkeypatch.setattr(service, "_extract_subtotal", broken)

        record = service.extract_partial_invoice_data(GERMAN_CONSUMER_INVOICE)

        metadata = record.extraction_metadata
        assert metadata is not None
        assert metadata.confidence["subtotal"] == 0.0
        assert [(i.field, i.type) for i in metadata.errors] == [("subtotal", "extraction_error")]
        assert record.total == Decimal("66.38")
        assert metadata.usable is True

    def test_failing_critical_step(
        self, service: ErrorRecoveryService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a raising critical step marks the record unusable."""

        def broken(text: str) -> None:
            raise RuntimeError("order number step exploded")

        monkeypatch.setattr(service, "_extract_order_number", broken)

        record = service.extract_partial_invoice_data(GERMAN_CONSUMER_INVOICE)

        metadata = record.extraction_metadata
        assert metadata is not None
        assert metadata.usable is False
        assert {i.type for i in metadata.errors if i.field == "order_number"} == {
            "extraction_error",
            "critical_field_error",
        }

    def test_business_format_keeps_ex_vat_prices(self, service: ErrorRecoveryService) -> None:
        """Test that recovered business items report the ex-VAT unit price."""
        consumer = service.extract_partial_invoice_data(FRENCH_BUSINESS_INVOICE)
        business = service.extract_partial_invoice_data(
            FRENCH_BUSINESS_INVOICE, invoice_format=InvoiceFormat.BUSINESS_EX_VAT
        )

        assert consumer.items[0].unit_price == Decimal("186.38")
        assert business.items[0].unit_price == Decimal("155.32")
        assert business.items[0].total_price_incl_vat == Decimal("186.38")

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_text(self, service: ErrorRecoveryService, text: str | None) -> None:
        """Test that empty text yields an unusable record instead of raising."""
        record = service.extract_partial_invoice_data(text)

        assert record.extraction_metadata is not None
        assert record.extraction_metadata.usable is False
        assert record.extraction_metadata.confidence["overall"] == 0.0


class TestRecoverySuggestions:
    """Tests for remediation suggestions."""

    def test_pdf_error_with_usable_partial(self, service: ErrorRecoveryService) -> None:
        """Test PDF suggestions when partial data is usable."""
        categorized = service.categorize_error("PDF parsing failed")
        partial = service.extract_partial_invoice_data(ORDER_ONLY_TEXT)

        suggestions = service.generate_recovery_suggestions(categorized, partial)

        assert [s.action for s in suggestions] == [
            "resave_pdf",
            "check_corruption",
            "use_partial_data",
        ]

    def test_field_extraction_without_partial(self, service: ErrorRecoveryService) -> None:
        """Test that only the format check is suggested without usable data."""
        categorized = service.categorize_error("boom", "field-extraction")

        suggestions = service.generate_recovery_suggestions(categorized)

        assert [(s.action, s.priority) for s in suggestions] == [("check_format", "low")]

    def test_file_access_suggestions(self, service: ErrorRecoveryService) -> None:
        """Test file access suggestions."""
        categorized = service.categorize_error(FileNotFoundError("invoice.pdf"))

        suggestions = service.generate_recovery_suggestions(categorized)

        assert [s.action for s in suggestions] == ["check_permissions", "verify_path"]

    def test_validation_suggestion(self, service: ErrorRecoveryService) -> None:
        """Test the validation review suggestion."""
        categorized = service.categorize_error("validation failed")

        suggestions = service.generate_recovery_suggestions(categorized)

        assert [s.action for s in suggestions] == ["review_validation"]

    def test_unknown_error_with_high_confidence(self, service: ErrorRecoveryService) -> None:
        """Test that high-confidence data is suggested first, ordered by priority."""
        categorized = service.categorize_error(KeyError("items"))
        partial = service.extract_partial_invoice_data(GERMAN_CONSUMER_INVOICE)

        suggestions = service.generate_recovery_suggestions(categorized, partial)

        assert [(s.action, s.priority) for s in suggestions] == [
            ("high_confidence_data", "high"),
            ("use_extracted_data", "medium"),
            ("contact_support", "low"),
        ]

    def test_medium_confidence_is_sorted_after_high(self, service: ErrorRecoveryService) -> None:
        """Test that medium confidence data sorts below high-priority PDF steps."""
        categorized = service.categorize_error("PDF parsing failed")
        partial = service.extract_partial_invoice_data(
            ORDER_ONLY_TEXT + "\nGesamtbetrag 12,99 €"
        )

        suggestions = service.generate_recovery_suggestions(categorized, partial)

        assert [s.action for s in suggestions] == [
            "resave_pdf",
            "check_corruption",
            "medium_confidence_data",
            "use_partial_data",
        ]
