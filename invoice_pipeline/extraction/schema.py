"""Invoice data models produced by the extraction pipeline.

Records are frozen: the Validation Engine attaches its result by producing a
copy, so a record handed to a caller never changes underneath it.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from invoice_pipeline.classification.schema import (
    FormatClassification,
    InvoiceFormat,
    Language,
    LanguageDetectionResult,
)
from invoice_pipeline.recovery.schema import CategorizedError, RecoverySuggestion


class IssueSeverity(str, Enum):
    """Severity of a validation issue."""

    CRITICAL = "critical"
    WARNING = "warning"
    RECOVERABLE = "recoverable"
    INFO = "info"


class LineItem(BaseModel):
    """One purchased article.

    For business (ex-VAT) invoices unit_price and total_price are ex-VAT and
    total_price_incl_vat keeps the VAT-inclusive line total. For consumer
    invoices both reported prices are VAT-inclusive.
    """

    model_config = ConfigDict(frozen=True)

    asin: str | None = Field(None, description="Marketplace product identifier")
    description: str = Field(..., description="Article description")
    quantity: int = Field(1, ge=1, description="Ordered quantity")
    unit_price: Decimal = Field(..., description="Reported price per unit")
    total_price: Decimal = Field(..., description="Reported line total (unit_price x quantity)")
    currency: str = Field(..., description="Currency code (ISO 4217)")
    vat_rate: Decimal | None = Field(None, description="VAT rate in percent")
    total_price_incl_vat: Decimal | None = Field(
        None, description="VAT-inclusive line total (business invoices)"
    )
    confidence: float = Field(1.0, ge=0, le=1, description="Extraction confidence (0-1)")
    ocr_suspect: bool = Field(
        False, description="A price on this row looked like an OCR digit merge"
    )


class ValidationIssue(BaseModel):
    """Single validation finding."""

    model_config = ConfigDict(frozen=True)

    type: str
    severity: IssueSeverity
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    """Outcome of validating one invoice record.

    Attributes:
        errors: Issues that invalidate the record when critical
        warnings: Issues that lower the score but keep the record valid
        score: 100 minus fixed penalties, floor 0
        is_valid: False iff a critical error exists
        summary: Human readable overview of the issues
    """

    model_config = ConfigDict(frozen=True)

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    score: int = Field(100, ge=0, le=100)
    is_valid: bool = True
    summary: str = ""

    def issue_types(self) -> list[str]:
        """Types of all errors followed by all warnings."""
        return [issue.type for issue in [*self.errors, *self.warnings]]


class FieldExtractionIssue(BaseModel):
    """Field that could not be recovered during partial extraction."""

    model_config = ConfigDict(frozen=True)

    field: str
    type: Literal["field_not_found", "extraction_error", "critical_field_error"]
    message: str | None = None


class ExtractionMetadata(BaseModel):
    """Recovery bookkeeping attached to partially extracted records."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["partial_recovery"] = "partial_recovery"
    confidence: dict[str, float] = Field(default_factory=dict)
    errors: list[FieldExtractionIssue] = Field(default_factory=list)
    recovery_attempted: bool = True
    usable: bool = False
    original_error: str | None = None


class InvoiceRecord(BaseModel):
    """Structured data extracted from one marketplace invoice."""

    model_config = ConfigDict(frozen=True)

    order_number: str | None = Field(None, description="Marketplace order number")
    order_date: date | None = Field(None, description="Date the order was placed")
    vendor: str = Field("Amazon", description="Issuing marketplace")
    items: list[LineItem] = Field(default_factory=list, description="Line items in invoice order")

    # Financial details
    subtotal: Decimal | None = Field(None, description="Subtotal as printed on the invoice")
    shipping: Decimal | None = Field(None, description="Shipping charges")
    tax: Decimal | None = Field(None, description="Tax / VAT amount")
    discount: Decimal | None = Field(None, description="Discounts and coupons (positive amount)")
    total: Decimal | None = Field(None, description="Amount charged")
    currency: str = Field("EUR", description="Currency code (ISO 4217)")

    validation: ValidationResult | None = Field(None, description="Attached validation result")
    extraction_metadata: ExtractionMetadata | None = Field(
        None, description="Present only when error recovery produced the record"
    )

    # Provenance
    invoice_format: InvoiceFormat | None = None
    language: Language | None = None
    parser: str | None = Field(None, description="Parser variant tag that produced the record")

    def with_validation(self, validation: ValidationResult) -> "InvoiceRecord":
        """Return a copy of the record with the validation result attached."""
        return self.model_copy(update={"validation": validation})

    @property
    def items_total(self) -> Decimal:
        """Sum of the reported line totals."""
        return sum((item.total_price for item in self.items), Decimal("0.00"))


class ProcessingState(str, Enum):
    """Terminal state of one invoice's processing."""

    VALID = "valid"
    INVALID = "invalid"
    PARTIAL_USABLE = "partial_usable"
    PARTIAL_UNUSABLE = "partial_unusable"
    FATAL = "fatal"


class PipelineResult(BaseModel):
    """Outcome of processing one invoice.

    Carries an invoice, a categorized error, or both when recovery produced a
    partial record from a failed extraction.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str | None = Field(None, description="Caller-supplied correlation id")
    state: ProcessingState
    invoice: InvoiceRecord | None = None
    error: CategorizedError | None = None
    suggestions: list[RecoverySuggestion] = Field(default_factory=list)
    classification: FormatClassification | None = None
    language: LanguageDetectionResult | None = None
    parser: str | None = None
    duration_seconds: float = Field(0.0, ge=0)

    @property
    def needs_review(self) -> bool:
        """True unless the invoice was extracted and fully validated."""
        return self.state != ProcessingState.VALID
