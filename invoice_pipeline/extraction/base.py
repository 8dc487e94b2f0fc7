"""Abstract base class for locale invoice parsers.

Every (format, language) combination is served by one parser variant. All
variants share the field extractors below, driven by their LocaleProfile, and
differ mainly in how line items are laid out.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python

Design follows existing patterns:
- Pydantic BaseModel for type-safe results (see schema.py)
- ABC for interface enforcement (Python standard library)
- Settings injection (consistent with service initialization elsewhere)

Field extractors never raise and return None (items: an empty list) for
missing input. Only extract() as a whole may fail.
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import ClassVar

from invoice_pipeline.classification.language_detector import LanguageDetector
from invoice_pipeline.classification.schema import InvoiceFormat, LanguageDetectionResult
from invoice_pipeline.extraction.amounts import detect_currency, find_labeled_amount
from invoice_pipeline.extraction.dates import find_labeled_date, parse_date
from invoice_pipeline.extraction.locales import LocaleProfile
from invoice_pipeline.extraction.schema import InvoiceRecord, LineItem
from invoice_pipeline.shared.config import Settings
from invoice_pipeline.shared.errors import ExtractionFailedError
from invoice_pipeline.validation.service import ValidationEngine

logger = logging.getLogger(__name__)

ORDER_NUMBER_RE = re.compile(r"(?<![-\d])(\d{3}-\d{7}-\d{7})(?![-\d])")

# Search window after an order-number label
_LABEL_WINDOW = 60


class BaseParser(ABC):
    """Abstract base class for invoice parser variants.

    Subclasses set `profile` and `invoice_format` and implement extract_items.

    Example implementations:
    - ConsumerGermanParser: EU VAT table, VAT-inclusive prices
    - BusinessFrenchParser: EU VAT table, ex-VAT prices
    - UnitedStatesParser: amazon.com order summary
    """

    profile: ClassVar[LocaleProfile]
    invoice_format: ClassVar[InvoiceFormat]

    def __init__(self, settings: Settings, validator: ValidationEngine | None = None) -> None:
        """Initialize parser with settings.

        Args:
            settings: Application settings
            validator: Validation engine (built from settings when omitted)
        """
        self.settings = settings
        self.validator = validator or ValidationEngine(settings)

    @property
    @abstractmethod
    def variant(self) -> str:
        """Get parser variant tag for logging/metrics.

        Returns:
            Variant identifier (e.g., 'consumer-de', 'en-us')
        """
        pass

    @abstractmethod
    def extract_items(self, text: str | None) -> list[LineItem]:
        """Extract line items in document order.

        Args:
            text: Preprocessed invoice text

        Returns:
            Line items (empty list when none are found)
        """
        pass

    def is_available(self) -> bool:
        """Check that the locale tables this parser relies on are populated."""
        return bool(self.profile.order_number_labels and self.profile.total_labels)

    # Shared field extractors

    def extract_order_number(self, text: str | None) -> str | None:
        """Extract the marketplace order number (NNN-NNNNNNN-NNNNNNN)."""
        if not text:
            return None
        for label in self.profile.order_number_labels:
            for match in label.finditer(text):
                window = text[match.end() : match.end() + _LABEL_WINDOW]
                found = ORDER_NUMBER_RE.search(window)
                if found:
                    return found.group(1)
        found = ORDER_NUMBER_RE.search(text)
        return found.group(1) if found else None

    def extract_order_date(self, text: str | None) -> date | None:
        """Extract the order date, preferring labelled dates."""
        if not text:
            return None
        labelled = find_labeled_date(
            text, self.profile.order_date_labels, self.profile.months, self.profile.day_first
        )
        if labelled is not None:
            return labelled
        return parse_date(text, self.profile.months, self.profile.day_first)

    def extract_subtotal(self, text: str | None) -> Decimal | None:
        """Extract the printed subtotal."""
        return self.find_labeled_amount(text, self.profile.subtotal_labels)

    def extract_shipping(self, text: str | None) -> Decimal | None:
        """Extract shipping charges."""
        return self.find_labeled_amount(text, self.profile.shipping_labels)

    def extract_tax(self, text: str | None) -> Decimal | None:
        """Extract the tax amount (last amount of a VAT summary row)."""
        return self.find_labeled_amount(text, self.profile.tax_labels, take_last=True)

    def extract_total(self, text: str | None) -> Decimal | None:
        """Extract the amount charged."""
        return self.find_labeled_amount(text, self.profile.total_labels)

    def extract_discount(self, text: str | None) -> Decimal | None:
        """Extract discounts and coupons as a positive amount."""
        return self.find_labeled_amount(text, self.profile.discount_labels)

    def detect_currency(self, text: str | None) -> str:
        """Detect the invoice currency, defaulting to the locale currency."""
        return detect_currency(text, self.profile.currency)

    def detect_language(self, text: str | None) -> LanguageDetectionResult:
        """Detect the invoice language with the shared detector."""
        return LanguageDetector(self.settings).detect(text)

    def find_labeled_amount(
        self,
        text: str | None,
        labels: tuple[re.Pattern[str], ...],
        take_last: bool = False,
    ) -> Decimal | None:
        """Find a label's amount in the locale's money notation."""
        return find_labeled_amount(text, labels, self.profile.amount_style, take_last)

    def extract(self, text: str) -> InvoiceRecord:
        """Extract and validate a complete invoice record.

        Args:
            text: Preprocessed invoice text

        Returns:
            InvoiceRecord with the validation result attached

        Raises:
            ExtractionFailedError: If the text is empty or no field is recognised
        """
        if not text or not text.strip():
            raise ExtractionFailedError("Field extraction failed: invoice text is empty")

        record = InvoiceRecord(
            order_number=self.extract_order_number(text),
            order_date=self.extract_order_date(text),
            items=self.extract_items(text),
            subtotal=self.extract_subtotal(text),
            shipping=self.extract_shipping(text),
            tax=self.extract_tax(text),
            discount=self.extract_discount(text),
            total=self.extract_total(text),
            currency=self.detect_currency(text),
            invoice_format=self.invoice_format,
            language=self.profile.language,
            parser=self.variant,
        )

        if (
            record.order_number is None
            and record.order_date is None
            and not record.items
            and record.subtotal is None
            and record.total is None
        ):
            raise ExtractionFailedError(
                f"Field extraction failed: parser '{self.variant}' recognised no invoice fields"
            )

        logger.info(
            f"Parser '{self.variant}' extracted order {record.order_number} "
            f"with {len(record.items)} items"
        )
        return record.with_validation(self.validator.validate(record))
