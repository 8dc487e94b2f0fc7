"""Invoice extraction pipeline orchestrator.

Runs one invoice through every stage:

    normalize -> classify format -> format cleanup -> detect language
    -> select parser -> extract + validate

and folds failures into a PipelineResult instead of raising:

- extraction succeeded: valid | invalid (by validation)
- extraction raised, error recoverable: partial recovery, partial_usable | partial_unusable
- error critical: fatal, no record and no retry

Usage:
    pipeline = InvoicePipeline(get_settings())
    result = pipeline.process(pdf_text, document_id="invoice-0001")
    if result.needs_review:
        ...
"""

import logging
import time

from invoice_pipeline.classification.format_classifier import FormatClassifier
from invoice_pipeline.classification.language_detector import LanguageDetector
from invoice_pipeline.classification.schema import (
    FormatClassification,
    InvoiceFormat,
    LanguageDetectionResult,
)
from invoice_pipeline.extraction.factory import select_parser
from invoice_pipeline.extraction.schema import InvoiceRecord, PipelineResult, ProcessingState
from invoice_pipeline.preprocessing.format_cleaner import FormatCleaner
from invoice_pipeline.preprocessing.normalizer import normalize
from invoice_pipeline.recovery.schema import CategorizedError, ErrorLevel
from invoice_pipeline.recovery.service import ErrorRecoveryService
from invoice_pipeline.shared import metrics
from invoice_pipeline.shared.config import Settings, get_settings
from invoice_pipeline.shared.errors import InvoiceProcessingError
from invoice_pipeline.validation.service import ValidationEngine

logger = logging.getLogger(__name__)


class InvoicePipeline:
    """Extracts and validates invoices from PDF text.

    Instances hold no per-invoice state and can be shared between threads.

    Attributes:
        settings: Application settings
        validator: Validation engine shared by all parsers
        recovery: Error recovery service
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize pipeline.

        Args:
            settings: Application settings (defaults to environment settings)
        """
        self.settings = settings or get_settings()
        self.classifier = FormatClassifier(self.settings)
        self.cleaner = FormatCleaner()
        self.detector = LanguageDetector(self.settings)
        self.validator = ValidationEngine(self.settings)
        self.recovery = ErrorRecoveryService(self.settings, self.validator)

    def process(
        self,
        raw_text: str | None,
        *,
        document_id: str | None = None,
        context: str = "",
        upstream_error: BaseException | str | None = None,
    ) -> PipelineResult:
        """Process one invoice.

        Never raises for invoice-level problems; the outcome is encoded in
        the result state.

        Args:
            raw_text: Text from the upstream PDF extractor
            document_id: Caller-supplied id copied into the result
            context: Processing stage an upstream error came from
            upstream_error: Error the caller hit before handing over the text

        Returns:
            PipelineResult carrying the invoice, the categorized error, or both
        """
        start = time.perf_counter()

        if upstream_error is not None:
            categorized = self.recovery.categorize_error(upstream_error, context)
            logger.warning(
                f"Upstream error for document {document_id}: {categorized.type} "
                f"({categorized.message})"
            )
            if categorized.level != ErrorLevel.INFO:
                result = self._recover_or_fail(raw_text, upstream_error, categorized, document_id)
                return self._finish(result, start)

        classification: FormatClassification | None = None
        detection: LanguageDetectionResult | None = None
        parser_tag: str | None = None
        try:
            text = normalize(raw_text)
            classification = self.classifier.classify(text)
            cleaned = self.cleaner.clean(text, classification.format)
            detection = self.detector.detect(cleaned)
            parser = select_parser(classification, detection, self.settings, self.validator)
            parser_tag = parser.variant
            invoice = parser.extract(cleaned)
        except Exception as e:
            categorized = self.recovery.categorize_error(e, context)
            logger.warning(f"Extraction failed for document {document_id}: {e}")
            invoice_format = classification.format if classification else None
            result = self._recover_or_fail(raw_text, e, categorized, document_id, invoice_format)
            result = result.model_copy(
                update={"classification": classification, "language": detection}
            )
            return self._finish(result, start)

        is_valid = invoice.validation is None or invoice.validation.is_valid
        result = PipelineResult(
            document_id=document_id,
            state=ProcessingState.VALID if is_valid else ProcessingState.INVALID,
            invoice=invoice,
            classification=classification,
            language=detection,
            parser=parser_tag,
        )
        return self._finish(result, start)

    def extract(
        self,
        raw_text: str | None,
        *,
        context: str = "",
        upstream_error: BaseException | str | None = None,
    ) -> InvoiceRecord:
        """Extract one invoice, raising only in the fatal case.

        Args:
            raw_text: Text from the upstream PDF extractor
            context: Processing stage an upstream error came from
            upstream_error: Error the caller hit before handing over the text

        Returns:
            InvoiceRecord, possibly invalid or partially recovered

        Raises:
            InvoiceProcessingError: If the error is critical; carries the CategorizedError
        """
        result = self.process(raw_text, context=context, upstream_error=upstream_error)
        if result.state == ProcessingState.FATAL or result.invoice is None:
            message = result.error.message if result.error else "Invoice processing failed"
            raise InvoiceProcessingError(message, result.error)
        return result.invoice

    def _recover_or_fail(
        self,
        raw_text: str | None,
        error: BaseException | str,
        categorized: CategorizedError,
        document_id: str | None,
        invoice_format: InvoiceFormat | None = None,
    ) -> PipelineResult:
        if not categorized.recoverable or categorized.level == ErrorLevel.CRITICAL:
            logger.error(f"Fatal {categorized.type} for document {document_id}: {error}")
            return PipelineResult(
                document_id=document_id,
                state=ProcessingState.FATAL,
                error=categorized,
                suggestions=self.recovery.generate_recovery_suggestions(categorized),
            )

        try:
            partial = self.recovery.extract_partial_invoice_data(raw_text, error, invoice_format)
        except Exception as e:
            logger.error(f"Partial recovery failed for document {document_id}: {e}")
            return PipelineResult(
                document_id=document_id,
                state=ProcessingState.FATAL,
                error=categorized,
                suggestions=self.recovery.generate_recovery_suggestions(categorized),
            )

        usable = partial.extraction_metadata is not None and partial.extraction_metadata.usable
        if self.settings.metrics_enabled:
            metrics.recovery_attempts_total.labels(
                error_type=categorized.type, usable=str(usable).lower()
            ).inc()

        return PipelineResult(
            document_id=document_id,
            state=ProcessingState.PARTIAL_USABLE if usable else ProcessingState.PARTIAL_UNUSABLE,
            invoice=partial,
            error=categorized,
            suggestions=self.recovery.generate_recovery_suggestions(categorized, partial),
            parser=partial.parser,
        )

    def _finish(self, result: PipelineResult, start: float) -> PipelineResult:
        duration = time.perf_counter() - start
        if self.settings.metrics_enabled:
            metrics.invoices_processed_total.labels(state=result.state.value).inc()
            metrics.invoice_processing_duration_seconds.observe(duration)
        logger.info(
            f"Processed document {result.document_id}: {result.state.value} "
            f"(parser={result.parser}, {duration:.3f}s)"
        )
        return result.model_copy(update={"duration_seconds": duration})
