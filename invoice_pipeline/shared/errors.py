"""Exceptions raised by the extraction pipeline.

Only two situations surface as exceptions: a parser that cannot recognise any
invoice field, and a fatal (critical) categorized error leaving `extract()`.
Everything recoverable is folded into a PipelineResult instead.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from invoice_pipeline.recovery.schema import CategorizedError


class InvoiceProcessingError(Exception):
    """Base error for invoice processing.

    Attributes:
        categorized: Categorized error describing the failure, if known
    """

    def __init__(self, message: str, categorized: "CategorizedError | None" = None) -> None:
        super().__init__(message)
        self.categorized = categorized


class ExtractionFailedError(InvoiceProcessingError):
    """Field extraction failed for the whole invoice."""
