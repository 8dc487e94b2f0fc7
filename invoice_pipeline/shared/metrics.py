"""Prometheus metrics for the extraction pipeline.

Exposes key metrics for monitoring:
- Invoice outcomes by processing state
- Processing duration histogram
- Parser variant selection and language fallbacks
- OCR price containment, validation issues and recovery attempts

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Outcome metrics
invoices_processed_total = Counter(
    "invoices_processed_total",
    "Total invoices processed",
    ["state"],  # valid, invalid, partial_usable, partial_unusable, fatal
)

invoice_processing_duration_seconds = Histogram(
    "invoice_processing_duration_seconds",
    "Invoice processing duration in seconds",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)

# Dispatch metrics
parser_selections_total = Counter(
    "parser_selections_total",
    "Parser variant selections",
    ["parser"],
)

language_fallbacks_total = Counter(
    "language_fallbacks_total",
    "Language detections that fell back to English",
)

# Data quality metrics
ocr_price_corrections_total = Counter(
    "ocr_price_corrections_total",
    "Line item prices contained as OCR digit-merge suspects",
)

validation_issues_total = Counter(
    "validation_issues_total",
    "Validation issues raised",
    ["type", "severity"],
)

recovery_attempts_total = Counter(
    "recovery_attempts_total",
    "Partial recovery attempts after a failed extraction",
    ["error_type", "usable"],
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
