"""Evaluation metrics for invoice extraction.

Computes precision, recall, and F1 scores for extracted invoice fields,
per-invoice extraction completeness, and batch performance reports.
Based on standard information extraction evaluation methodologies.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from invoice_pipeline.extraction.schema import InvoiceRecord, PipelineResult, ProcessingState

# Fields compared against ground truth; "items" compares the item count
EVALUATED_FIELDS = (
    "order_number",
    "order_date",
    "items",
    "subtotal",
    "shipping",
    "tax",
    "discount",
    "total",
    "currency",
)

# Fields whose presence counts towards extraction completeness
COMPLETENESS_FIELDS = (
    "order_number",
    "order_date",
    "items",
    "subtotal",
    "tax",
    "shipping",
    "total",
)

_SUCCESSFUL_STATES = (ProcessingState.VALID, ProcessingState.INVALID)


@dataclass
class FieldMetrics:
    """Metrics for a single field."""

    precision: float
    recall: float
    f1: float
    support: int  # Number of samples


@dataclass
class EvaluationReport:
    """Complete evaluation report."""

    field_metrics: dict[str, FieldMetrics]
    macro_f1: float
    total_samples: int


@dataclass
class ItemsDetail:
    """Line item quality of one invoice."""

    total_items: int
    items_with_prices: int
    items_with_descriptions: int


@dataclass
class ExtractionCompleteness:
    """Which fields one invoice yielded.

    Attributes:
        fields: Presence flag per completeness field
        overall: Share of fields present (0-1)
        items_detail: Item quality, only when items were extracted
    """

    fields: dict[str, bool]
    overall: float
    items_detail: ItemsDetail | None = None


@dataclass
class LanguageStats:
    """Detection statistics for one language across a batch."""

    count: int
    average_confidence: float


@dataclass
class BatchReport:
    """Performance report over a batch of pipeline results.

    Timing, completeness and field rates cover successfully extracted
    invoices only (valid or invalid); partial and fatal results count as
    failed and contribute their error messages.
    """

    total_invoices: int
    successful_invoices: int
    failed_invoices: int
    success_rate: float
    state_counts: dict[str, int]
    average_processing_time: float = 0.0
    min_processing_time: float = 0.0
    max_processing_time: float = 0.0
    total_processing_time: float = 0.0
    average_extraction_success: float = 0.0
    field_success_rates: dict[str, float] = field(default_factory=dict)
    languages: dict[str, LanguageStats] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def calculate_field_match(expected: Any, predicted: Any) -> bool:
    """Check if extracted field matches expected value.

    Args:
        expected: Ground truth value
        predicted: Extracted value

    Returns:
        True if values match (with a one-cent tolerance for amounts)
    """
    if expected is None and predicted is None:
        return True

    if expected is None or predicted is None:
        return False

    # bool is an int subclass; compare it directly
    if isinstance(expected, bool) or isinstance(predicted, bool):
        return expected is predicted

    if isinstance(expected, int | float | Decimal) and isinstance(predicted, int | float | Decimal):
        return abs(Decimal(str(expected)) - Decimal(str(predicted))) < Decimal("0.01")

    if isinstance(expected, date) or isinstance(predicted, date):
        exp_str = expected.isoformat() if isinstance(expected, date) else str(expected).strip()
        pred_str = predicted.isoformat() if isinstance(predicted, date) else str(predicted).strip()
        return exp_str == pred_str

    if isinstance(expected, str) and isinstance(predicted, str):
        return " ".join(expected.lower().split()) == " ".join(predicted.lower().split())

    return bool(expected == predicted)


def _field_value(record: InvoiceRecord, name: str) -> Any:
    if name == "items":
        return len(record.items) if record.items else None
    return getattr(record, name)


def evaluate_extraction(
    expected: list[InvoiceRecord], predicted: list[InvoiceRecord]
) -> EvaluationReport:
    """Evaluate extraction accuracy against ground truth.

    Computes precision, recall, and F1 for each invoice field.

    Args:
        expected: Ground truth invoice records
        predicted: Extracted invoice records, in the same order

    Returns:
        Evaluation report with per-field and overall metrics

    Raises:
        ValueError: If the lists differ in length
    """
    if len(expected) != len(predicted):
        raise ValueError("Expected and predicted lists must have same length")

    field_metrics: dict[str, FieldMetrics] = {}

    for name in EVALUATED_FIELDS:
        true_positives = 0
        false_positives = 0
        false_negatives = 0

        for exp, pred in zip(expected, predicted, strict=True):
            exp_value = _field_value(exp, name)
            pred_value = _field_value(pred, name)

            if exp_value is not None and pred_value is not None:
                if calculate_field_match(exp_value, pred_value):
                    true_positives += 1
                else:
                    false_positives += 1  # Predicted wrong value
                    false_negatives += 1  # Missed correct value
            elif exp_value is not None:
                false_negatives += 1
            elif pred_value is not None:
                false_positives += 1

        precision = (
            true_positives / (true_positives + false_positives)
            if (true_positives + false_positives) > 0
            else 0.0
        )
        recall = (
            true_positives / (true_positives + false_negatives)
            if (true_positives + false_negatives) > 0
            else 0.0
        )
        f1 = 2 * (precision * recall) / (precision + recall) if (precision + recall) > 0 else 0.0

        field_metrics[name] = FieldMetrics(
            precision=precision,
            recall=recall,
            f1=f1,
            support=len(expected),
        )

    macro_f1 = sum(m.f1 for m in field_metrics.values()) / len(field_metrics)

    return EvaluationReport(
        field_metrics=field_metrics,
        macro_f1=macro_f1,
        total_samples=len(expected),
    )


def calculate_extraction_completeness(invoice: InvoiceRecord | None) -> ExtractionCompleteness:
    """Report which fields an invoice yielded.

    Args:
        invoice: Extracted record, or None when extraction produced nothing

    Returns:
        Per-field presence, overall ratio and item detail
    """
    if invoice is None:
        return ExtractionCompleteness(
            fields={name: False for name in COMPLETENESS_FIELDS}, overall=0.0
        )

    fields = {
        "order_number": bool(invoice.order_number and invoice.order_number.strip()),
        "order_date": invoice.order_date is not None,
        "items": bool(invoice.items),
        "subtotal": invoice.subtotal is not None,
        "tax": invoice.tax is not None,
        "shipping": invoice.shipping is not None,
        "total": invoice.total is not None,
    }
    overall = sum(fields.values()) / len(fields)

    items_detail = None
    if invoice.items:
        described = [item for item in invoice.items if item.description.strip()]
        items_detail = ItemsDetail(
            total_items=len(invoice.items),
            items_with_prices=sum(1 for item in invoice.items if item.unit_price > 0),
            items_with_descriptions=len(described),
        )

    return ExtractionCompleteness(fields=fields, overall=overall, items_detail=items_detail)


def summarize_batch(results: Iterable[PipelineResult]) -> BatchReport:
    """Build a performance report over pipeline results.

    Args:
        results: Results of one batch, in any order

    Returns:
        BatchReport (all rates 0 for an empty batch)
    """
    results = list(results)
    successful = [r for r in results if r.state in _SUCCESSFUL_STATES]
    state_counts = Counter(r.state.value for r in results)

    report = BatchReport(
        total_invoices=len(results),
        successful_invoices=len(successful),
        failed_invoices=len(results) - len(successful),
        success_rate=len(successful) / len(results) if results else 0.0,
        state_counts={state.value: state_counts.get(state.value, 0) for state in ProcessingState},
        field_success_rates={name: 0.0 for name in COMPLETENESS_FIELDS},
    )

    if successful:
        durations = [r.duration_seconds for r in successful]
        report.total_processing_time = sum(durations)
        report.average_processing_time = report.total_processing_time / len(successful)
        report.min_processing_time = min(durations)
        report.max_processing_time = max(durations)

        completeness = [calculate_extraction_completeness(r.invoice) for r in successful]
        report.average_extraction_success = sum(c.overall for c in completeness) / len(successful)
        for name in COMPLETENESS_FIELDS:
            hits = sum(1 for c in completeness if c.fields[name])
            report.field_success_rates[name] = hits / len(successful)

        confidences: dict[str, list[float]] = {}
        for r in successful:
            if r.language is not None:
                confidences.setdefault(r.language.language.value, []).append(r.language.confidence)
        report.languages = {
            language: LanguageStats(count=len(values), average_confidence=sum(values) / len(values))
            for language, values in confidences.items()
        }

    report.errors = [
        r.error.message if r.error else "Unknown error"
        for r in results
        if r.state not in _SUCCESSFUL_STATES
    ]
    return report
