"""Unit tests for batch processing.

Tests cover:
- Results keyed by document id
- Empty batches
- Batch report generation
"""

import pytest

from invoice_pipeline.batch.processor import BatchProcessor
from invoice_pipeline.extraction.schema import ProcessingState
from invoice_pipeline.shared.config import Settings

US_INVOICE = """amazon.com
Order Placed: January 15, 2024
Order Number: 123-4567890-1234567
Items Ordered Price
1 of: USB-C Cable, 6ft
Sold by: Cable Co
$12.99
2 of: Phone Case
Sold by: Case Co
$8.50
Subtotal: $29.99
Shipping: $0.00
Discount: -$0.00
Tax: $2.47
Grand Total: $32.46"""


@pytest.fixture
def processor() -> BatchProcessor:
    """Create batch processor with two workers."""
    return BatchProcessor(Settings(_env_file=None, metrics_enabled=False, batch_max_workers=2))


def test_process_keys_results_by_document_id(processor: BatchProcessor) -> None:
    """Test that every document gets a result under its own id."""
    results = processor.process({"a": US_INVOICE, "b": ""})

    assert set(results) == {"a", "b"}
    assert results["a"].state == ProcessingState.VALID
    assert results["a"].document_id == "a"
    assert results["b"].state == ProcessingState.PARTIAL_UNUSABLE


def test_process_empty_batch(processor: BatchProcessor) -> None:
    """Test that an empty batch returns no results."""
    assert processor.process({}) == {}


def test_process_logs_review_count(
    processor: BatchProcessor, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that invoices needing review are reported."""
    with caplog.at_level("WARNING"):
        processor.process({"a": US_INVOICE, "b": ""})

    assert "1 of 2 invoices need review" in caplog.text


def test_process_with_report(processor: BatchProcessor) -> None:
    """Test that the report summarizes the batch."""
    results, report = processor.process_with_report({"a": US_INVOICE, "b": ""})

    assert len(results) == 2
    assert report.total_invoices == 2
    assert report.successful_invoices == 1
    assert report.failed_invoices == 1
    assert report.success_rate == 0.5
    assert report.state_counts["valid"] == 1
    assert report.state_counts["partial_unusable"] == 1
    assert report.state_counts["fatal"] == 0
    assert list(report.languages) == ["EN"]
    assert report.languages["EN"].count == 1
    assert report.errors == ["Field extraction failed: invoice text is empty"]
