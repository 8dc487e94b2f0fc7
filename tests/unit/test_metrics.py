"""Unit tests for Prometheus metrics."""

from invoice_pipeline.shared import metrics


def test_get_metrics_exposes_pipeline_counters() -> None:
    """Test that the exposition output names the pipeline metrics."""
    metrics.invoices_processed_total.labels(state="valid").inc()
    metrics.parser_selections_total.labels(parser="en-us").inc()

    body, content_type = metrics.get_metrics()

    assert b"invoices_processed_total" in body
    assert b"parser_selections_total" in body
    assert b"invoice_processing_duration_seconds" in body
    assert "text/plain" in content_type or "openmetrics" in content_type


def test_validation_issue_counter_labels() -> None:
    """Test that validation issues are counted per type and severity."""
    counter = metrics.validation_issues_total.labels(type="future_date", severity="warning")
    before = counter._value.get()

    counter.inc()

    assert counter._value.get() == before + 1
