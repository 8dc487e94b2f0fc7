"""Concurrent batch processing of invoice texts.

Runs the pipeline over many invoices on a thread pool. Results are keyed by
the caller's document id; completion order is not preserved.

Usage:
    processor = BatchProcessor(get_settings())
    results, report = processor.process_with_report({"inv-1": text1, "inv-2": text2})
"""

import logging
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor, as_completed

from invoice_pipeline.eval.metrics import BatchReport, summarize_batch
from invoice_pipeline.extraction.schema import PipelineResult
from invoice_pipeline.extraction.service import InvoicePipeline
from invoice_pipeline.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)


class BatchProcessor:
    """Process many invoices concurrently with one shared pipeline."""

    def __init__(
        self, settings: Settings | None = None, pipeline: InvoicePipeline | None = None
    ) -> None:
        """Initialize batch processor.

        Args:
            settings: Application settings (defaults to environment settings)
            pipeline: Pipeline to run (built from settings when omitted)
        """
        self.settings = settings or get_settings()
        self.pipeline = pipeline or InvoicePipeline(self.settings)

    def process(self, documents: Mapping[str, str]) -> dict[str, PipelineResult]:
        """Process a batch of invoice texts.

        Args:
            documents: Invoice text by document id

        Returns:
            PipelineResult by document id
        """
        if not documents:
            return {}

        total = len(documents)
        workers = min(self.settings.batch_max_workers, total)
        logger.info(f"Processing batch of {total} invoices with {workers} workers")

        results: dict[str, PipelineResult] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures: dict[Future[PipelineResult], str] = {
                executor.submit(self.pipeline.process, text, document_id=document_id): document_id
                for document_id, text in documents.items()
            }
            for n, future in enumerate(as_completed(futures), start=1):
                document_id = futures[future]
                result = future.result()
                results[document_id] = result
                logger.info(f"[{n}/{total}] {document_id}: {result.state.value}")

        needs_review = sum(1 for r in results.values() if r.needs_review)
        if needs_review:
            logger.warning(f"{needs_review} of {total} invoices need review")
        return results

    def process_with_report(
        self, documents: Mapping[str, str]
    ) -> tuple[dict[str, PipelineResult], BatchReport]:
        """Process a batch and summarize it.

        Args:
            documents: Invoice text by document id

        Returns:
            Tuple of (results by document id, batch report)
        """
        results = self.process(documents)
        return results, summarize_batch(results.values())
