"""Shared configuration management for the invoice pipeline.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/

Detection thresholds, OCR heuristics and validation tolerances are policy
constants rather than business rules, so every one of them lives here and can
be tuned per deployment.
"""

import logging
from decimal import Decimal
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'INVOICE_'.
    Example: INVOICE_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="INVOICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-extraction-pipeline",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Classification
    format_min_score: int = Field(
        default=25,
        description="Minimum layout signal score before a format is assigned (else Unknown)",
        ge=0,
    )
    language_confidence_threshold: float = Field(
        default=0.5,
        description="Below this detection confidence the English parser is used",
        ge=0,
        le=1,
    )

    # Item extraction and OCR digit-merge containment
    item_window_lines: int = Field(
        default=8,
        description="Lines scanned after an ASIN marker when collecting price columns",
        ge=1,
    )
    ocr_price_threshold: Decimal = Field(
        default=Decimal("5000"),
        description="Unit prices above this are implausible when peers are much cheaper",
    )
    ocr_magnitude_ratio: Decimal = Field(
        default=Decimal("10"),
        description="Ratio to the median of the other rows that marks an amount as inflated",
    )
    ocr_item_confidence: float = Field(
        default=0.5,
        description="Confidence assigned to items whose price was contained as OCR-suspect",
        ge=0,
        le=1,
    )

    # Validation policy
    subtotal_rounding_tolerance: Decimal = Field(
        default=Decimal("0.10"),
        description="Item/subtotal gap accepted silently as rounding",
    )
    subtotal_minor_tolerance: Decimal = Field(
        default=Decimal("1.00"),
        description="Upper bound of the minor_discrepancy warning tier",
    )
    subtotal_critical_tolerance: Decimal = Field(
        default=Decimal("5.00"),
        description="Gap at or above which an item_subtotal_mismatch error is raised",
    )
    suspicious_price_threshold: Decimal = Field(
        default=Decimal("1000"),
        description="Unit price above which a high_price_warning is emitted",
    )
    corrupted_price_threshold: Decimal = Field(
        default=Decimal("10000"),
        description="Unit price above which the item is treated as corrupted (critical)",
    )
    high_total_threshold: Decimal = Field(
        default=Decimal("10000"),
        description="Invoice total above which a high_total_amount warning is emitted",
    )
    low_total_threshold: Decimal = Field(
        default=Decimal("1"),
        description="Invoice total below which a low_total_amount warning is emitted",
    )
    earliest_plausible_year: int = Field(
        default=2010,
        description="Order dates before this year produce a very_old_date warning",
    )
    error_penalty: int = Field(default=20, description="Score deduction per error", ge=0)
    warning_penalty: int = Field(default=5, description="Score deduction per warning", ge=0)

    # Error recovery
    recovery_field_confidence: float = Field(
        default=1.0,
        description="Confidence both critical fields need for a partial result to be usable",
        ge=0,
        le=1,
    )
    recovery_high_confidence: float = Field(
        default=0.7,
        description="Overall partial confidence above which the data is suggested as-is",
        ge=0,
        le=1,
    )
    recovery_medium_confidence: float = Field(
        default=0.3,
        description="Overall partial confidence above which the data is suggested for review",
        ge=0,
        le=1,
    )

    # Batch processing
    batch_max_workers: int = Field(
        default=4,
        description="Worker threads used for batch processing",
        ge=1,
    )

    # Monitoring
    metrics_enabled: bool = Field(
        default=True,
        description="Record Prometheus metrics for processed invoices",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Configure root logging for processes embedding the pipeline.

    Args:
        settings: Application settings providing the log level
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
