"""Error recovery data models."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ErrorType = Literal[
    "file_access_error",
    "pdf_parsing_error",
    "field_extraction_error",
    "validation_warning",
    "unknown_error",
]


class ErrorLevel(str, Enum):
    """How far an error prevents processing from continuing."""

    CRITICAL = "critical"  # no record can be produced
    RECOVERABLE = "recoverable"  # partial extraction is attempted
    INFO = "info"  # no impact on processing


class CategorizedError(BaseModel):
    """Failure mapped onto the recovery taxonomy.

    Attributes:
        type: Taxonomy entry
        level: Severity level
        message: Original error message
        context: Processing stage the error came from (e.g. 'field-extraction')
        recoverable: Whether partial extraction is attempted
        suggestion: Canned remediation hint
    """

    model_config = ConfigDict(frozen=True)

    type: ErrorType
    level: ErrorLevel
    message: str
    context: str = ""
    recoverable: bool
    suggestion: str


class RecoverySuggestion(BaseModel):
    """Actionable next step for a failed or partial extraction."""

    model_config = ConfigDict(frozen=True)

    action: str = Field(..., description="Machine-readable action name")
    description: str
    priority: Literal["high", "medium", "low"]
