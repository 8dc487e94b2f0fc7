"""Classification results shared by the format classifier and language detector."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class InvoiceFormat(str, Enum):
    """Structural invoice layout family, independent of language."""

    CONSUMER_STANDARD = "ConsumerStandard"
    CONSUMER_EU_VAT_INCLUSIVE = "ConsumerEUVatInclusive"
    BUSINESS_EX_VAT = "BusinessExVat"
    UNKNOWN = "Unknown"


class Language(str, Enum):
    """Language and region variants with dedicated parsers."""

    EN = "EN"
    DE = "DE"
    FR = "FR"
    ES = "ES"
    IT = "IT"
    JP = "JP"
    CA = "CA"
    AU = "AU"
    CH = "CH"
    GB = "GB"


class FormatClassification(BaseModel):
    """Layout family assigned to one invoice.

    Attributes:
        format: Winning layout family (Unknown below the minimum score)
        confidence: Winning score normalized to [0, 1] (not a probability)
        scores: Raw signal score per layout family
    """

    model_config = ConfigDict(frozen=True)

    format: InvoiceFormat
    confidence: float = Field(..., ge=0, le=1)
    scores: dict[str, int] = Field(default_factory=dict)


class LanguageDetectionResult(BaseModel):
    """Language variant selected for one invoice.

    Attributes:
        language: Winning language, or EN when the fallback applied
        confidence: Winning total normalized to [0, 1]
        scores: Raw signal points per language code
        fallback: True when confidence was too low and English was chosen
    """

    model_config = ConfigDict(frozen=True)

    language: Language
    confidence: float = Field(..., ge=0, le=1)
    scores: dict[str, int] = Field(default_factory=dict)
    fallback: bool = False
