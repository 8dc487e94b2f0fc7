"""Invoice layout family classification.

Two layout families are scored with fixed-weight signals:

- standard: order-summary invoices (amazon.com, .com.au, .ca, .co.jp) with
  "1 of:" item rows and per-unit prices
- EU: VAT table invoices (amazon.de, .fr, .es, .it, .co.uk) with ASIN
  markers and ex-VAT / inc-VAT price columns

An EU winner is then split into business (ex-VAT reporting) and consumer
(VAT-inclusive reporting) by counting indicator terms. The confidence is the
winning score pushed through fixed tiers; it is a normalized score, not a
probability.
"""

import logging
import re
from collections.abc import Iterable

from invoice_pipeline.classification.schema import FormatClassification, InvoiceFormat
from invoice_pipeline.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

STANDARD_FAMILY = "standard"
EU_FAMILY = "eu"

Signal = tuple[re.Pattern[str], int]


def _weighted(points: int, patterns: Iterable[str], flags: int = re.IGNORECASE) -> list[Signal]:
    return [(re.compile(pattern, flags), points) for pattern in patterns]


def _months(*names: str) -> list[str]:
    return [rf"\b{name}\b" for name in names]


STANDARD_SIGNALS: tuple[Signal, ...] = tuple(
    _weighted(
        40,
        [
            r"amazon\.com\b",
            r"\bOrder Placed",
            r"\bOrder #",
            r"\bOrder Number",
            r"\bItems Ordered",
            r"\bShipped to:",
            r"^\s*\d{1,3}\s+of:",
        ],
        re.IGNORECASE | re.MULTILINE,
    )
    + _weighted(40, [r"注文番号", r"amazon\.co\.jp"])
    + _weighted(20, [r"\bSold by", r"\bGrand Total", r"\bOrder Total", r"\bShipping Address"])
    + _weighted(20, [r"\$", r"\bUSD\b", r"[¥￥]"])
    + _weighted(
        15,
        _months(
            "January", "February", "March", "April", "May", "June", "July",
            "August", "September", "October", "November", "December",
        ),
    )
)  # fmt: skip

EU_SIGNALS: tuple[Signal, ...] = tuple(
    _weighted(
        40,
        [
            r"amazon\.de\b",
            r"amazon\.fr\b",
            r"amazon\.it\b",
            r"amazon\.es\b",
            r"amazon\.co\.uk\b",
            r"amazon\.nl\b",
            r"amazon\.se\b",
            r"amazon\.pl\b",
            r"\bASIN\b",
        ],
    )
    + _weighted(20, [r"€", r"\bEUR\b", r"£", r"\bGBP\b", r"\bCHF\b"])
    + _weighted(
        15,
        _months(
            # German
            "Januar", "Februar", "März", "April", "Mai", "Juni", "Juli", "August",
            "September", "Oktober", "November", "Dezember",
            # French
            "janvier", "février", "mars", "avril", "juin", "juillet", "août",
            "septembre", "octobre", "novembre", "décembre",
            # Spanish
            "enero", "febrero", "marzo", "abril", "mayo", "junio", "julio", "agosto",
            "septiembre", "octubre", "noviembre", "diciembre",
            # Italian
            "gennaio", "febbraio", "aprile", "maggio", "giugno", "luglio",
            "settembre", "ottobre", "dicembre",
        ),
    )
    + _weighted(
        25,
        [
            r"\bRechnung",
            r"\bFacture",
            r"\bFattura",
            r"\bFactura",
            r"\bBestellung",
            r"\bCommande",
            r"\bOrdine",
            r"\bPedido",
        ],
    )
    + _weighted(25, [r"inkl\.?\s*USt", r"ohne\s*USt", r"\bIVA\s+incl"])
    + _weighted(25, [r"\bTTC\b", r"\bHT\b"], 0)
)  # fmt: skip

BUSINESS_INDICATORS: tuple[re.Pattern[str], ...] = (
    re.compile(r"amazon\s+business", re.IGNORECASE),
    re.compile(r"Geschäftsadresse"),
    re.compile(r"Auftraggeber"),
    re.compile(r"Rechnung\s+an\b"),
    re.compile(r"\bFirma\b"),
    re.compile(r"USt-IdNr"),
    re.compile(r"Steuernummer"),
    re.compile(r"\bGmbH\b", re.IGNORECASE),
    re.compile(r"\bAG\b"),
    re.compile(r"\bKGaA\b", re.IGNORECASE),
    re.compile(r"Dirección comercial"),
    re.compile(r"NIF sujeto de IVA"),
    re.compile(r"Adresse (?:professionnelle|commerciale)"),
    re.compile(r"Numéro de TVA"),
    re.compile(r"TVA\s+[A-Z]{2}\d"),
    re.compile(r"Facture\s+à"),
    re.compile(r"\bEntreprise\b"),
    re.compile(r"S\.A\.R\.L|S\.A\.S\b"),
    re.compile(r"\bTotal\s+HT\b"),
    re.compile(r"Partita IVA"),
    re.compile(r"\bP\.?I\.?\s+\d"),
    re.compile(r"\bazienda\b", re.IGNORECASE),
    re.compile(
        r"Steuerschuldnerschaft des Leistungsempfängers|Autoliquidation"
        r"|Inversión del sujeto pasivo|Inversione contabile|reverse charge",
        re.IGNORECASE,
    ),
    # Pipe-delimited dual-price rows: "desc | 1 | 155,32 € | 20% | 186,38 € | ..."
    re.compile(r"\|\s*\d{1,3}\s*\|[^\n]*\d[.,]\d{2}[^\n]*\|[^\n]*\d[.,]\d{2}"),
)

CONSUMER_INDICATORS: tuple[re.Pattern[str], ...] = (
    re.compile(r"amazon\.de\b", re.IGNORECASE),
    re.compile(r"amazon\.fr\b", re.IGNORECASE),
    re.compile(r"amazon\.co\.uk\b", re.IGNORECASE),
    re.compile(r"Rechnungsadresse(?!.*Geschäftsadresse)"),
    re.compile(r"Steuerfreie Ausfuhrlieferung"),
    re.compile(r"Privatkunde"),
    re.compile(r"Endverbraucher"),
    re.compile(r"Zahlbetrag"),
    re.compile(r"Lieferanschrift"),
    re.compile(r"Zahlungsmethode"),
)

_GERMAN_BUSINESS_TERMS = re.compile(
    r"Geschäftsadresse|USt-IdNr|Steuernummer|Rechnung\s+an\b|\bFirma\b", re.IGNORECASE
)
_GERMAN_CONSUMER_TERMS = re.compile(r"Privatkunde|Endverbraucher", re.IGNORECASE)
_GERMAN_TERM_BONUS = 2


def _score(text: str, signals: tuple[Signal, ...]) -> int:
    return sum(points for pattern, points in signals if pattern.search(text))


class FormatClassifier:
    """Assigns an InvoiceFormat to preprocessed invoice text."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize classifier.

        Args:
            settings: Application settings (defaults to environment settings)
        """
        self.settings = settings or get_settings()

    def score(self, text: str | None) -> dict[str, int]:
        """Raw signal score per layout family."""
        if not text:
            return {STANDARD_FAMILY: 0, EU_FAMILY: 0}
        return {
            STANDARD_FAMILY: _score(text, STANDARD_SIGNALS),
            EU_FAMILY: _score(text, EU_SIGNALS),
        }

    def classify(self, text: str | None) -> FormatClassification:
        """Classify the layout family of an invoice.

        Args:
            text: Preprocessed invoice text

        Returns:
            FormatClassification; Unknown when neither family reaches the
            minimum score
        """
        scores = self.score(text)
        standard, eu = scores[STANDARD_FAMILY], scores[EU_FAMILY]
        minimum = self.settings.format_min_score

        if standard < minimum and eu < minimum:
            logger.info(f"No layout family reached score {minimum}: {scores}")
            return FormatClassification(
                format=InvoiceFormat.UNKNOWN, confidence=0.0, scores=scores
            )

        # EU wins ties: the ASIN marker is the most reliable single signal
        if eu >= standard:
            invoice_format = self.detect_eu_subtype(text or "")
            winner, loser = eu, standard
        else:
            invoice_format = InvoiceFormat.CONSUMER_STANDARD
            winner, loser = standard, eu

        confidence = self._confidence(winner, loser)
        logger.debug(f"Format scores {scores} -> {invoice_format.value} ({confidence})")
        return FormatClassification(format=invoice_format, confidence=confidence, scores=scores)

    def detect_eu_subtype(self, text: str) -> InvoiceFormat:
        """Split an EU VAT table invoice into business or consumer reporting.

        Args:
            text: Preprocessed invoice text

        Returns:
            BUSINESS_EX_VAT when business indicators outnumber consumer ones,
            else CONSUMER_EU_VAT_INCLUSIVE
        """
        business = sum(1 for pattern in BUSINESS_INDICATORS if pattern.search(text))
        consumer = sum(1 for pattern in CONSUMER_INDICATORS if pattern.search(text))
        if _GERMAN_BUSINESS_TERMS.search(text):
            business += _GERMAN_TERM_BONUS
        if _GERMAN_CONSUMER_TERMS.search(text):
            consumer += _GERMAN_TERM_BONUS

        logger.debug(f"EU subtype indicators: business={business}, consumer={consumer}")
        if business > consumer:
            return InvoiceFormat.BUSINESS_EX_VAT
        return InvoiceFormat.CONSUMER_EU_VAT_INCLUSIVE

    def _confidence(self, winner: int, loser: int) -> float:
        both_present = loser >= self.settings.format_min_score
        if winner >= 100:
            return 1.0
        if winner >= 80:
            return 0.6 if both_present else 0.8
        if winner >= 60:
            return 0.55 if both_present else 0.6
        if winner >= 40:
            return 0.4
        return 0.25
