"""Invoice language and region detection.

Each supported language variant has a signal table. Presence of a signal
scores fixed points:

- core invoice terminology: 15
- supporting phrases: 8
- currency notation: 15
- localized date format: 10

The highest total wins and is normalized to a confidence of total / 100
(capped at 1.0). Below the configured threshold the detector falls back to
English instead of failing, so a parser is always selected.

Legal boilerplate (company seats, registry courts, branch addresses) is
deliberately absent from the tables: Amazon EU prints a Luxembourg footer in
French and German on every European invoice.
"""

import logging
import re
from dataclasses import dataclass

from invoice_pipeline.classification.schema import Language, LanguageDetectionResult
from invoice_pipeline.extraction.dates import (
    ENGLISH_MONTHS,
    FRENCH_MONTHS,
    ITALIAN_MONTHS,
    SPANISH_MONTHS,
    month_alternation,
)
from invoice_pipeline.shared import metrics
from invoice_pipeline.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

CORE_POINTS = 15
SUPPORTING_POINTS = 8
CURRENCY_POINTS = 15
DATE_POINTS = 10


def _terms(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(rf"\b{pattern}\b", re.IGNORECASE) for pattern in patterns)


def _cjk_terms(*patterns: str) -> tuple[re.Pattern[str], ...]:
    # Word boundaries never match between CJK characters
    return tuple(re.compile(pattern) for pattern in patterns)


def _patterns(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


@dataclass(frozen=True)
class LanguageSignals:
    """Signal table for one language variant."""

    language: Language
    core: tuple[re.Pattern[str], ...]
    supporting: tuple[re.Pattern[str], ...] = ()
    currency: tuple[re.Pattern[str], ...] = ()
    dates: tuple[re.Pattern[str], ...] = ()

    def score(self, text: str) -> int:
        """Sum the points of every signal present in text."""
        total = 0
        total += CORE_POINTS * sum(1 for pattern in self.core if pattern.search(text))
        total += SUPPORTING_POINTS * sum(1 for pattern in self.supporting if pattern.search(text))
        total += CURRENCY_POINTS * sum(1 for pattern in self.currency if pattern.search(text))
        total += DATE_POINTS * sum(1 for pattern in self.dates if pattern.search(text))
        return total


_ENGLISH_CORE = (
    r"Order\s+Placed",
    r"Order\s+Number",
    r"Order\s+Confirmation",
    r"Items\s+Ordered",
    r"Shipping",
    r"Subtotal",
    r"Grand\s+Total",
    r"Payment\s+Method",
    r"Billing\s+Address",
)
_ENGLISH_SUPPORTING = (r"Thank\s+you", r"for\s+your\s+order")
_GERMAN_CORE = (
    r"Bestellnummer",
    r"Bestelldatum",
    r"Artikel",
    r"Zwischensumme",
    r"Versand",
    r"Gesamtbetrag",
    r"Rechnungsadresse",
    r"Lieferadresse",
    r"Zahlungsart",
)
_GERMAN_SUPPORTING = (r"Ihr\s+Auftrag", r"Viele\s+Grü(?:ß|ss)e", r"Rechnung")

_ENGLISH_DAY_FIRST = rf"\b\d{{1,2}}\s+(?:{month_alternation(ENGLISH_MONTHS)})\.?\s+\d{{4}}\b"
_ENGLISH_MONTH_FIRST = rf"\b(?:{month_alternation(ENGLISH_MONTHS)})\.?\s+\d{{1,2}},?\s+\d{{4}}\b"
_COMMA_EURO = r"\d{1,3}(?:\.\d{3})*,\d{2}\s*€"
_DOTTED_DATE = r"\b\d{1,2}\.\d{1,2}\.\d{4}\b"

# Generic entries precede their regional variants; ties go to the earlier entry
SIGNAL_TABLE: tuple[LanguageSignals, ...] = (
    LanguageSignals(
        language=Language.EN,
        core=_terms(*_ENGLISH_CORE, r"Tax", r"amazon\.com(?!\.)"),
        supporting=_terms(*_ENGLISH_SUPPORTING, r"Sold\s+by"),
        currency=_patterns(r"(?<![A-Za-z])(?:US)?\$\s*\d[\d,]*\.\d{2}"),
        dates=_patterns(_ENGLISH_MONTH_FIRST),
    ),
    LanguageSignals(
        language=Language.GB,
        core=_terms(*_ENGLISH_CORE, r"VAT", r"amazon\.co\.uk"),
        supporting=_terms(*_ENGLISH_SUPPORTING, r"Delivery", r"Postage", r"United\s+Kingdom"),
        currency=_patterns(r"£\s*\d[\d,]*\.\d{2}"),
        dates=_patterns(_ENGLISH_DAY_FIRST),
    ),
    LanguageSignals(
        language=Language.AU,
        core=_terms(*_ENGLISH_CORE, r"GST", r"amazon\.com\.au"),
        supporting=_terms(*_ENGLISH_SUPPORTING, r"Delivery", r"Australia"),
        currency=_patterns(r"(?:A|AU)\$\s*\d[\d,]*\.\d{2}|\bAUD\b"),
        dates=_patterns(_ENGLISH_DAY_FIRST),
    ),
    LanguageSignals(
        language=Language.CA,
        core=_terms(
            r"Num[ée]ro\s+de\s+commande",
            r"Commande\s+pass[ée]e",
            r"Sous-total",
            r"TPS",
            r"TVH",
            r"GST/HST",
            r"[ÀA]\s+payer",
            r"amazon\.ca",
        ),
        supporting=_terms(
            r"Votre\s+commande", r"Adresse\s+de\s+livraison", r"Canada", r"Qu[ée]bec"
        ),
        currency=_patterns(r"CDN\$|C\$|\bCAD\b|\d+,\d{2}\s*\$"),
        dates=_patterns(
            r"\b\d{4}-\d{2}-\d{2}\b",
            rf"\b\d{{1,2}}(?:er)?\s+(?:{month_alternation(FRENCH_MONTHS)})\.?\s+\d{{4}}\b",
        ),
    ),
    LanguageSignals(
        language=Language.DE,
        core=_terms(*_GERMAN_CORE, r"MwSt", r"USt", r"amazon\.de"),
        supporting=_terms(*_GERMAN_SUPPORTING),
        currency=_patterns(_COMMA_EURO),
        dates=_patterns(_DOTTED_DATE),
    ),
    LanguageSignals(
        language=Language.CH,
        core=_terms(*_GERMAN_CORE, r"MWST", r"Schweiz", r"amazon\.ch"),
        supporting=_terms(*_GERMAN_SUPPORTING, r"Suisse", r"Svizzera"),
        currency=_patterns(r"\bCHF\s*\d[\d']*[.,]\d{2}|\d[\d']*\.\d{2}\s*CHF\b"),
        dates=_patterns(_DOTTED_DATE),
    ),
    LanguageSignals(
        language=Language.FR,
        core=_terms(
            r"Num[ée]ro\s+de\s+commande",
            r"Date\s+de\s+(?:la\s+)?commande",
            r"Articles",
            r"Sous-total",
            r"Livraison",
            r"TVA",
            r"Total\s+TTC",
            r"Mode\s+de\s+paiement",
            r"Adresse\s+de\s+facturation",
            r"amazon\.fr",
        ),
        supporting=_terms(
            r"Votre\s+commande", r"Merci\s+pour", r"Votre\s+achat", r"Facture"
        ),
        currency=_patterns(_COMMA_EURO),
        dates=_patterns(
            rf"\b\d{{1,2}}(?:er)?\s+(?:{month_alternation(FRENCH_MONTHS)})\.?\s+\d{{4}}\b"
        ),
    ),
    LanguageSignals(
        language=Language.ES,
        core=_terms(
            r"N[úu]mero\s+de\s+pedido",
            r"Fecha\s+del\s+pedido",
            r"Pedido\s+realizado",
            r"Importe\s+total",
            r"Env[íi]o",
            r"Productos",
            r"Descripci[óo]n",
            r"IVA\s+\d",
            r"amazon\.es",
        ),
        supporting=_terms(
            r"Su\s+pedido", r"Gracias\s+por", r"Su\s+compra", r"Factura", r"Espa[ñn]a"
        ),
        currency=_patterns(_COMMA_EURO),
        dates=_patterns(
            rf"\b\d{{1,2}}\s+de\s+(?:{month_alternation(SPANISH_MONTHS)})\s+de\s+\d{{4}}\b"
        ),
    ),
    LanguageSignals(
        language=Language.IT,
        core=_terms(
            r"Numero\s+d['’]ordine",
            r"Data\s+dell['’]ordine",
            r"Articoli",
            r"Subtotale",
            r"Spedizione",
            r"Totale",
            r"amazon\.it",
        ),
        supporting=_terms(
            r"Il\s+tuo\s+ordine", r"Grazie\s+per", r"Il\s+tuo\s+acquisto", r"Fattura"
        ),
        currency=_patterns(_COMMA_EURO),
        dates=_patterns(
            rf"\b\d{{1,2}}\s+(?:{month_alternation(ITALIAN_MONTHS)})\s+\d{{4}}\b"
        ),
    ),
    LanguageSignals(
        language=Language.JP,
        core=_cjk_terms(
            r"注文番号", r"注文日", r"商品", r"小計", r"配送料", r"消費税", r"合計"
        )
        + _terms(r"amazon\.co\.jp"),
        supporting=_cjk_terms(r"お届け先", r"お支払い方法", r"領収書"),
        currency=_patterns(r"[¥￥]\s*\d|\d\s*円"),
        dates=_patterns(r"\d{4}\s*年\s*\d{1,2}\s*月\s*\d{1,2}\s*日"),
    ),
)


class LanguageDetector:
    """Scores invoice text against the language signal table."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize detector.

        Args:
            settings: Application settings (defaults to environment settings)
        """
        self.settings = settings or get_settings()

    def score(self, text: str | None) -> dict[str, int]:
        """Raw signal points per language code, in table order."""
        if not text:
            return {signals.language.value: 0 for signals in SIGNAL_TABLE}
        return {signals.language.value: signals.score(text) for signals in SIGNAL_TABLE}

    def detect(self, text: str | None) -> LanguageDetectionResult:
        """Detect the language variant of preprocessed invoice text.

        Never raises: when no language reaches the confidence threshold the
        result is English with `fallback=True`.

        Args:
            text: Preprocessed invoice text

        Returns:
            LanguageDetectionResult with per-language scores
        """
        scores = self.score(text)

        # max() keeps the first of equal scores, i.e. the earlier table entry
        best_code = max(scores, key=lambda code: scores[code])
        confidence = min(1.0, scores[best_code] / 100)
        logger.debug(f"Language scores: {scores}")

        if confidence < self.settings.language_confidence_threshold:
            logger.warning(
                f"Language detection confidence {confidence:.2f} below "
                f"{self.settings.language_confidence_threshold}; falling back to English "
                f"(best guess {best_code})"
            )
            if self.settings.metrics_enabled:
                metrics.language_fallbacks_total.inc()
            return LanguageDetectionResult(
                language=Language.EN, confidence=confidence, scores=scores, fallback=True
            )

        return LanguageDetectionResult(
            language=Language(best_code), confidence=confidence, scores=scores
        )
