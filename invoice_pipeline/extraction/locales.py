"""Locale profiles: label tables, money notation and month names per market.

Profiles are immutable module-level data compiled once at import and shared
read-only by every parser instance and worker thread.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from invoice_pipeline.classification.schema import Language
from invoice_pipeline.extraction.amounts import (
    COMMA_DECIMAL,
    DOT_DECIMAL,
    YEN,
    AmountStyle,
)
from invoice_pipeline.extraction.dates import (
    ENGLISH_MONTHS,
    FRENCH_MONTHS,
    GERMAN_MONTHS,
    ITALIAN_MONTHS,
    SPANISH_MONTHS,
)

# Labels must not continue a Latin word ("Subtotal" is not "Total")
_LABEL_PREFIX = r"(?<![A-Za-zÀ-ÿ\d-])"


def labels(*patterns: str) -> tuple[re.Pattern[str], ...]:
    """Compile label regex fragments, keeping priority order."""
    return tuple(re.compile(_LABEL_PREFIX + pattern, re.IGNORECASE) for pattern in patterns)


@dataclass(frozen=True)
class LocaleProfile:
    """Everything a parser needs to know about one market's invoice wording."""

    language: Language
    currency: str
    amount_style: AmountStyle
    months: Mapping[str, int]
    day_first: bool
    order_number_labels: tuple[re.Pattern[str], ...]
    order_date_labels: tuple[re.Pattern[str], ...]
    subtotal_labels: tuple[re.Pattern[str], ...]
    shipping_labels: tuple[re.Pattern[str], ...]
    tax_labels: tuple[re.Pattern[str], ...]
    total_labels: tuple[re.Pattern[str], ...]
    discount_labels: tuple[re.Pattern[str], ...]
    # Regex for the currency symbol printed next to standard item prices
    price_symbol: str = r"€"


GERMAN = LocaleProfile(
    language=Language.DE,
    currency="EUR",
    amount_style=COMMA_DECIMAL,
    months=GERMAN_MONTHS,
    day_first=True,
    order_number_labels=labels(r"Bestellnummer", r"Bestell-Nr\.?", r"Auftragsnummer"),
    order_date_labels=labels(r"Bestelldatum", r"Bestellt am", r"Rechnungsdatum", r"Lieferdatum"),
    subtotal_labels=labels(r"Zwischensumme", r"Summe Artikel", r"Nettobetrag"),
    shipping_labels=labels(r"Versandkosten", r"Versand(?:\s*&\s*Verpackung)?", r"Lieferung"),
    tax_labels=labels(r"USt\.?\s*Gesamt", r"MwSt\.?", r"USt\.?", r"Umsatzsteuer"),
    total_labels=labels(
        r"Gesamtbetrag", r"Zahlbetrag", r"Rechnungsbetrag", r"Gesamtpreis", r"Endbetrag", r"Summe"
    ),
    discount_labels=labels(r"Rabatt", r"Gutschein", r"Aktionsrabatt", r"Nachlass"),
)

FRENCH = LocaleProfile(
    language=Language.FR,
    currency="EUR",
    amount_style=COMMA_DECIMAL,
    months=FRENCH_MONTHS,
    day_first=True,
    order_number_labels=labels(r"Num[ée]ro de commande", r"N°\s*de commande", r"Commande n°"),
    order_date_labels=labels(
        r"Date de (?:la )?commande",
        r"Commande pass[ée]e le",
        r"Commande du",
        r"Date de facturation",
    ),
    subtotal_labels=labels(r"Sous-total(?:\s*HT)?", r"Total HT", r"Montant HT"),
    shipping_labels=labels(r"Frais de (?:port|livraison)", r"Livraison", r"Exp[ée]dition"),
    tax_labels=labels(r"TVA", r"Montant de la TVA"),
    total_labels=labels(r"Total TTC", r"Montant total", r"Total [àa] payer", r"Total(?!\s*HT)"),
    discount_labels=labels(r"Remise", r"R[ée]duction", r"Bon de r[ée]duction"),
)

SPANISH = LocaleProfile(
    language=Language.ES,
    currency="EUR",
    amount_style=COMMA_DECIMAL,
    months=SPANISH_MONTHS,
    day_first=True,
    order_number_labels=labels(r"N[úu]mero de pedido", r"N\.?º de pedido", r"Pedido n[.º°]"),
    order_date_labels=labels(r"Fecha del pedido", r"Fecha de pedido", r"Fecha de (?:la )?factura"),
    subtotal_labels=labels(r"Subtotal", r"Base imponible"),
    shipping_labels=labels(r"Gastos de env[íi]o", r"Env[íi]o"),
    tax_labels=labels(r"IVA"),
    total_labels=labels(r"Importe total", r"Total a pagar", r"Total"),
    discount_labels=labels(r"Descuento", r"Promoci[óo]n", r"Cup[óo]n"),
)

ITALIAN = LocaleProfile(
    language=Language.IT,
    currency="EUR",
    amount_style=COMMA_DECIMAL,
    months=ITALIAN_MONTHS,
    day_first=True,
    order_number_labels=labels(r"Numero d['’]ordine", r"Numero ordine", r"N\.? ordine"),
    order_date_labels=labels(
        r"Data dell['’]ordine", r"Data ordine", r"Ordine effettuato il", r"Data fattura"
    ),
    subtotal_labels=labels(r"Subtotale", r"Imponibile"),
    shipping_labels=labels(r"Spedizione", r"Costi di spedizione"),
    tax_labels=labels(r"IVA"),
    total_labels=labels(r"Totale (?:ordine|fattura|da pagare)", r"Importo totale", r"Totale"),
    discount_labels=labels(r"Sconto", r"Promozione", r"Buono"),
)

_ENGLISH_ORDER_NUMBER = labels(r"Order Number", r"Order #", r"Order No\.?", r"Order ID")
_ENGLISH_ORDER_DATE = labels(
    r"Order Placed", r"Order Date", r"Date of Order", r"Invoice Date", r"Date"
)
_ENGLISH_SUBTOTAL = labels(r"Item\(s\) Subtotal", r"Items? Subtotal", r"Subtotal")
_ENGLISH_SHIPPING = labels(
    r"Shipping (?:&|and) Handling", r"Postage (?:&|and) Packing", r"Shipping"
)
_ENGLISH_TOTAL = labels(r"Grand Total", r"Order Total", r"Invoice Total", r"Total (?:Due|Paid)")
_ENGLISH_DISCOUNT = labels(r"Promotion(?:s)? Applied", r"Discount", r"Coupon", r"Savings")

UNITED_STATES = LocaleProfile(
    language=Language.EN,
    currency="USD",
    amount_style=DOT_DECIMAL,
    months=ENGLISH_MONTHS,
    day_first=False,
    order_number_labels=_ENGLISH_ORDER_NUMBER,
    order_date_labels=_ENGLISH_ORDER_DATE,
    subtotal_labels=_ENGLISH_SUBTOTAL,
    shipping_labels=_ENGLISH_SHIPPING,
    tax_labels=labels(r"Estimated tax(?: to be collected)?", r"Sales Tax", r"Tax"),
    total_labels=_ENGLISH_TOTAL,
    discount_labels=_ENGLISH_DISCOUNT,
    price_symbol=r"US\$|\$",
)

UNITED_KINGDOM = LocaleProfile(
    language=Language.GB,
    currency="GBP",
    amount_style=DOT_DECIMAL,
    months=ENGLISH_MONTHS,
    day_first=True,
    order_number_labels=_ENGLISH_ORDER_NUMBER,
    order_date_labels=_ENGLISH_ORDER_DATE,
    subtotal_labels=_ENGLISH_SUBTOTAL,
    shipping_labels=_ENGLISH_SHIPPING,
    tax_labels=labels(r"VAT Total", r"Total VAT", r"VAT"),
    total_labels=_ENGLISH_TOTAL + labels(r"Total"),
    discount_labels=_ENGLISH_DISCOUNT,
    price_symbol=r"£",
)

AUSTRALIA = LocaleProfile(
    language=Language.AU,
    currency="AUD",
    amount_style=DOT_DECIMAL,
    months=ENGLISH_MONTHS,
    day_first=True,
    order_number_labels=_ENGLISH_ORDER_NUMBER,
    order_date_labels=_ENGLISH_ORDER_DATE,
    subtotal_labels=_ENGLISH_SUBTOTAL,
    shipping_labels=_ENGLISH_SHIPPING + labels(r"Delivery"),
    tax_labels=labels(r"GST(?: included)?", r"Tax"),
    total_labels=_ENGLISH_TOTAL + labels(r"Total"),
    discount_labels=_ENGLISH_DISCOUNT,
    price_symbol=r"AU\$|A\$|\$",
)

CANADA = LocaleProfile(
    language=Language.CA,
    currency="CAD",
    amount_style=DOT_DECIMAL,
    months=MappingProxyType({**ENGLISH_MONTHS, **FRENCH_MONTHS}),
    day_first=True,
    order_number_labels=_ENGLISH_ORDER_NUMBER + labels(r"Num[ée]ro de commande"),
    order_date_labels=_ENGLISH_ORDER_DATE + labels(r"Date de commande", r"Commande pass[ée]e le"),
    subtotal_labels=_ENGLISH_SUBTOTAL + labels(r"Sous-total"),
    shipping_labels=_ENGLISH_SHIPPING + labels(r"Livraison"),
    tax_labels=labels(r"GST/HST", r"TPS/TVH", r"HST", r"GST", r"PST", r"QST", r"TVQ", r"TPS"),
    total_labels=_ENGLISH_TOTAL + labels(r"Montant total", r"Total [àa] payer", r"[ÀA] payer"),
    discount_labels=_ENGLISH_DISCOUNT + labels(r"Remise"),
    price_symbol=r"CDN\$|C\$|\$",
)

SWITZERLAND = LocaleProfile(
    language=Language.CH,
    currency="CHF",
    amount_style=DOT_DECIMAL,
    months=GERMAN_MONTHS,
    day_first=True,
    order_number_labels=GERMAN.order_number_labels,
    order_date_labels=GERMAN.order_date_labels,
    subtotal_labels=GERMAN.subtotal_labels,
    shipping_labels=GERMAN.shipping_labels,
    tax_labels=labels(r"MWST", r"MwSt\.?"),
    total_labels=GERMAN.total_labels,
    discount_labels=GERMAN.discount_labels,
    price_symbol=r"CHF",
)

JAPAN = LocaleProfile(
    language=Language.JP,
    currency="JPY",
    amount_style=YEN,
    months=ENGLISH_MONTHS,
    day_first=False,
    order_number_labels=labels(r"注文番号", r"Order Number", r"Order #"),
    order_date_labels=labels(r"注文日", r"ご注文日", r"Order Date"),
    subtotal_labels=labels(r"商品の小計", r"小計"),
    shipping_labels=labels(r"配送料", r"送料"),
    tax_labels=labels(r"消費税(?:等)?"),
    total_labels=labels(r"ご請求額", r"注文合計", r"お支払い金額", r"合計"),
    discount_labels=labels(r"割引", r"クーポン", r"ポイント"),
    # YEN amounts carry their own symbol
    price_symbol="",
)

# Every market, for locale-agnostic lookups during error recovery
ALL_PROFILES: tuple[LocaleProfile, ...] = (
    GERMAN,
    FRENCH,
    SPANISH,
    ITALIAN,
    UNITED_STATES,
    UNITED_KINGDOM,
    AUSTRALIA,
    CANADA,
    SWITZERLAND,
    JAPAN,
)
