"""Locale-aware number, currency amount and quantity parsing for scraped text.

Price lists mix European (``1.234,56``) and English (``1,234.56``) notation,
often inside the same site. Everything here is pure and returns ``None``
instead of raising when a text holds nothing usable.
"""
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple, Optional, Sequence

DEFAULT_CURRENCY_MARKERS: tuple[str, ...] = ("€", "eur")

_WHITESPACE = re.compile(r"\s+")
_NON_NUMERIC = re.compile(r"[^0-9,.\-]")
_NUMBER_TOKEN = r"([0-9][0-9\s.,]*)"

_QUANTITY_PATTERNS = (
    re.compile(r"(?:qty|quantity|antal)\s*[:=-]?\s*(\d[\d\s.,]*)", re.IGNORECASE),
    re.compile(r"(\d[\d\s.,]*)\s*(?:stk|st\.|pcs|pieces|units|x)\b", re.IGNORECASE),
)

_OPTION_QUANTITY = re.compile(r"([\d.]+)\s*St(?:ü|u)ck", re.IGNORECASE)
_OPTION_PARENTHESES = re.compile(r"\(([^)]+)\)")
_OPTION_AMOUNT = re.compile(r"([-+]?\d[\d.,]*)\s*(?:€|eur|euro)?", re.IGNORECASE)


class QuantityPrice(NamedTuple):
    """Quantity and unit price parsed from a dropdown option text."""

    quantity: int
    unit_price: Decimal


def normalize_label(text: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    return _WHITESPACE.sub(" ", text or "").strip()


def parse_localized_number(text: Optional[str]) -> Optional[Decimal]:
    """Parse a number written with either ``,`` or ``.`` as decimal separator.

    When both separators occur, the one appearing last is the decimal
    separator. When only one kind occurs it is read as a thousands separator
    if it splits the number into more than two groups or the trailing group
    has exactly three digits, and as the decimal separator otherwise.

    Args:
        text: Raw text such as ``"1.234,56"`` or ``"2 345,00"``

    Returns:
        Parsed value, or None when nothing parseable remains
    """
    if not text:
        return None

    cleaned = _NON_NUMERIC.sub("", _WHITESPACE.sub("", text))
    if not cleaned:
        return None

    has_comma = "," in cleaned
    has_dot = "." in cleaned

    if has_comma and has_dot:
        decimal_sep = "," if cleaned.rfind(",") > cleaned.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        cleaned = cleaned.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif has_comma or has_dot:
        sep = "," if has_comma else "."
        groups = cleaned.split(sep)
        if len(groups) > 2 or len(groups[-1]) == 3:
            cleaned = "".join(groups)
        else:
            cleaned = cleaned.replace(sep, ".")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def _currency_patterns(markers: Sequence[str]) -> list[re.Pattern[str]]:
    alternatives = []
    for marker in markers:
        escaped = re.escape(marker)
        # Word markers like "eur" must not match inside "euro" or "europe"
        alternatives.append(escaped + r"\b" if marker[-1:].isalnum() else escaped)
    marker_group = "(?:" + "|".join(alternatives) + ")"
    leading = re.compile(
        "(?:" + "|".join(re.escape(m) for m in markers) + r")\s*" + _NUMBER_TOKEN,
        re.IGNORECASE,
    )
    trailing = re.compile(_NUMBER_TOKEN + r"\s*" + marker_group, re.IGNORECASE)
    return [leading, trailing]


def extract_currency_amount(
    text: Optional[str],
    markers: Sequence[str] = DEFAULT_CURRENCY_MARKERS,
) -> Optional[Decimal]:
    """Find a currency amount in free text.

    Tries "marker before number", then "number before marker", then falls
    back to the first number-looking token.

    Args:
        text: Text such as ``"Pris: €12.50"`` or ``"12,50 EUR pr. stk"``
        markers: Currency markers, matched case-insensitively

    Returns:
        The amount, or None when no number is found
    """
    if not text or not text.strip():
        return None

    for pattern in _currency_patterns(markers):
        match = pattern.search(text)
        if not match:
            continue
        value = parse_localized_number(match.group(1))
        if value is not None:
            return value

    fallback = re.search(_NUMBER_TOKEN, text)
    if fallback:
        return parse_localized_number(fallback.group(1))
    return None


def extract_quantity(text: Optional[str]) -> Optional[int]:
    """Find an explicit quantity such as ``"antal: 500"`` or ``"1.000 stk"``.

    Returns:
        Positive quantity rounded half-up, or None
    """
    if not text or not text.strip():
        return None

    for pattern in _QUANTITY_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        value = parse_localized_number(match.group(1))
        if value is None:
            continue
        quantity = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if quantity > 0:
            return quantity
    return None


def parse_quantity_price_text(text: Optional[str]) -> Optional[QuantityPrice]:
    """Parse a dropdown option like ``"1.000 Stück (123,45 €)"``.

    The quantity keeps digits only, so dots are always thousands separators
    there; the amount inside the parentheses is parsed locale-aware.

    Returns:
        QuantityPrice, or None when either part is missing or non-positive
    """
    raw = normalize_label(text)
    if not raw:
        return None

    quantity_match = _OPTION_QUANTITY.search(raw)
    if not quantity_match:
        return None
    digits = re.sub(r"\D", "", quantity_match.group(1))
    if not digits or int(digits) <= 0:
        return None

    parentheses = _OPTION_PARENTHESES.search(raw)
    if not parentheses:
        return None
    amount_match = _OPTION_AMOUNT.search(parentheses.group(1))
    if not amount_match:
        return None

    amount = parse_localized_number(amount_match.group(1))
    if amount is None or amount <= 0:
        return None
    return QuantityPrice(quantity=int(digits), unit_price=amount)
