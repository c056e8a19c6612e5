"""
Money arithmetic and display formatting.

All amounts are decimal.Decimal. Floats are converted through str() so that
12.5 becomes Decimal("12.5") rather than its binary approximation.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

_CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}

_ZERO_DECIMAL_CURRENCIES = {"JPY"}

# language -> (group separator, decimal separator, symbol after amount)
_LOCALE_FORMATS = {
    "en": (",", ".", False),
    "de": (".", ",", True),
    "es": (".", ",", True),
    "it": (".", ",", True),
    "nl": (".", ",", True),
    "pt": (".", ",", True),
    "fr": (" ", ",", True),
}


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInputError(field, "must be a number")
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInputError(field, "must be a number")
    if not result.is_finite():
        raise InvalidInputError(field, "must be a finite number")
    return result


def line_total(quantity: int, unit_price: Decimal | int | float | str) -> Decimal:
    """
    Total for one invoice line.

    Args:
        quantity: Positive whole number of units
        unit_price: Non-negative price per unit

    Returns:
        quantity * unit_price

    Raises:
        InvalidInputError: If quantity <= 0 or unit_price < 0
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError("quantity", "must be a whole number")
    if quantity <= 0:
        raise InvalidInputError("quantity", "must be at least 1")

    price = _to_decimal(unit_price, "unit_price")
    if price < 0:
        raise InvalidInputError("unit_price", "must be non-negative")

    return quantity * price


def _quantity_and_price(item: Any) -> tuple[Any, Any]:
    if isinstance(item, Mapping):
        return item["quantity"], item["unit_price"]
    return item.quantity, item.unit_price


def invoice_total(items: Iterable[Any]) -> Decimal:
    """
    Sum of line totals over all items.

    Items may be objects with quantity/unit_price attributes or mappings
    with those keys. An empty sequence totals to zero.
    """
    total = ZERO
    for item in items:
        quantity, unit_price = _quantity_and_price(item)
        total += line_total(quantity, unit_price)
    return total


def format_currency(amount: Any, currency: str = "USD", locale: str = "en-US") -> str:
    """
    Render an amount for display, e.g. $1,234.56 or -$5.00.

    Never raises. Unknown locales fall back to en-US separators and unknown
    currency codes are rendered as a prefix ("CHF 10.00").
    """
    try:
        value = Decimal(str(amount))
        if not value.is_finite():
            raise InvalidOperation
    except (InvalidOperation, ValueError, TypeError):
        logger.warning(f"Cannot format non-numeric amount {amount!r}")
        return str(amount)

    code = (currency or "USD").upper()
    language = (locale or "en").replace("_", "-").split("-")[0].lower()
    group_sep, decimal_sep, symbol_after = _LOCALE_FORMATS.get(language, _LOCALE_FORMATS["en"])

    places = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
    exponent = Decimal(1).scaleb(-places)
    rounded = value.quantize(exponent, rounding=ROUND_HALF_UP)

    digits = f"{abs(rounded):,.{places}f}"
    digits = digits.replace(",", "\0").replace(".", decimal_sep).replace("\0", group_sep)

    sign = "-" if rounded < 0 else ""
    symbol = _CURRENCY_SYMBOLS.get(code)

    if symbol is None:
        return f"{sign}{code} {digits}"
    if symbol_after:
        return f"{sign}{digits} {symbol}"
    return f"{sign}{symbol}{digits}"
