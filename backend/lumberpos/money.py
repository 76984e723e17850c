# Overview: Fixed-point helpers for prices (2 places) and stock quantities (3 places).

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
MILLI = Decimal("0.001")

# Maximum price: 9,999,999.99
MAX_PRICE = Decimal("9999999.99")
# Maximum stock or line quantity: 9,999,999.999 (Numeric(10, 3))
MAX_QUANTITY = Decimal("9999999.999")


def to_money(value) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(value) -> Decimal:
    return Decimal(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return to_money(quantity * unit_price)


def as_json_number(value: Decimal | None) -> float | None:
    """Decimals are exposed to API clients as plain JSON numbers."""
    if value is None:
        return None
    return float(value)
