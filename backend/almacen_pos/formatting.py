# Overview: Pure display helpers for money, quantities and stock status.

from __future__ import annotations

import math

STOCK_OK = "bg-green-100 text-green-800"
STOCK_LOW = "bg-red-100 text-red-800"
STOCK_HIGH = "bg-amber-100 text-amber-800"

_DOLLAR_CURRENCIES = {"USD", "MXN", "ARS", "CLP", "COP"}


def format_number(value: float) -> str:
    """Shortest rendering: integral values lose the decimal point (1.0 -> "1")."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.10g}"


def format_currency(amount: float, currency: str = "USD") -> str:
    """
    Format ``amount`` with two decimals and thousands separators.

    >>> format_currency(1234.5)
    '$1,234.50'
    >>> format_currency(-3, "EUR")
    '-EUR 3.00'
    """
    amount = float(amount or 0)
    sign = "-" if amount < 0 else ""
    body = f"{abs(amount):,.2f}"
    code = (currency or "USD").upper()
    if code in _DOLLAR_CURRENCIES:
        return f"{sign}${body}"
    return f"{sign}{code} {body}"


def format_quantity_with_unit(quantity: float, unit: str | None) -> str:
    """
    Format a quantity for its unit of measure, switching between g/kg and ml/L.

    Quantities are rounded to two decimals first.
    """
    qty = round(float(quantity or 0) * 100) / 100
    key = (unit or "").lower()

    if key == "kg":
        return f"{format_number(qty)}kg" if qty >= 1 else f"{format_number(round(qty * 1000, 2))}g"
    if key == "g":
        return f"{format_number(qty / 1000)}kg" if qty >= 1000 else f"{format_number(qty)}g"
    if key == "l":
        return f"{format_number(qty)}L" if qty >= 1 else f"{format_number(round(qty * 1000, 2))}ml"
    if key == "ml":
        return f"{format_number(qty / 1000)}L" if qty >= 1000 else f"{format_number(qty)}ml"
    return f"{format_number(qty)} {unit or 'u'}"


def stock_status_color(product: dict) -> str:
    minimum = product.get("stock_minimo")
    maximum = product.get("stock_maximo")
    total = product.get("stock_total") or 0
    if not minimum:
        return STOCK_OK
    if total <= minimum:
        return STOCK_LOW
    if maximum and total >= maximum:
        return STOCK_HIGH
    return STOCK_OK


def display_stock(product: dict, store_id: str | None = None) -> str:
    """Stock of one store when it is tracked there, otherwise the total."""
    by_store = product.get("stock_by_store") or {}
    if store_id and store_id in by_store:
        return format_quantity_with_unit(by_store[store_id], product.get("unidad"))
    return format_quantity_with_unit(product.get("stock_total") or 0, product.get("unidad"))


def percent_change(current: float, previous: float) -> int:
    """Rounded percentage change; a zero previous value counts as 1."""
    divisor = previous or 1
    return math.floor((current - divisor) / divisor * 100 + 0.5)
