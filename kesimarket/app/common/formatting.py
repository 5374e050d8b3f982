from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from flask import current_app, has_app_context

Number = Union[int, float, Decimal, str, None]

DEFAULT_CURRENCY = "XAF"


def currency_symbol() -> str:
    if has_app_context():
        return current_app.config.get("CURRENCY_SYMBOL") or DEFAULT_CURRENCY
    return DEFAULT_CURRENCY


def currency_code() -> str:
    if has_app_context():
        return current_app.config.get("CURRENCY_CODE") or DEFAULT_CURRENCY
    return DEFAULT_CURRENCY


def _to_decimal(value: Number) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def _fixed(value: Number, decimals: int) -> str:
    return f"{_to_decimal(value):.{decimals}f}"


def format_amount(price: Number, decimals: int = 2) -> str:
    """1500.00 -> '1500', 12.5 -> '12,50'."""
    return _fixed(price, decimals).replace(".00", "", 1).replace(".", ",", 1)


def format_price(price: Number, show_symbol: bool = True, show_code: bool = False, decimals: int = 2) -> str:
    formatted = format_amount(price, decimals)
    if show_code:
        return f"{formatted} {currency_code()}"
    if not show_symbol:
        return formatted
    return f"{formatted} {currency_symbol()}"


def format_price_range(min_price: Number, max_price: Number, show_symbol: bool = True,
                       show_code: bool = False, decimals: int = 2) -> str:
    low = format_amount(min_price, decimals)
    high = format_amount(max_price, decimals)
    if show_code:
        return f"{low} - {high} {currency_code()}"
    if not show_symbol:
        return f"{low} - {high}"
    symbol = currency_symbol()
    return f"{low}{symbol} - {high}{symbol}"


def format_discount(amount: Number, show_symbol: bool = True, show_code: bool = False, decimals: int = 2) -> str:
    formatted = _fixed(abs(_to_decimal(amount)), decimals)
    if show_code:
        return f"-{formatted} {currency_code()}"
    if not show_symbol:
        return f"-{formatted}"
    return f"-{formatted}{currency_symbol()}"
