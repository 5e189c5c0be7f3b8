"""
money.py
Parse/format Brazilian-style currency strings ("R$ 2.500,00").
"""

from __future__ import annotations

import math
import re

CURRENCY_SYMBOL = "R$"

_NON_AMOUNT = re.compile(r"[^\d,]")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d+)?|\.\d+")


def parse_amount(text) -> float:
    """
    "R$ 2.500,00" -> 2500.0. Thousands dots and the symbol are dropped,
    the first comma is the decimal separator. Anything unparsable is 0.
    """
    if isinstance(text, bool) or text is None:
        return 0.0
    if isinstance(text, (int, float)):
        return float(text) if math.isfinite(text) else 0.0

    cleaned = _NON_AMOUNT.sub("", str(text)).replace(",", ".", 1)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


def format_amount(value: float, symbol: str = CURRENCY_SYMBOL) -> str:
    # 2500 -> "2,500.00" -> "2.500,00"
    text = f"{float(value):,.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{symbol} {text}"


def normalize_amount(text) -> str:
    return format_amount(parse_amount(text))
