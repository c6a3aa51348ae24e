"""Consistent formatting for quote numbers and text. Never render raw floats."""
from __future__ import annotations

import html
import math
from typing import Any


def to_number(value: Any, default: float | None = 0.0) -> float | None:
    """
    Lenient numeric parse: accepts ints, floats and strings such as "1,250.50"
    or "$99". Anything missing or unparseable (including NaN/inf) yields default.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "").lstrip("$").strip()
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def format_money(value: Any) -> str:
    return f"${to_number(value):.2f}"


def format_quantity(value: Any) -> str:
    number = to_number(value)
    return f"{number:g}"


def escape(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def multiline_html(value: str) -> str:
    """Escape operator text and turn its line breaks into <br>."""
    text = escape(value).replace("\r\n", "\n")
    return text.replace("\n", "<br>")
