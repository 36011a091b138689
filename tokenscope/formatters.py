"""Display formatting for prices, supplies and counts."""

from __future__ import annotations

import math
import re
from typing import Optional, Union


_SUFFIXES = ["", "K", "M", "B", "T"]
_SUFFIX_RE = re.compile(r"[KMBTkmbt]")


def _to_float(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def format_number_suffix(
    num: object,
    suffix_precision: int = 1,
    standard_precision: int = 2,
    small_precision: int = 6,
) -> str:
    """Format with K/M/B/T suffixes; anything at or above 1e12 stays in trillions."""

    number = _to_float(num)
    if number is None:
        return "N/A"
    abs_number = abs(number)
    if abs_number < 1e-16:
        return f"{number:,.{standard_precision}f}"
    if abs_number < 1:
        return f"{number:,.{small_precision}f}"
    if abs_number < 1000:
        return f"{number:,.{standard_precision}f}"
    if abs_number >= 1e12:
        return f"{number / 1e12:,.{suffix_precision}f}T"
    magnitude = min(4, int(math.floor(math.log10(abs_number) / 3)))
    scaled = number / (1000**magnitude)
    return f"{scaled:,.{suffix_precision}f}{_SUFFIXES[magnitude]}"


def format_currency(num: object, precision: int = 2) -> str:
    """Format a USD price.

    Very small prices keep three significant digits and compress the leading zeros,
    e.g. 0.00000123 -> ``$0.0{5}123``.
    """

    number = _to_float(num)
    if number is None:
        return "N/A"
    abs_number = abs(number)
    sign = "-" if number < 0 else ""
    if number == 0:
        return "$0.00"
    if abs_number < 0.001:
        decimals = f"{abs_number:.30f}".split(".")[1]
        stripped = decimals.lstrip("0")
        if not stripped:
            return "$0.00"
        zero_count = len(decimals) - len(stripped)
        return f"{sign}$0.0{{{zero_count}}}{stripped[:3]}"
    if abs_number >= 1000:
        formatted = format_number_suffix(number, 1)
        return formatted if formatted == "N/A" else f"${formatted}"
    return f"${number:,.{precision}f}"


def format_currency_suffix(value: object, precision: int = 1) -> str:
    if value is None:
        return "$0"
    number = _to_float(value)
    if number is None:
        return "N/A"
    abs_value = abs(number)
    sign = "-" if number < 0 else ""
    if abs_value < 1_000:
        return f"{sign}${abs_value:.2f}"
    if abs_value < 1_000_000:
        return f"{sign}${abs_value / 1_000:.{precision}f}K"
    if abs_value < 1_000_000_000:
        return f"{sign}${abs_value / 1_000_000:.{precision}f}M"
    if abs_value < 1_000_000_000_000:
        return f"{sign}${abs_value / 1_000_000_000:.{precision}f}B"
    return f"{sign}${abs_value / 1_000_000_000_000:.{precision}f}T"


def safe_currency_suffix(value: object, precision: int = 1) -> str:
    if _to_float(value) is None:
        return "$0"
    return format_currency_suffix(value, precision)


def safe_number_suffix(value: object, precision: int = 1) -> str:
    if _to_float(value) is None:
        return "0"
    return format_number_suffix(value, precision)


def format_percentage(value: object, decimals: int = 2) -> str:
    number = _to_float(value)
    if number is None:
        return "N/A"
    return f"{number:.{decimals}f}%"


def process_count_value(value: object) -> Union[str, int]:
    """Counts below 1000 stay integers; larger ones get a suffix. Pre-suffixed strings pass through."""

    if value is None or value == "":
        return "0"
    if isinstance(value, str) and _SUFFIX_RE.search(value):
        return value
    number = _to_float(value)
    if number is None:
        return "0"
    if number < 1000:
        return int(math.floor(number))
    return safe_number_suffix(number, 1)


def format_usd(value: object) -> str:
    number = _to_float(value)
    if number is None:
        return "N/A"
    if number < 0:
        return f"-${abs(number):,.2f}"
    return f"${number:,.2f}"
