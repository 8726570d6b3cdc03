"""
Leaderboard value formatters.

Purpose
-------
Pure functions turning a raw score or display value into what a leaderboard
row shows. Metric definitions reference them by name through `FORMATTERS`,
so the catalog can live in YAML.

Design Notes
------------
- Pure functions only (no side effects, no config access)
- Input may arrive as a number or a numeric string (profile hashes store
  strings); anything unparseable is returned unchanged
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Optional

Formatter = Callable[[Any], Any]


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str, bytes)):
        return None
    try:
        return float(value)
    except (ValueError, OverflowError):
        return None


def format_integer(value: Any) -> Any:
    """
    Thousands-separated whole number.

    Example:
        >>> format_integer(12345.0)
        '12,345'
    """
    number = _as_float(value)
    if number is None or not math.isfinite(number):
        return value
    return f"{round(number):,}"


def format_decimal(value: Any) -> Any:
    """
    Two-decimal number with thousands separators.

    Example:
        >>> format_decimal(1234.5)
        '1,234.50'
    """
    number = _as_float(value)
    if number is None:
        return value
    return f"{number:,.2f}"


def format_ratio(value: Any) -> Any:
    """Ratios (WLR, KDR) are shown with two decimals."""
    return format_decimal(value)


def format_percent(value: Any) -> Any:
    """
    Fraction rendered as a percentage.

    Example:
        >>> format_percent(0.4567)
        '45.67%'
    """
    number = _as_float(value)
    if number is None:
        return value
    return f"{number * 100:.2f}%"


def format_duration(value: Any) -> Any:
    """
    Seconds rendered as the largest two units, counted from the first
    non-zero one.

    Example:
        >>> format_duration(3725)
        '1h 2m'
        >>> format_duration(3605)
        '1h 0m'
        >>> format_duration(59)
        '59s'
    """
    number = _as_float(value)
    if number is None or not math.isfinite(number):
        return value

    remaining = int(abs(number))
    parts = []
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60), ("s", 1)):
        amount, remaining = divmod(remaining, size)
        if amount or parts or unit == "s":
            parts.append(f"{amount}{unit}")
        if len(parts) == 2:
            break
    sign = "-" if number < 0 else ""
    return sign + " ".join(parts)


FORMATTERS: Dict[str, Formatter] = {
    "integer": format_integer,
    "decimal": format_decimal,
    "ratio": format_ratio,
    "percent": format_percent,
    "duration": format_duration,
}


def get_formatter(name: Optional[str]) -> Optional[Formatter]:
    """
    Look up a formatter by catalog name. None means "no formatter".

    Raises:
        KeyError: If the name is not registered
    """
    if name is None:
        return None
    try:
        return FORMATTERS[name]
    except KeyError:
        raise KeyError(
            f"Unknown formatter '{name}'. Known: {', '.join(sorted(FORMATTERS))}"
        ) from None
