"""Text formatting for prices, volumes, axis labels and candle times."""

from __future__ import annotations

import time

from .models import Period


def format_number(num: float) -> str:
    return f"{num:.2f}" if abs(num) >= 1.0 else f"{num:.8f}"


def trim_trailing_zeros(text: str) -> str:
    if "." not in text:
        return text
    return text.rstrip("0").rstrip(".")


def display_price(text: str, value: float) -> str:
    """Prefer the exchange's own text; fall back to the numeric value."""
    return trim_trailing_zeros(text if text else format_number(value))


def format_axis_price(value: float, value_range: float) -> str:
    decimals = 2
    if value_range < 0.5:
        decimals = 4
    if value_range < 0.05:
        decimals = 6
    if value_range < 0.005:
        decimals = 8
    if value_range < 0.0005:
        decimals = 10
    return trim_trailing_zeros(f"{value:.{decimals}f}")


def format_with_commas(num: float) -> str:
    return f"{num:,.2f}" if abs(num) >= 1.0 else f"{num:,.8f}"


def format_int_with_commas(value: int) -> str:
    return f"{int(value):,d}"


def format_change_pct(pct: float) -> str:
    return f"{pct:+.2f}%"


def axis_time_format(period: Period, label_width: int) -> str:
    if period.ordinal <= Period.HOUR_1.ordinal:
        return "%H:%M" if label_width >= 8 else "%H"
    if period is Period.HOUR_4:
        return "%m-%d %H:%M" if label_width >= 10 else "%m-%d"
    if period is Period.DAY_1:
        return "%m-%d"
    return "%y-%m"


def format_time(ts: int, fmt: str = "%Y-%m-%d %H:%M") -> str:
    return time.strftime(fmt, time.localtime(ts))
