"""
Display conventions for report and entry-screen values.

Internally a value that does not apply is None. Three legacy conventions
are applied here, and only here:

- ""  : a derived field that does not apply (entry form and store records)
- "-" : a display-only lookup that found nothing (period names, villages)
- 0   : an accumulator in sums and averages
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from .periods import MONTH_ABBR, parse_date_parts
from .valuation import parse_number


def blank_if_none(value: Optional[float], places: Optional[int] = None) -> str:
    """Derived-field convention: "" when not applicable."""
    if value is None:
        return ""
    if places is None:
        return str(value)
    return f"{value:.{places}f}"


def dash_if_none(value) -> str:
    """Display-lookup convention: "-" when nothing was found."""
    if value is None or value == "":
        return "-"
    return str(value)


def zero_if_none(value) -> float:
    """Accumulator convention: 0.0 when not applicable."""
    number = parse_number(value)
    return 0.0 if number is None else number


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(amount) -> str:
    """Two decimals with Indian digit grouping: 1234567.5 -> "12,34,567.50"."""
    if amount is None or amount == "":
        return ""
    number = parse_number(amount)
    if number is None:
        return ""
    text = f"{abs(number):.2f}"
    whole, fraction = text.split(".")
    sign = "-" if number < 0 and text != "0.00" else ""
    return f"{sign}{_group_indian(whole)}.{fraction}"


def format_date(value) -> str:
    """"2026-01-05" -> "05-Jan-26"; unparseable input is returned unchanged."""
    if value is None or value == "":
        return ""
    parts = parse_date_parts(value)
    if parts is None:
        return str(value)
    year, month_index, day = parts
    return f"{day:02d}-{MONTH_ABBR[month_index]}-{str(year)[-2:]}"


def format_period_range(start: date, end: date) -> str:
    """"01-Jan-26 to 10-Jan-26"."""
    return f"{format_date(start)} to {format_date(end)}"
