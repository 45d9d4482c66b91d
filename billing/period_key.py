"""Composite identifier of one generated bill period."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


def base_id_sort_key(base_id: str) -> Tuple[int, int, str]:
    """Numeric base ids first in numeric order, anything else after, lexically."""
    text = str(base_id).strip()
    if text.isdigit():
        return (0, int(text), "")
    return (1, 0, text)


@dataclass(frozen=True)
class PeriodKey:
    """
    One base cycle instantiated for a calendar month.

    Serialised form is "{month_index}-{year}-{base_id}" with a zero-based
    month index, e.g. "0-2026-2" for the second cycle of January 2026.
    """
    year: int
    month_index: int
    base_id: str

    def to_id(self) -> str:
        return f"{self.month_index}-{self.year}-{self.base_id}"

    @property
    def sort_key(self) -> Tuple[int, int, Tuple[int, int, str]]:
        return (self.year, self.month_index, base_id_sort_key(self.base_id))

    @property
    def month_number(self) -> int:
        return self.month_index + 1

    def __lt__(self, other: "PeriodKey") -> bool:
        if not isinstance(other, PeriodKey):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __le__(self, other: "PeriodKey") -> bool:
        if not isinstance(other, PeriodKey):
            return NotImplemented
        return self.sort_key <= other.sort_key

    def __gt__(self, other: "PeriodKey") -> bool:
        if not isinstance(other, PeriodKey):
            return NotImplemented
        return self.sort_key > other.sort_key

    def __ge__(self, other: "PeriodKey") -> bool:
        if not isinstance(other, PeriodKey):
            return NotImplemented
        return self.sort_key >= other.sort_key

    def __str__(self) -> str:
        return self.to_id()

    @classmethod
    def parse(cls, text) -> Optional["PeriodKey"]:
        """Parse a serialised id; None when it cannot be decomposed."""
        if text is None:
            return None
        parts = str(text).strip().split("-")
        if len(parts) != 3:
            return None
        month_str, year_str, base_id = parts
        try:
            month_index = int(month_str)
            year = int(year_str)
        except ValueError:
            return None
        if not 0 <= month_index <= 11 or not base_id:
            return None
        return cls(year=year, month_index=month_index, base_id=base_id)


def month_count(year: int, month_index: int) -> int:
    """Continuous month number, so month arithmetic can overflow a year."""
    return year * 12 + month_index


def from_month_count(count: int) -> Tuple[int, int]:
    """Inverse of month_count: (year, month_index)."""
    return divmod(count, 12)
