# =============================================================================
# DAIRY BILLING ENGINE - BILL PERIOD CALENDAR
# =============================================================================
# Generates the rolling window of bill periods from the base cycle
# definitions, classifies calendar dates into periods and renders names.
#
# RULES:
# - Window starts at a fixed epoch (December 2025) and ends six months
#   after the reference month, inclusive
# - Every month of the window yields one period per base cycle
# - Ids referenced by stored data are always rendered, even outside the window
# - end_day == 31 means "to the last day of the month"
# - Financial year runs April to March
# =============================================================================

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .period_key import PeriodKey, from_month_count, month_count


MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

DEFAULT_EPOCH: Tuple[int, int] = (2025, 11)  # (year, zero-based month index)
DEFAULT_MONTHS_AHEAD = 6
MONTH_END_SENTINEL = 31

FREE_FORM_DATE_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d %b %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%B %d, %Y",
)

_LEADING_INT = re.compile(r"^\s*(\d+)")


def _leading_int(value) -> Optional[int]:
    match = _LEADING_INT.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


@dataclass(frozen=True)
class BaseCyclePeriod:
    """Day-range template for one recurring slot within any month."""
    id: str
    start_day: int
    end_day: int

    @property
    def open_ended(self) -> bool:
        return self.end_day == MONTH_END_SENTINEL

    def covers(self, day: int) -> bool:
        if self.open_ended:
            return day >= self.start_day
        return self.start_day <= day <= self.end_day

    @classmethod
    def from_record(cls, record: dict) -> Optional["BaseCyclePeriod"]:
        """Build from a store record ({"id", "startDay", "endDay"})."""
        if not isinstance(record, dict):
            return None
        raw_id = record.get("id")
        if raw_id is None or str(raw_id).strip() == "":
            return None
        start = _leading_int(record.get("startDay", ""))
        end = _leading_int(record.get("endDay", ""))
        if start is None or end is None:
            return None
        return cls(id=str(raw_id).strip(), start_day=start, end_day=end)


def parse_base_periods(records: Optional[Iterable]) -> List[BaseCyclePeriod]:
    """
    Normalise base cycle definitions.

    Accepts BaseCyclePeriod instances or raw store records; records without
    an id or with non-integer days are skipped. Order is preserved.
    """
    result: List[BaseCyclePeriod] = []
    for item in records or []:
        if isinstance(item, BaseCyclePeriod):
            result.append(item)
            continue
        period = BaseCyclePeriod.from_record(item)
        if period is not None:
            result.append(period)
    return result


def validate_base_periods(base_periods) -> List[str]:
    """
    Check that base cycles partition a month without gaps or overlaps.

    Returns a list of error messages (empty when valid).
    """
    periods = parse_base_periods(base_periods)
    errors: List[str] = []
    if not periods:
        return ["no base periods defined"]

    seen_ids = set()
    for period in periods:
        if period.id in seen_ids:
            errors.append(f"duplicate base period id '{period.id}'")
        seen_ids.add(period.id)
        if not 1 <= period.start_day <= 31 or not 1 <= period.end_day <= 31:
            errors.append(f"base period '{period.id}': days must be within 1-31")
        if period.start_day > period.end_day:
            errors.append(f"base period '{period.id}': start day after end day")

    ordered = sorted(periods, key=lambda p: p.start_day)
    if ordered[0].start_day != 1:
        errors.append(f"days 1-{ordered[0].start_day - 1} not covered")
    for previous, current in zip(ordered, ordered[1:]):
        if current.start_day > previous.end_day + 1:
            errors.append(
                f"gap between base periods '{previous.id}' and '{current.id}'"
            )
        elif current.start_day <= previous.end_day:
            errors.append(
                f"base periods '{previous.id}' and '{current.id}' overlap"
            )
    if ordered[-1].end_day != MONTH_END_SENTINEL:
        errors.append(
            f"last base period '{ordered[-1].id}' must end on 31 (month end)"
        )
    return errors


def ordinal_label(base_id) -> str:
    """1 -> 1st, 2 -> 2nd, 3 -> 3rd, anything else N -> Nth."""
    text = str(base_id)
    if text == "1":
        return "1st"
    if text == "2":
        return "2nd"
    if text == "3":
        return "3rd"
    return f"{text}th"


def financial_year_label(year: int, month_index: int) -> str:
    """April-March financial year, e.g. Jan 2026 -> "2025-26"."""
    if month_index >= 3:
        return f"{year}-{str(year + 1)[-2:]}"
    return f"{year - 1}-{str(year)[-2:]}"


def short_period_name(key: PeriodKey) -> str:
    """Display name such as "Dec-25 1st"."""
    return (
        f"{MONTH_ABBR[key.month_index]}-{str(key.year)[-2:]} "
        f"{ordinal_label(key.base_id)}"
    )


@dataclass(frozen=True)
class GeneratedBillPeriod:
    """A base cycle instantiated for one (month, year)."""
    key: PeriodKey
    name: str
    month_name: str
    ordinal: str
    financial_year: str
    start_day: int
    end_day: int

    @property
    def unique_id(self) -> str:
        return self.key.to_id()

    @property
    def base_id(self) -> str:
        return self.key.base_id

    @property
    def year(self) -> int:
        return self.key.year

    @property
    def month_index(self) -> int:
        return self.key.month_index

    def to_record(self) -> Dict[str, object]:
        """Legacy camelCase record used by store consumers."""
        return {
            "uniqueId": self.unique_id,
            "baseId": self.base_id,
            "financialYear": self.financial_year,
            "name": self.name,
            "monthName": self.month_name,
            "year": self.year,
            "ordinal": self.ordinal,
            "startDay": self.start_day,
            "endDay": self.end_day,
        }


def build_period(key: PeriodKey, base_period: BaseCyclePeriod) -> GeneratedBillPeriod:
    """Instantiate one base cycle for the month named by the key."""
    return GeneratedBillPeriod(
        key=key,
        name=short_period_name(key),
        month_name=MONTH_NAMES[key.month_index],
        ordinal=ordinal_label(base_period.id),
        financial_year=financial_year_label(key.year, key.month_index),
        start_day=base_period.start_day,
        end_day=base_period.end_day,
    )


def _find_base(base_periods: Sequence[BaseCyclePeriod], base_id: str) -> Optional[BaseCyclePeriod]:
    for period in base_periods:
        if period.id == base_id:
            return period
    return None


def generate_periods(
    base_periods,
    extra_ids: Optional[Iterable[str]] = None,
    reference_now: Optional[date] = None,
    epoch: Tuple[int, int] = DEFAULT_EPOCH,
    months_ahead: int = DEFAULT_MONTHS_AHEAD,
) -> List[GeneratedBillPeriod]:
    """
    Generate the bill periods of the rolling window plus any extra ids.

    Args:
        base_periods: Base cycle definitions (instances or store records)
        extra_ids: Serialised period ids that must be present even when they
                   fall outside the window (locked periods, stored references)
        reference_now: Date bounding the window; defaults to today
        epoch: (year, month_index) of the first generated month
        months_ahead: Months after the reference month to include

    Returns:
        Periods in chronological order, base cycles in their given order
        within each month. Extra ids with an unknown base id are skipped.

    Notes:
        - Result is re-sorted only when an extra id was actually added;
          otherwise the window order is returned as generated
        - Extra ids are rendered in canonical form ("01-2020-1" becomes
          "1-2020-1"); use period_for_id to look up a stored id
    """
    bases = parse_base_periods(base_periods)
    if not bases:
        return []

    if reference_now is None:
        reference_now = date.today()

    start = month_count(epoch[0], epoch[1])
    end = month_count(reference_now.year, reference_now.month - 1 + months_ahead)
    total_months = max(end - start + 1, 1)

    periods: List[GeneratedBillPeriod] = []
    seen = set()

    for offset in range(total_months):
        year, month_index = from_month_count(start + offset)
        for base in bases:
            key = PeriodKey(year=year, month_index=month_index, base_id=base.id)
            seen.add(key)
            periods.append(build_period(key, base))

    added = False
    for extra in extra_ids or []:
        key = PeriodKey.parse(extra)
        if key is None or key in seen:
            continue
        base = _find_base(bases, key.base_id)
        if base is None:
            continue
        seen.add(key)
        periods.append(build_period(key, base))
        added = True

    if added:
        periods.sort(key=lambda period: period.key.sort_key)
    return periods


def parse_date_parts(value) -> Optional[Tuple[int, int, int]]:
    """
    Extract (year, month_index, day) without timezone conversion.

    "YYYY-MM-DD" strings (anything after the day is ignored) are split
    field by field. date/datetime objects are read directly. Other strings
    are tried against FREE_FORM_DATE_FORMATS. Returns None when unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return (value.year, value.month - 1, value.day)
    if isinstance(value, date):
        return (value.year, value.month - 1, value.day)

    text = str(value).strip()
    if not text:
        return None

    if "-" in text:
        parts = text.split("-")
        if len(parts) < 3:
            return None
        year = _leading_int(parts[0])
        month = _leading_int(parts[1])
        day = _leading_int(parts[2])
        if year is None or month is None or day is None:
            return None
        if not 1 <= month <= 12 or not 1 <= day <= 31:
            return None
        return (year, month - 1, day)

    for fmt in FREE_FORM_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return (parsed.year, parsed.month - 1, parsed.day)
    return None


def classify_date_key(value, base_periods) -> Optional[PeriodKey]:
    """Period key owning the date, or None when no base cycle matches."""
    parts = parse_date_parts(value)
    if parts is None:
        return None
    year, month_index, day = parts
    for base in parse_base_periods(base_periods):
        if base.covers(day):
            return PeriodKey(year=year, month_index=month_index, base_id=base.id)
    return None


def classify_date(value, base_periods) -> str:
    """Serialised id of the period owning the date, or "" when none matches."""
    key = classify_date_key(value, base_periods)
    if key is None:
        return ""
    return key.to_id()


def period_display_name(unique_id, base_periods) -> str:
    """Name for a serialised id; "-" when it cannot be resolved."""
    key = PeriodKey.parse(unique_id)
    if key is None:
        return "-"
    if _find_base(parse_base_periods(base_periods), key.base_id) is None:
        return "-"
    return short_period_name(key)


def period_name_for_date(value, base_periods) -> str:
    """Name of the period owning a date; "-" when none matches."""
    unique_id = classify_date(value, base_periods)
    if not unique_id:
        return "-"
    return period_display_name(unique_id, base_periods)


def period_date_range(key: PeriodKey, base_period: BaseCyclePeriod) -> Tuple[date, date]:
    """
    First and last calendar day of a generated period.

    end_day 31 resolves to the month's last day; other end days past the
    month's end are clamped to it.
    """
    last_day = calendar.monthrange(key.year, key.month_number)[1]
    start_day = min(max(base_period.start_day, 1), last_day)
    if base_period.open_ended:
        end_day = last_day
    else:
        end_day = min(max(base_period.end_day, start_day), last_day)
    return (
        date(key.year, key.month_number, start_day),
        date(key.year, key.month_number, end_day),
    )


def days_in_period(key: PeriodKey, base_period: BaseCyclePeriod) -> int:
    """Number of calendar days a generated period spans."""
    start, end = period_date_range(key, base_period)
    return (end - start).days + 1


def period_for_id(unique_id, periods: Iterable[GeneratedBillPeriod]) -> Optional[GeneratedBillPeriod]:
    """
    Find a generated period by serialised id.

    Ids are compared as keys, so a stored "01-2020-1" finds the period
    rendered as "1-2020-1".
    """
    target = PeriodKey.parse(unique_id)
    if target is None:
        return None
    for period in periods:
        if period.key == target:
            return period
    return None


def base_for_key(key: PeriodKey, base_periods) -> Optional[BaseCyclePeriod]:
    """Base cycle a key was instantiated from."""
    return _find_base(parse_base_periods(base_periods), key.base_id)


def is_period_locked(value, base_periods, locked_ids: Iterable[str]) -> bool:
    """Whether the date falls into one of the locked period ids."""
    key = classify_date_key(value, base_periods)
    if key is None:
        return False
    return key in {PeriodKey.parse(locked) for locked in locked_ids or []}


def sort_period_ids(unique_ids: Iterable[str]) -> List[str]:
    """Sort serialised ids chronologically; unparseable ids are dropped."""
    keys = [PeriodKey.parse(unique_id) for unique_id in unique_ids]
    return [key.to_id() for key in sorted(k for k in keys if k is not None)]


# =============================================================================
# END OF PERIODS MODULE
# =============================================================================
