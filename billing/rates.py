"""Target Kg-Fat rate lookup for a bill period."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from .period_key import PeriodKey
from .periods import BaseCyclePeriod
from .valuation import to_number


def bill_start_date(key: PeriodKey, base_period: BaseCyclePeriod) -> str:
    """First day of the period as "YYYY-MM-DD"."""
    return f"{key.year:04d}-{key.month_number:02d}-{base_period.start_day:02d}"


def find_rate_config(
    key: PeriodKey,
    base_period: BaseCyclePeriod,
    rate_configs: Optional[Iterable[Mapping]],
) -> Optional[Mapping]:
    """
    Rate configuration in force on the period's start date.

    Configs carry "fromDate"/"toDate" as "YYYY-MM-DD" strings, compared
    inclusively. Falls back to the first config when none covers the date.
    """
    configs = [config for config in rate_configs or [] if isinstance(config, Mapping)]
    if not configs:
        return None
    start = bill_start_date(key, base_period)
    for config in configs:
        from_date = str(config.get("fromDate") or "")
        to_date = str(config.get("toDate") or "")
        if from_date and to_date and from_date <= start <= to_date:
            return config
    return configs[0]


def resolve_target_rate(
    key: PeriodKey,
    base_period: BaseCyclePeriod,
    rate_configs: Optional[Iterable[Mapping]],
) -> float:
    """Target Kg-Fat rate for the period; 0.0 when no config applies."""
    config = find_rate_config(key, base_period, rate_configs)
    if config is None:
        return 0.0
    return to_number(config.get("targetKgFatRate"))
