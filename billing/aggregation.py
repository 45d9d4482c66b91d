# =============================================================================
# DAIRY BILLING ENGINE - COLLECTION AGGREGATION
# =============================================================================
# Sums valuation-enriched collection entries per group and derives the
# payment ratios used by every report.
#
# FORMULAS:
# - Avg_Fat[%]        = Fat_kg / Qty_kg * 100                (0 when Qty_kg = 0)
# - Avg_SNF[%]        = SNF_kg / Qty_kg * 100                (0 when Qty_kg = 0)
# - Gross_Payment     = Milk_value + Extra + Cartage
#                       + Fat_inc + SNF_inc + Qty_inc - Fat_ded - SNF_ded
# - Net_Rate          = Gross_Payment / Fat_kg               (0 when Fat_kg = 0)
# - Rate_Diff         = Target_rate - Net_Rate
# - Diff_Value        = Rate_Diff * Fat_kg
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .periods import classify_date_key
from .valuation import to_number


GROUP_BRANCH = "branch"
GROUP_CATEGORY = "category"
GROUP_BILL_PERIOD = "bill_period"
GROUP_DATE_SHIFT = "date_shift"
GROUP_FARMER = "farmer"

GROUP_DIMENSIONS = (
    GROUP_BRANCH,
    GROUP_CATEGORY,
    GROUP_BILL_PERIOD,
    GROUP_DATE_SHIFT,
    GROUP_FARMER,
)

DEFAULT_CATEGORY = "Other"

# (aggregate attribute, collection record field)
SUMMED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("qty_kg", "qtyKg"),
    ("qty_ltrs", "qty"),
    ("fat_kg", "kgFat"),
    ("snf_kg", "kgSnf"),
    ("fat_incentive", "fatIncentive"),
    ("snf_incentive", "snfIncentive"),
    ("qty_incentive", "qtyIncentiveAmount"),
    ("fat_deduction", "fatDeduction"),
    ("snf_deduction", "snfDeduction"),
    ("extra_rate_amount", "extraRateAmount"),
    ("cartage_amount", "cartageAmount"),
    ("milk_value", "milkValue"),
    ("amount", "amount"),
)


def _safe_ratio(num: float, den: float) -> float:
    return (num / den) if den else 0.0


@dataclass
class PeriodAggregate:
    """Sums over a group of collection entries."""
    qty_kg: float = 0.0
    qty_ltrs: float = 0.0
    fat_kg: float = 0.0
    snf_kg: float = 0.0
    fat_incentive: float = 0.0
    snf_incentive: float = 0.0
    qty_incentive: float = 0.0
    fat_deduction: float = 0.0
    snf_deduction: float = 0.0
    extra_rate_amount: float = 0.0
    cartage_amount: float = 0.0
    milk_value: float = 0.0
    amount: float = 0.0
    target_rate: float = 0.0
    count: int = 0
    farmer_ids: Set[str] = field(default_factory=set)

    def add_entry(self, entry: Mapping) -> None:
        for attr, record_field in SUMMED_FIELDS:
            setattr(self, attr, getattr(self, attr) + to_number(entry.get(record_field)))
        self.count += 1
        farmer_id = entry.get("farmerId")
        if farmer_id is not None and str(farmer_id) != "":
            self.farmer_ids.add(str(farmer_id))

    def merge(self, other: "PeriodAggregate") -> "PeriodAggregate":
        """Element-wise sum; target_rate is kept from self."""
        merged = PeriodAggregate(target_rate=self.target_rate)
        for attr, _ in SUMMED_FIELDS:
            setattr(merged, attr, getattr(self, attr) + getattr(other, attr))
        merged.count = self.count + other.count
        merged.farmer_ids = self.farmer_ids | other.farmer_ids
        return merged

    @property
    def farmer_count(self) -> int:
        return len(self.farmer_ids)

    @property
    def avg_fat(self) -> float:
        return _safe_ratio(self.fat_kg, self.qty_kg) * 100

    @property
    def avg_snf(self) -> float:
        return _safe_ratio(self.snf_kg, self.qty_kg) * 100

    @property
    def gross_milk_payment(self) -> float:
        return (
            self.milk_value
            + self.extra_rate_amount
            + self.cartage_amount
            + self.fat_incentive
            + self.snf_incentive
            + self.qty_incentive
            - self.fat_deduction
            - self.snf_deduction
        )

    @property
    def net_rate_per_kg_fat(self) -> float:
        return _safe_ratio(self.gross_milk_payment, self.fat_kg)

    @property
    def rate_diff(self) -> float:
        return self.target_rate - self.net_rate_per_kg_fat

    @property
    def diff_value(self) -> float:
        return self.rate_diff * self.fat_kg

    def to_dict(self) -> Dict[str, float]:
        """Flat mapping of sums and derived ratios."""
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "farmer_ids"
        }
        data.update({
            "farmer_count": self.farmer_count,
            "avg_fat": self.avg_fat,
            "avg_snf": self.avg_snf,
            "gross_milk_payment": self.gross_milk_payment,
            "net_rate_per_kg_fat": self.net_rate_per_kg_fat,
            "rate_diff": self.rate_diff,
            "diff_value": self.diff_value,
        })
        return data


def index_by_id(records: Optional[Iterable[Mapping]]) -> Dict[str, Mapping]:
    """Map store records by their stringified id."""
    return {
        str(record.get("id")): record
        for record in records or []
        if isinstance(record, Mapping) and record.get("id") is not None
    }


def _normalise_group_by(group_by) -> Tuple[str, ...]:
    if isinstance(group_by, str):
        group_by = (group_by,)
    dims = tuple(group_by or ())
    unknown = [dim for dim in dims if dim not in GROUP_DIMENSIONS]
    if unknown:
        raise ValueError(f"Unknown group dimension(s): {', '.join(unknown)}")
    return dims


def group_key(
    entry: Mapping,
    dims: Sequence[str],
    farmers_by_id: Mapping[str, Mapping],
    base_periods,
    default_category: str = DEFAULT_CATEGORY,
) -> Optional[Tuple]:
    """
    Group key of one entry, or None when the entry cannot be placed.

    Branch and category require a known farmer; entries of unknown farmers
    are dropped for those dimensions.
    """
    farmer = farmers_by_id.get(str(entry.get("farmerId")))
    parts = []
    for dim in dims:
        if dim == GROUP_BRANCH:
            if farmer is None:
                return None
            parts.append(str(farmer.get("branchId")))
        elif dim == GROUP_CATEGORY:
            if farmer is None:
                return None
            parts.append(farmer.get("category") or default_category)
        elif dim == GROUP_BILL_PERIOD:
            parts.append(classify_date_key(entry.get("date"), base_periods))
        elif dim == GROUP_DATE_SHIFT:
            parts.append((entry.get("date"), entry.get("shift")))
        elif dim == GROUP_FARMER:
            parts.append(str(entry.get("farmerId")))
    return tuple(parts)


def aggregate(
    entries: Iterable[Mapping],
    group_by=(GROUP_BRANCH,),
    farmers: Optional[Iterable[Mapping]] = None,
    base_periods=None,
    target_rate: float = 0.0,
    default_category: str = DEFAULT_CATEGORY,
) -> Dict[Tuple, PeriodAggregate]:
    """
    Sum collection entries per group.

    Args:
        entries: Collection records already filtered to the report scope
        group_by: One or more of GROUP_DIMENSIONS; an empty selection puts
                  every entry in a single group keyed by ()
        farmers: Farmer records (id, branchId, category) for branch/category
        base_periods: Base cycle definitions for bill-period grouping
        target_rate: Target Kg-Fat rate stamped on every group
        default_category: Category used when a farmer has none

    Returns:
        Dict[group_key_tuple, PeriodAggregate] in first-seen order

    Notes:
        - Missing or unparseable numeric fields count as 0
        - Result totals do not depend on entry order
    """
    dims = _normalise_group_by(group_by)
    farmers_by_id = index_by_id(farmers)
    rate = to_number(target_rate)

    result: Dict[Tuple, PeriodAggregate] = {}
    for entry in entries or []:
        if not isinstance(entry, Mapping):
            continue
        key = group_key(entry, dims, farmers_by_id, base_periods, default_category)
        if key is None:
            continue
        bucket = result.get(key)
        if bucket is None:
            bucket = PeriodAggregate(target_rate=rate)
            result[key] = bucket
        bucket.add_entry(entry)
    return result


def grand_total(aggregates) -> PeriodAggregate:
    """
    Element-wise sum of group aggregates.

    target_rate is taken from the first group rather than summed.
    """
    groups: List[PeriodAggregate] = list(
        aggregates.values() if isinstance(aggregates, Mapping) else aggregates
    )
    if not groups:
        return PeriodAggregate()
    total = PeriodAggregate(target_rate=groups[0].target_rate)
    for group in groups:
        total = total.merge(group)
    return total


# =============================================================================
# END OF AGGREGATION MODULE
# =============================================================================
