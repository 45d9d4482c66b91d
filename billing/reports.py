# =============================================================================
# DAIRY BILLING ENGINE - REPORTS
# =============================================================================
# Builds the analytical reports over collection entries. Every report scopes
# entries by bill period or date, then sums them through the aggregation
# module.
#
# REPORTS:
# - collection_summary: Day/shift totals shown on the entry screen
# - bill_check_report: Per-branch payment check for one bill period
# - unit_supply_analysis: Unit -> category supply for one bill period
# - procurement_comparison: Farmer x time-bucket quantity/fat/SNF matrix
# - farmer_bill_report: Per-farmer payment statement for one bill period
#
# FARMER BILL:
# - Earnings       = Milk_value + Fat_inc + SNF_inc + Qty_inc + Extra
#                    + Cartage + Additions
# - Deductions     = Fat_ded + SNF_ded + Master deductions
# - Net_Payable    = Earnings - Deductions, rounded to whole rupees (half up)
# =============================================================================

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .aggregation import (
    DEFAULT_CATEGORY,
    GROUP_BILL_PERIOD,
    GROUP_BRANCH,
    GROUP_CATEGORY,
    GROUP_DATE_SHIFT,
    GROUP_FARMER,
    PeriodAggregate,
    aggregate,
    grand_total,
    index_by_id,
)
from .period_key import PeriodKey
from .periods import (
    GeneratedBillPeriod,
    base_for_key,
    build_period,
    classify_date_key,
    days_in_period,
    parse_date_parts,
)
from .rates import resolve_target_rate
from .valuation import to_number


DEFAULT_CATEGORY_ORDER = ("Farmer", "Dairy Farm", "Agent", "Vendor")
UNKNOWN_BRANCH_CODE = "999"
ALL_CATEGORIES = "All"
SHIFTS = ("AM", "PM")
BOTH_SHIFTS = "Both"


def natural_sort_key(value) -> tuple:
    """Sort key treating digit runs as numbers ("2" < "10")."""
    parts = re.split(r"(\d+)", str(value or "").lower())
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in parts
        if part != ""
    )


def category_sort_key(category: str, order: Sequence[str]) -> tuple:
    if category in order:
        return (0, order.index(category), "")
    return (1, 0, category)


def resolve_period(period_id, base_periods) -> Optional[GeneratedBillPeriod]:
    """Generated period for a serialised id; None when it cannot be resolved."""
    key = PeriodKey.parse(period_id)
    if key is None:
        return None
    base = base_for_key(key, base_periods)
    if base is None:
        return None
    return build_period(key, base)


def entries_in_period(entries: Iterable[Mapping], key: PeriodKey, base_periods) -> List[Mapping]:
    return [
        entry for entry in entries or []
        if isinstance(entry, Mapping)
        and classify_date_key(entry.get("date"), base_periods) == key
    ]


# =============================================================================
# COLLECTION SUMMARY
# =============================================================================

def collection_summary(
    entries: Iterable[Mapping],
    entry_date: str,
    shift: str,
    farmers: Optional[Iterable[Mapping]] = None,
    branch_id=None,
) -> PeriodAggregate:
    """Totals for one date and shift, optionally restricted to one branch."""
    if not entry_date:
        return PeriodAggregate()

    scoped = [
        entry for entry in entries or []
        if isinstance(entry, Mapping)
        and entry.get("date") == entry_date
        and entry.get("shift") == shift
    ]
    if branch_id not in (None, ""):
        branch_farmers = {
            farmer_id
            for farmer_id, farmer in index_by_id(farmers).items()
            if str(farmer.get("branchId")) == str(branch_id)
        }
        scoped = [e for e in scoped if str(e.get("farmerId")) in branch_farmers]

    return grand_total(aggregate(scoped, group_by=()))


# =============================================================================
# BILL CHECK
# =============================================================================

@dataclass
class BranchRow:
    branch_id: str
    name: str
    code: str
    totals: PeriodAggregate


@dataclass
class BillCheckReport:
    """Per-branch payment check for one bill period."""
    period: Optional[GeneratedBillPeriod] = None
    target_rate: float = 0.0
    rows: List[BranchRow] = field(default_factory=list)
    grand_total: PeriodAggregate = field(default_factory=PeriodAggregate)
    errors: List[str] = field(default_factory=list)


def bill_check_report(
    entries: Iterable[Mapping],
    farmers: Iterable[Mapping],
    branches: Iterable[Mapping],
    base_periods,
    period_id: str,
    rate_configs: Optional[Iterable[Mapping]] = None,
) -> BillCheckReport:
    """
    Per-branch sums, gross payment and net rate for one bill period.

    Every known branch gets a row, including branches without supply.
    Rows are ordered by branch code, numerically where codes are numeric.
    """
    report = BillCheckReport()
    period = resolve_period(period_id, base_periods)
    if period is None:
        report.errors.append(f"Unknown bill period: {period_id!r}")
        return report
    report.period = period

    base = base_for_key(period.key, base_periods)
    report.target_rate = resolve_target_rate(period.key, base, rate_configs)

    scoped = entries_in_period(entries, period.key, base_periods)
    by_branch = aggregate(
        scoped,
        group_by=(GROUP_BRANCH,),
        farmers=farmers,
        target_rate=report.target_rate,
    )

    for branch_id, branch in index_by_id(branches).items():
        totals = by_branch.get((branch_id,), PeriodAggregate(target_rate=report.target_rate))
        report.rows.append(BranchRow(
            branch_id=branch_id,
            name=str(branch.get("branchName") or ""),
            code=str(branch.get("branchCode") or UNKNOWN_BRANCH_CODE),
            totals=totals,
        ))

    report.rows.sort(key=lambda row: natural_sort_key(row.code))
    report.grand_total = grand_total([row.totals for row in report.rows])
    return report


# =============================================================================
# UNIT SUPPLY ANALYSIS
# =============================================================================

@dataclass
class CategoryRow:
    category: str
    totals: PeriodAggregate
    days: int = 1

    @property
    def avg_per_day(self) -> float:
        return self.totals.qty_kg / self.days if self.days else 0.0

    @property
    def avg_per_farmer(self) -> float:
        count = self.totals.farmer_count
        return self.avg_per_day / count if count else 0.0


@dataclass
class UnitRow:
    branch_id: str
    name: str
    code: str
    short_name: str
    categories: List[CategoryRow] = field(default_factory=list)

    @property
    def totals(self) -> PeriodAggregate:
        return grand_total([row.totals for row in self.categories])

    @property
    def avg_per_day(self) -> float:
        return sum(row.avg_per_day for row in self.categories)


@dataclass
class SupplyAnalysisReport:
    """Supply by unit and supplier category for one bill period."""
    period: Optional[GeneratedBillPeriod] = None
    days: int = 1
    units: List[UnitRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def grand_total(self) -> PeriodAggregate:
        return grand_total([unit.totals for unit in self.units])

    @property
    def avg_per_day(self) -> float:
        return sum(unit.avg_per_day for unit in self.units)


def unit_supply_analysis(
    entries: Iterable[Mapping],
    farmers: Iterable[Mapping],
    branches: Iterable[Mapping],
    base_periods,
    period_id: str,
    category: str = ALL_CATEGORIES,
    category_order: Sequence[str] = DEFAULT_CATEGORY_ORDER,
    default_category: str = DEFAULT_CATEGORY,
) -> SupplyAnalysisReport:
    """
    Unit -> category supply rows for one bill period.

    Only units with supply appear. Categories follow category_order, any
    other category after them alphabetically. Per-day averages use the
    number of calendar days in the period.
    """
    report = SupplyAnalysisReport()
    period = resolve_period(period_id, base_periods)
    if period is None:
        report.errors.append(f"Unknown bill period: {period_id!r}")
        return report
    report.period = period
    report.days = days_in_period(period.key, base_for_key(period.key, base_periods))

    farmer_records = [f for f in farmers or [] if isinstance(f, Mapping)]
    if category != ALL_CATEGORIES:
        farmer_records = [
            f for f in farmer_records
            if (f.get("category") or default_category) == category
        ]

    scoped = entries_in_period(entries, period.key, base_periods)
    grouped = aggregate(
        scoped,
        group_by=(GROUP_BRANCH, GROUP_CATEGORY),
        farmers=farmer_records,
        default_category=default_category,
    )

    branches_by_id = index_by_id(branches)
    units: Dict[str, UnitRow] = {}
    for (branch_id, category_name), totals in grouped.items():
        unit = units.get(branch_id)
        if unit is None:
            branch = branches_by_id.get(branch_id)
            if branch is not None:
                unit = UnitRow(
                    branch_id=branch_id,
                    name=str(branch.get("branchName") or ""),
                    code=str(branch.get("branchCode") or UNKNOWN_BRANCH_CODE),
                    short_name=str(branch.get("shortName") or ""),
                )
            else:
                unit = UnitRow(
                    branch_id=branch_id,
                    name="Unknown Unit",
                    code=UNKNOWN_BRANCH_CODE,
                    short_name="UNK",
                )
            units[branch_id] = unit
        unit.categories.append(CategoryRow(category=category_name, totals=totals, days=report.days))

    for unit in units.values():
        unit.categories.sort(key=lambda row: category_sort_key(row.category, list(category_order)))

    report.units = sorted(units.values(), key=lambda unit: natural_sort_key(unit.code))
    return report


# =============================================================================
# PROCUREMENT COMPARISON
# =============================================================================

@dataclass(frozen=True)
class TimeBucket:
    """One comparison column: a bill period or a date+shift."""
    id: str
    label: str
    key: Optional[PeriodKey] = None
    date: Optional[str] = None
    shift: Optional[str] = None

    @property
    def is_bill_period(self) -> bool:
        return self.key is not None


@dataclass(frozen=True)
class ComparisonCell:
    qty_kg: float
    avg_fat: float
    avg_snf: float


@dataclass
class FarmerComparisonRow:
    farmer_id: str
    code: str
    name: str
    village: str
    cells: Dict[str, Optional[ComparisonCell]] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return any(cell is not None for cell in self.cells.values())


@dataclass
class ComparisonReport:
    buckets: List[TimeBucket] = field(default_factory=list)
    rows: List[FarmerComparisonRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def _to_date(value) -> Optional[date]:
    parts = parse_date_parts(value)
    if parts is None:
        return None
    year, month_index, day = parts
    try:
        return date(year, month_index + 1, day)
    except ValueError:
        return None


def period_buckets(period_ids: Iterable[str], base_periods) -> List[TimeBucket]:
    """Bill-period buckets in chronological order; unknown ids are dropped."""
    buckets = []
    for period_id in period_ids:
        period = resolve_period(period_id, base_periods)
        if period is not None:
            buckets.append(TimeBucket(id=period.unique_id, label=period.name, key=period.key))
    return sorted(buckets, key=lambda bucket: bucket.key.sort_key)


def date_shift_buckets(start, end, shift: str = BOTH_SHIFTS) -> List[TimeBucket]:
    """One bucket per date and selected shift, start to end inclusive."""
    first = _to_date(start)
    last = _to_date(end)
    if first is None or last is None:
        return []
    shifts = SHIFTS if shift == BOTH_SHIFTS else tuple(s for s in SHIFTS if s == shift)
    buckets = []
    current = first
    while current <= last:
        iso = current.isoformat()
        for name in shifts:
            buckets.append(TimeBucket(
                id=f"{iso}-{name}",
                label=f"{current.day} {name}",
                date=iso,
                shift=name,
            ))
        current += timedelta(days=1)
    return buckets


def procurement_comparison(
    entries: Iterable[Mapping],
    farmers: Iterable[Mapping],
    base_periods=None,
    farmer_ids: Optional[Iterable] = None,
    period_ids: Optional[Iterable[str]] = None,
    date_range: Optional[Sequence] = None,
    shift: str = BOTH_SHIFTS,
    single_farmer: bool = False,
) -> ComparisonReport:
    """
    Quantity, average fat and average SNF per farmer and time bucket.

    Args:
        entries: Collection records
        farmers: Farmer records (id, code, name, village)
        base_periods: Base cycle definitions (bill-period mode)
        farmer_ids: Farmers to include; None includes every farmer
        period_ids: Bill-period ids to compare (bill-period mode)
        date_range: (start, end) dates (date+shift mode)
        shift: "AM", "PM" or "Both" (date+shift mode)
        single_farmer: Keep the row even when the farmer has no data

    Returns:
        ComparisonReport; a cell is None when the farmer has no entries
        in that bucket
    """
    report = ComparisonReport()

    if period_ids is not None:
        report.buckets = period_buckets(period_ids, base_periods)
        dimension = GROUP_BILL_PERIOD
        if not report.buckets:
            report.errors.append("Select at least one bill period")
    elif date_range is not None and len(date_range) == 2:
        report.buckets = date_shift_buckets(date_range[0], date_range[1], shift)
        dimension = GROUP_DATE_SHIFT
        if not report.buckets:
            report.errors.append("Select a valid date range")
    else:
        report.errors.append("Select bill periods or a date range")
        return report

    farmer_records = sorted(
        (f for f in farmers or [] if isinstance(f, Mapping) and f.get("id") is not None),
        key=lambda f: natural_sort_key(f.get("code")),
    )
    if farmer_ids is not None:
        wanted = {str(farmer_id) for farmer_id in farmer_ids}
        if not wanted:
            report.errors.append("Select at least one farmer")
        farmer_records = [f for f in farmer_records if str(f.get("id")) in wanted]
    if report.errors:
        return report

    grouped = aggregate(entries, group_by=(GROUP_FARMER, dimension), base_periods=base_periods)

    for farmer in farmer_records:
        farmer_id = str(farmer.get("id"))
        row = FarmerComparisonRow(
            farmer_id=farmer_id,
            code=str(farmer.get("code") or ""),
            name=str(farmer.get("name") or ""),
            village=str(farmer.get("village") or "-"),
        )
        for bucket in report.buckets:
            bucket_key = bucket.key if bucket.is_bill_period else (bucket.date, bucket.shift)
            totals = grouped.get((farmer_id, bucket_key))
            row.cells[bucket.id] = None if totals is None else ComparisonCell(
                qty_kg=totals.qty_kg,
                avg_fat=totals.avg_fat,
                avg_snf=totals.avg_snf,
            )
        if row.has_data or single_farmer:
            report.rows.append(row)

    return report


# =============================================================================
# FARMER BILL
# =============================================================================

ADDITION = "Addition"
DEDUCTION = "Deduction"


@dataclass(frozen=True)
class Adjustment:
    """A master addition or deduction booked against a farmer and period."""
    id: str
    head_name: str
    amount: float


@dataclass
class FarmerBill:
    farmer_id: str
    code: str
    name: str
    village: str
    totals: PeriodAggregate
    entries: List[Mapping] = field(default_factory=list)
    additions: List[Adjustment] = field(default_factory=list)
    deductions: List[Adjustment] = field(default_factory=list)

    @property
    def total_additions(self) -> float:
        return sum(item.amount for item in self.additions)

    @property
    def total_master_deductions(self) -> float:
        return sum(item.amount for item in self.deductions)

    @property
    def total_earnings(self) -> float:
        totals = self.totals
        return (
            totals.milk_value
            + totals.fat_incentive
            + totals.snf_incentive
            + totals.qty_incentive
            + totals.extra_rate_amount
            + totals.cartage_amount
            + self.total_additions
        )

    @property
    def total_deductions(self) -> float:
        return self.totals.fat_deduction + self.totals.snf_deduction + self.total_master_deductions

    @property
    def net_payable(self) -> int:
        return math.floor(self.total_earnings - self.total_deductions + 0.5)


@dataclass
class FarmerBillReport:
    """Farmer payment statements for one bill period."""
    period: Optional[GeneratedBillPeriod] = None
    bills: List[FarmerBill] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def total_net_payable(self) -> int:
        return sum(bill.net_payable for bill in self.bills)


def _entry_order(entry: Mapping) -> tuple:
    return (str(entry.get("date") or ""), 0 if entry.get("shift") == "AM" else 1)


def adjustments_for_period(adjustments: Optional[Iterable[Mapping]], key: PeriodKey) -> Dict[str, List[Mapping]]:
    """Adjustment records of one bill period, grouped by farmer id."""
    result: Dict[str, List[Mapping]] = {}
    for record in adjustments or []:
        if not isinstance(record, Mapping):
            continue
        if PeriodKey.parse(record.get("billPeriod")) != key:
            continue
        result.setdefault(str(record.get("farmerId")), []).append(record)
    return result


def _to_adjustment(record: Mapping) -> Adjustment:
    return Adjustment(
        id=str(record.get("id") or ""),
        head_name=str(record.get("headName") or ""),
        amount=to_number(record.get("defaultValue")),
    )


def farmer_bill_report(
    entries: Iterable[Mapping],
    farmers: Iterable[Mapping],
    base_periods,
    period_id: str,
    adjustments: Optional[Iterable[Mapping]] = None,
    farmer_id=None,
    branch_id=None,
) -> FarmerBillReport:
    """
    Payment statement per farmer for one bill period.

    Args:
        entries: Collection records
        farmers: Farmer records (id, code, name, village, branchId)
        base_periods: Base cycle definitions
        period_id: Serialised bill period id
        adjustments: Addition/deduction records (farmerId, billPeriod,
                     type, headName, defaultValue)
        farmer_id: Restrict to one farmer
        branch_id: Restrict to the farmers of one branch

    Returns:
        FarmerBillReport with bills ordered by farmer code; a farmer with
        neither collections nor adjustments in the period gets no bill
    """
    report = FarmerBillReport()
    period = resolve_period(period_id, base_periods)
    if period is None:
        report.errors.append(f"Unknown bill period: {period_id!r}")
        return report
    report.period = period

    farmer_records = sorted(
        (f for f in farmers or [] if isinstance(f, Mapping) and f.get("id") is not None),
        key=lambda f: natural_sort_key(f.get("code")),
    )
    if farmer_id not in (None, ""):
        farmer_records = [f for f in farmer_records if str(f.get("id")) == str(farmer_id)]
        if not farmer_records:
            report.errors.append(f"Unknown farmer: {str(farmer_id)!r}")
            return report
    if branch_id not in (None, ""):
        farmer_records = [f for f in farmer_records if str(f.get("branchId")) == str(branch_id)]

    scoped = entries_in_period(entries, period.key, base_periods)
    grouped = aggregate(scoped, group_by=(GROUP_FARMER,))
    by_farmer = adjustments_for_period(adjustments, period.key)

    for farmer in farmer_records:
        fid = str(farmer.get("id"))
        totals = grouped.get((fid,))
        booked = by_farmer.get(fid, [])
        if totals is None and not booked:
            continue
        report.bills.append(FarmerBill(
            farmer_id=fid,
            code=str(farmer.get("code") or ""),
            name=str(farmer.get("name") or ""),
            village=str(farmer.get("village") or "-"),
            totals=totals or PeriodAggregate(),
            entries=sorted(
                (e for e in scoped if str(e.get("farmerId")) == fid),
                key=_entry_order,
            ),
            additions=[_to_adjustment(r) for r in booked if r.get("type") == ADDITION],
            deductions=[_to_adjustment(r) for r in booked if r.get("type") == DEDUCTION],
        ))

    return report


# =============================================================================
# END OF REPORTS MODULE
# =============================================================================
