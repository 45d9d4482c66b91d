"""Transform report outputs into tabular DataFrames for display and export."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from billing.aggregation import PeriodAggregate
from billing.periods import GeneratedBillPeriod
from billing.reports import (
    BillCheckReport,
    ComparisonReport,
    FarmerBill,
    FarmerBillReport,
    SupplyAnalysisReport,
    TimeBucket,
)


# (row label, PeriodAggregate attribute, decimals)
BILL_CHECK_METRICS = [
    ("Qnty Kgs", "qty_kg", 2),
    ("Qnty Ltrs", "qty_ltrs", 2),
    ("Fat Kgs", "fat_kg", 2),
    ("Avg Fat %", "avg_fat", 2),
    ("SNF Kgs", "snf_kg", 2),
    ("Avg SNF %", "avg_snf", 2),
    ("Base Milk Value", "milk_value", 2),
    ("Extra Amount", "extra_rate_amount", 2),
    ("Cartage Amount", "cartage_amount", 2),
    ("Fat Incentive", "fat_incentive", 2),
    ("SNF Incentive", "snf_incentive", 2),
    ("Quantity Incentive", "qty_incentive", 2),
    ("Fat Deduction", "fat_deduction", 2),
    ("SNF Deduction", "snf_deduction", 2),
    ("Gross Milk Payment", "gross_milk_payment", 2),
    ("Net Rate", "net_rate_per_kg_fat", 2),
    ("Target Kg Fat Rate", "target_rate", 2),
    ("Rate Difference", "rate_diff", 2),
    ("Difference Value", "diff_value", 2),
]

SUPPLY_COLUMNS = [
    "unit_code",
    "unit",
    "category",
    "farmers",
    "qty_kg",
    "fat_kg",
    "snf_kg",
    "avg_fat",
    "avg_snf",
    "amount",
    "avg_per_day",
    "avg_per_farmer",
]

PERIOD_COLUMNS = [
    "uniqueId",
    "name",
    "financialYear",
    "monthName",
    "year",
    "ordinal",
    "startDay",
    "endDay",
]


def _metric_column(totals: PeriodAggregate) -> List[float]:
    return [round(float(getattr(totals, attr)), places) for _, attr, places in BILL_CHECK_METRICS]


def bill_check_frame(report: BillCheckReport) -> pd.DataFrame:
    """Metric rows x branch columns, with a Total column."""
    index = [label for label, _, _ in BILL_CHECK_METRICS]
    data = {}
    for row in report.rows:
        label = f"{row.code} {row.name}".strip()
        data[label] = _metric_column(row.totals)
    data["Total"] = _metric_column(report.grand_total)
    return pd.DataFrame(data, index=index)


def _supply_row(unit_code: str, unit: str, category: str, totals: PeriodAggregate,
                avg_per_day: float, avg_per_farmer: Optional[float]) -> Dict:
    return {
        "unit_code": unit_code,
        "unit": unit,
        "category": category,
        "farmers": totals.farmer_count,
        "qty_kg": round(totals.qty_kg, 2),
        "fat_kg": round(totals.fat_kg, 3),
        "snf_kg": round(totals.snf_kg, 3),
        "avg_fat": round(totals.avg_fat, 1),
        "avg_snf": round(totals.avg_snf, 2),
        "amount": round(totals.amount, 2),
        "avg_per_day": round(avg_per_day, 2),
        "avg_per_farmer": None if avg_per_farmer is None else round(avg_per_farmer, 2),
    }


def supply_analysis_frame(report: SupplyAnalysisReport) -> pd.DataFrame:
    """Flat unit/category rows with a subtotal per unit and a grand total."""
    rows = []
    for unit in report.units:
        for category in unit.categories:
            rows.append(_supply_row(
                unit.code, unit.name, category.category, category.totals,
                category.avg_per_day, category.avg_per_farmer,
            ))
        rows.append(_supply_row(unit.code, unit.name, "Total", unit.totals, unit.avg_per_day, None))
    if not rows:
        return pd.DataFrame(columns=SUPPLY_COLUMNS)
    rows.append(_supply_row("", "Grand Total", "", report.grand_total, report.avg_per_day, None))
    return pd.DataFrame(rows, columns=SUPPLY_COLUMNS)


def periods_frame(periods: Iterable[GeneratedBillPeriod]) -> pd.DataFrame:
    records = [period.to_record() for period in periods]
    if not records:
        return pd.DataFrame(columns=PERIOD_COLUMNS)
    return pd.DataFrame(records)[PERIOD_COLUMNS]


def _bucket_heading(bucket: TimeBucket) -> str:
    # Day labels repeat across months; date buckets are headed by ISO date.
    if bucket.is_bill_period:
        return bucket.label
    return f"{bucket.date} {bucket.shift}"


def comparison_frame(report: ComparisonReport) -> pd.DataFrame:
    """One row per farmer; qty/fat/snf columns per bucket."""
    headings = {bucket.id: _bucket_heading(bucket) for bucket in report.buckets}
    columns = ["code", "name", "village"]
    for bucket in report.buckets:
        heading = headings[bucket.id]
        columns.extend([f"{heading} qty", f"{heading} fat", f"{heading} snf"])

    rows = []
    for row in report.rows:
        record = {"code": row.code, "name": row.name, "village": row.village}
        for bucket in report.buckets:
            cell = row.cells.get(bucket.id)
            heading = headings[bucket.id]
            record[f"{heading} qty"] = None if cell is None else round(cell.qty_kg, 2)
            record[f"{heading} fat"] = None if cell is None else round(cell.avg_fat, 1)
            record[f"{heading} snf"] = None if cell is None else round(cell.avg_snf, 2)
        rows.append(record)
    return pd.DataFrame(rows, columns=columns)


FARMER_BILL_COLUMNS = [
    "code",
    "name",
    "village",
    "qty_kg",
    "avg_fat",
    "avg_snf",
    "earnings",
    "deductions",
    "net_payable",
]

FARMER_BILL_EARNINGS = [
    ("Basic Value", "milk_value"),
    ("Fat Incentive", "fat_incentive"),
    ("SNF Incentive", "snf_incentive"),
    ("Qty Incentive", "qty_incentive"),
    ("Extra Rate", "extra_rate_amount"),
    ("Cartage", "cartage_amount"),
]

FARMER_BILL_DEDUCTIONS = [
    ("Fat Ded.", "fat_deduction"),
    ("SNF Ded.", "snf_deduction"),
]


def farmer_bill_frame(bill: FarmerBill) -> pd.DataFrame:
    """Statement lines (section, head, amount) of one farmer bill."""
    rows = [
        {"section": "Earnings", "head": label, "amount": round(getattr(bill.totals, attr), 2)}
        for label, attr in FARMER_BILL_EARNINGS
    ]
    rows.extend(
        {"section": "Earnings", "head": item.head_name, "amount": round(item.amount, 2)}
        for item in bill.additions
    )
    rows.append({"section": "Earnings", "head": "Gross Total", "amount": round(bill.total_earnings, 2)})
    rows.extend(
        {"section": "Deductions", "head": label, "amount": round(getattr(bill.totals, attr), 2)}
        for label, attr in FARMER_BILL_DEDUCTIONS
    )
    rows.extend(
        {"section": "Deductions", "head": item.head_name, "amount": round(item.amount, 2)}
        for item in bill.deductions
    )
    rows.append({"section": "Deductions", "head": "Total Ded.", "amount": round(bill.total_deductions, 2)})
    rows.append({"section": "Net", "head": "Net Payable", "amount": bill.net_payable})
    return pd.DataFrame(rows, columns=["section", "head", "amount"])


def farmer_bills_frame(report: FarmerBillReport) -> pd.DataFrame:
    """One summary row per farmer bill."""
    rows = [
        {
            "code": bill.code,
            "name": bill.name,
            "village": bill.village,
            "qty_kg": round(bill.totals.qty_kg, 2),
            "avg_fat": round(bill.totals.avg_fat, 1),
            "avg_snf": round(bill.totals.avg_snf, 2),
            "earnings": round(bill.total_earnings, 2),
            "deductions": round(bill.total_deductions, 2),
            "net_payable": bill.net_payable,
        }
        for bill in report.bills
    ]
    return pd.DataFrame(rows, columns=FARMER_BILL_COLUMNS)


def export_frames(frames: Dict[str, pd.DataFrame], output: Path) -> Path:
    """Write each frame to its own sheet of an .xlsx workbook."""
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for sheet, frame in frames.items():
            keep_index = frame.index.name is not None or not isinstance(frame.index, pd.RangeIndex)
            frame.to_excel(writer, sheet_name=sheet[:31], index=keep_index)
    return output
