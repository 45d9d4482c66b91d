"""Normalisation of bulk-imported collection rows."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .periods import parse_date_parts
from .valuation import DEFAULT_CONSTANTS, ValuationConstants, derive_entry_fields, parse_number


LOGGER = logging.getLogger(__name__)

FARMER_CODE_COLUMNS = ("Farmer Code", "Code", "FarmerCode", "ID")
SNF_COLUMNS = ("SNF", "snf", "Snf")
FAT_COLUMNS = ("Fat", "fat", "Fat %")
CLR_COLUMNS = ("CLR", "clr", "Clr", "Reading")
QTY_COLUMNS = ("Qty", "QtyKg", "Quantity", "Weight", "Milk")
SHIFT_COLUMNS = ("Shift", "shift", "S")
DATE_COLUMNS = ("Date", "date", "DATE")

DEFAULT_SHIFT = "AM"
EXCEL_EPOCH = date(1899, 12, 30)
FIRST_DATA_ROW = 2  # row 1 holds the headers


@dataclass
class ImportResult:
    """Accepted entries and per-row rejection messages."""
    rows: List[Dict] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def date_breakdown(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for row in self.rows:
            counts[row["date"]] = counts.get(row["date"], 0) + 1
        return dict(sorted(counts.items()))

    @property
    def dates(self) -> List[str]:
        return list(self.date_breakdown.keys())


def _pick(row: Mapping, names: Sequence[str]):
    for name in names:
        if row.get(name) is not None:
            return row[name]
    return None


def _excel_serial_to_date(serial: float) -> Optional[date]:
    if math.isnan(serial) or math.isinf(serial):
        return None
    try:
        return EXCEL_EPOCH + timedelta(days=math.floor(serial + 0.5))
    except OverflowError:
        return None


def parse_import_date(value) -> Optional[str]:
    """
    Normalise a spreadsheet date cell to "YYYY-MM-DD".

    Accepts datetime/date objects, Excel serial numbers and strings in
    DD-MM-YYYY or YYYY-MM-DD order separated by "-", "/" or ".".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        parsed = _excel_serial_to_date(float(value))
        return parsed.isoformat() if parsed else None

    text = str(value).strip()
    if not text:
        return None
    parts = re.split(r"[-/.]", text)
    if len(parts) == 3 and all(part.isdigit() for part in parts):
        if len(parts[2]) == 4:
            day, month, year = parts
        elif len(parts[0]) == 4:
            year, month, day = parts
        else:
            day = month = year = None
        if year is not None:
            try:
                return date(int(year), int(month), int(day)).isoformat()
            except ValueError:
                return None

    fallback = parse_date_parts(text)
    if fallback is None:
        return None
    year, month_index, day = fallback
    try:
        return date(year, month_index + 1, day).isoformat()
    except ValueError:
        return None


def normalize_import_rows(
    rows: Iterable[Mapping],
    farmers: Iterable[Mapping],
    constants: ValuationConstants = DEFAULT_CONSTANTS,
) -> ImportResult:
    """
    Validate spreadsheet rows and turn them into collection records.

    Rows with an unknown farmer code, a missing or invalid date, or zero
    quantity/fat are rejected with a "Row N: ..." message, N being the
    spreadsheet row number. Accepted rows get their derived fields filled
    the same way the entry form does.
    """
    farmers_by_code = {
        str(farmer.get("code")).strip(): farmer
        for farmer in farmers or []
        if isinstance(farmer, Mapping) and farmer.get("code") is not None
    }
    result = ImportResult()

    for index, raw in enumerate(rows or []):
        row_number = index + FIRST_DATA_ROW
        row = {str(key).strip(): value for key, value in dict(raw).items()}

        code_value = _pick(row, FARMER_CODE_COLUMNS)
        farmer_code = "" if code_value is None else str(code_value).strip()
        farmer = farmers_by_code.get(farmer_code)
        if farmer is None:
            result.errors.append(f"Row {row_number}: Farmer Code '{farmer_code}' not found")
            continue

        fat = parse_number(_pick(row, FAT_COLUMNS)) or 0.0
        clr = parse_number(_pick(row, CLR_COLUMNS)) or 0.0
        qty_kg = parse_number(_pick(row, QTY_COLUMNS)) or 0.0
        snf = parse_number(_pick(row, SNF_COLUMNS))
        shift = _pick(row, SHIFT_COLUMNS) or DEFAULT_SHIFT

        entry_date = parse_import_date(_pick(row, DATE_COLUMNS))
        if not entry_date:
            result.errors.append(f"Row {row_number}: Missing/Invalid Date")
            continue

        if qty_kg <= 0 or fat <= 0:
            result.errors.append(f"Row {row_number}: Qty/Fat is 0")
            continue

        record = {
            "date": entry_date,
            "shift": str(shift).strip(),
            "farmerId": farmer.get("id"),
            "qtyKg": qty_kg,
            "fat": fat,
            "clr": clr,
            "snf": "" if snf is None else snf,
        }
        result.rows.append(derive_entry_fields(record, constants))

    LOGGER.info(
        "Import normalised: %d accepted, %d rejected", len(result.rows), len(result.errors)
    )
    return result
