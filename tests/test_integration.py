# =============================================================================
# DAIRY BILLING ENGINE - INTEGRATION TESTS
# =============================================================================
# Tests for the import -> classify -> aggregate -> report pipeline.
# =============================================================================

import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from billing.collection_import import normalize_import_rows
from billing.periods import classify_date, generate_periods, period_for_id
from billing.reports import bill_check_report, unit_supply_analysis
from billing.settings import load_settings, period_window
from billing.store import JsonStore
from billing.valuation import ValuationConstants, derive_entry_fields


class TestFullPipeline:
    """Tests for full pipeline execution."""

    def test_imported_rows_reach_bill_check(self, farmers, branches, base_periods):
        """Imported entries are valued and summed per branch."""
        rows = [
            {"Date": "12-01-2026", "Code": "101", "Qty": 100, "Fat": 4.5, "CLR": 28, "Shift": "AM"},
            {"Date": "13-01-2026", "Code": "201", "Qty": 50, "Fat": 4.0, "SNF": 8.5, "Shift": "PM"},
            {"Date": "25-01-2026", "Code": "101", "Qty": 40, "Fat": 4.0, "SNF": 8.5},
        ]
        imported = normalize_import_rows(rows, farmers)
        assert imported.errors == []

        report = bill_check_report(imported.rows, farmers, branches, base_periods, "0-2026-2")
        totals = {row.code: row.totals for row in report.rows}
        assert totals["10"].fat_kg == pytest.approx(4.5)
        assert totals["10"].snf_kg == pytest.approx(8.305, abs=1e-3)
        assert totals["2"].qty_kg == pytest.approx(50)
        assert report.grand_total.count == 2

    def test_form_and_import_agree(self, farmers):
        """Both entry paths produce the same derived fields."""
        form = derive_entry_fields({"qtyKg": 10.3, "fat": 4.5, "clr": 28, "snf": ""})
        imported = normalize_import_rows(
            [{"Date": "2026-01-15", "Code": "101", "Qty": 10.3, "Fat": 4.5, "CLR": 28}], farmers
        ).rows[0]
        for field in ("snf", "qty", "kgFat", "kgSnf"):
            assert imported[field] == form[field]

    def test_every_entry_lands_in_a_generated_period(self, collections, base_periods):
        periods = generate_periods(base_periods, reference_now=date(2026, 1, 15))
        for entry in collections:
            assert period_for_id(classify_date(entry["date"], base_periods), periods) is not None

    def test_snapshot_store_with_settings(self, snapshot_dir, config_dir):
        settings = load_settings("base", config_dir)
        store = JsonStore.from_settings(settings, str(snapshot_dir))
        epoch, months_ahead = period_window(settings)
        periods = generate_periods(
            store.bill_periods(), store.locked_periods(), date(2026, 1, 15), epoch, months_ahead,
        )
        assert periods[0].unique_id == "0-2020-1"

        report = unit_supply_analysis(
            store.collections(), store.farmers(), store.branches(), store.bill_periods(), "0-2026-2",
        )
        assert report.grand_total.qty_kg == pytest.approx(190)

    def test_constants_from_settings(self, config_dir):
        constants = ValuationConstants.from_settings(load_settings("base", config_dir))
        assert constants.kg_per_liter == 1.03
        assert constants.snf_places == 2
