# =============================================================================
# DAIRY BILLING ENGINE - COLLECTION AGGREGATION TESTS
# =============================================================================

import pytest
import sys
import os
import random

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from billing.aggregation import (
    GROUP_BILL_PERIOD,
    GROUP_BRANCH,
    GROUP_CATEGORY,
    GROUP_DATE_SHIFT,
    GROUP_FARMER,
    PeriodAggregate,
    aggregate,
    grand_total,
)
from billing.period_key import PeriodKey


class TestPeriodAggregate:
    """Tests for sums and derived ratios."""

    def test_gross_payment(self):
        totals = PeriodAggregate(
            milk_value=1000, extra_rate_amount=10, cartage_amount=5,
            fat_incentive=20, snf_incentive=3, qty_incentive=7,
            fat_deduction=4, snf_deduction=1,
        )
        assert totals.gross_milk_payment == pytest.approx(1040)

    def test_averages(self):
        totals = PeriodAggregate(qty_kg=200, fat_kg=9, snf_kg=17)
        assert totals.avg_fat == pytest.approx(4.5)
        assert totals.avg_snf == pytest.approx(8.5)

    def test_zero_quantity_averages(self):
        """Averages over no quantity are 0, not NaN."""
        totals = PeriodAggregate(fat_kg=1.0)
        assert totals.avg_fat == 0.0
        assert totals.avg_snf == 0.0

    def test_zero_fat_net_rate(self):
        totals = PeriodAggregate(milk_value=500, target_rate=700)
        assert totals.net_rate_per_kg_fat == 0.0
        assert totals.rate_diff == 700
        assert totals.diff_value == 0.0

    def test_rate_difference(self):
        totals = PeriodAggregate(fat_kg=10, milk_value=6800, target_rate=700)
        assert totals.net_rate_per_kg_fat == pytest.approx(680)
        assert totals.rate_diff == pytest.approx(20)
        assert totals.diff_value == pytest.approx(200)

    def test_add_entry_coerces_values(self):
        totals = PeriodAggregate()
        totals.add_entry({"qtyKg": "40", "kgFat": "1.6", "kgSnf": "", "milkValue": "abc",
                          "amount": float("nan"), "farmerId": "3"})
        assert totals.qty_kg == 40
        assert totals.fat_kg == pytest.approx(1.6)
        assert totals.snf_kg == 0
        assert totals.milk_value == 0
        assert totals.amount == 0
        assert totals.count == 1
        assert totals.farmer_count == 1

    def test_merge_keeps_target_rate(self):
        left = PeriodAggregate(qty_kg=1, target_rate=700, farmer_ids={"1"})
        right = PeriodAggregate(qty_kg=2, target_rate=700, farmer_ids={"1", "2"})
        merged = left.merge(right)
        assert merged.qty_kg == 3
        assert merged.target_rate == 700
        assert merged.farmer_count == 2

    def test_to_dict(self):
        data = PeriodAggregate(qty_kg=100, fat_kg=4).to_dict()
        assert data["qty_kg"] == 100
        assert data["avg_fat"] == pytest.approx(4.0)
        assert "farmer_ids" not in data
        assert data["farmer_count"] == 0


class TestAggregate:
    """Tests for grouped sums."""

    def test_group_by_branch(self, collections, farmers):
        """Unknown farmers are dropped from branch groups."""
        grouped = aggregate(collections, group_by=(GROUP_BRANCH,), farmers=farmers)
        assert set(grouped) == {("1",), ("2",)}
        assert grouped[("1",)].qty_kg == pytest.approx(230)
        assert grouped[("2",)].qty_kg == pytest.approx(100)
        assert grouped[("1",)].farmer_count == 2

    def test_single_group(self, collections):
        """An empty selection sums everything under ()."""
        grouped = aggregate(collections, group_by=())
        assert list(grouped) == [()]
        assert grouped[()].qty_kg == pytest.approx(360)
        assert grouped[()].count == 6

    def test_string_dimension(self, collections, farmers):
        assert aggregate(collections, GROUP_BRANCH, farmers) == aggregate(
            collections, (GROUP_BRANCH,), farmers
        )

    def test_group_by_category(self, collections, farmers):
        """Farmers without a category fall into the default category."""
        grouped = aggregate(collections, group_by=(GROUP_CATEGORY,), farmers=farmers)
        assert grouped[("Farmer",)].qty_kg == pytest.approx(240)
        assert grouped[("Agent",)].qty_kg == pytest.approx(50)
        assert grouped[("Other",)].qty_kg == pytest.approx(40)

    def test_group_by_bill_period(self, collections, base_periods):
        grouped = aggregate(collections, group_by=(GROUP_BILL_PERIOD,), base_periods=base_periods)
        assert grouped[(PeriodKey(2026, 0, "2"),)].qty_kg == pytest.approx(220)
        assert grouped[(PeriodKey(2026, 0, "1"),)].qty_kg == pytest.approx(80)
        assert grouped[(PeriodKey(2026, 0, "3"),)].qty_kg == pytest.approx(60)

    def test_group_by_farmer_and_date_shift(self, collections):
        grouped = aggregate(collections, group_by=(GROUP_FARMER, GROUP_DATE_SHIFT))
        assert grouped[("1", ("2026-01-12", "AM"))].qty_kg == 100
        assert ("2", ("2026-01-15", "AM")) not in grouped

    def test_target_rate_stamped(self, collections, farmers):
        grouped = aggregate(collections, farmers=farmers, target_rate="700")
        assert all(group.target_rate == 700 for group in grouped.values())

    def test_unknown_dimension(self, collections):
        with pytest.raises(ValueError):
            aggregate(collections, group_by=("village",))

    def test_non_mapping_entries_skipped(self):
        grouped = aggregate([None, "x", {"qtyKg": 5}], group_by=())
        assert grouped[()].qty_kg == 5

    def test_empty_input(self):
        assert aggregate([], group_by=()) == {}


class TestAggregationProperties:
    """Order independence and associativity of totals."""

    def test_order_independent(self, collections, farmers):
        forward = grand_total(aggregate(collections, farmers=farmers))
        shuffled = list(collections)
        random.Random(7).shuffle(shuffled)
        backward = grand_total(aggregate(shuffled, farmers=farmers))
        assert backward.qty_kg == pytest.approx(forward.qty_kg, abs=1e-6)
        assert backward.gross_milk_payment == pytest.approx(forward.gross_milk_payment, abs=1e-6)

    def test_partition_then_total_equals_whole(self, collections):
        """Summing each half and merging equals summing the whole."""
        whole = grand_total(aggregate(collections, group_by=()))
        first = grand_total(aggregate(collections[:3], group_by=()))
        second = grand_total(aggregate(collections[3:], group_by=()))
        merged = grand_total([first, second])
        for attr in ("qty_kg", "qty_ltrs", "fat_kg", "snf_kg", "milk_value", "amount"):
            assert getattr(merged, attr) == pytest.approx(getattr(whole, attr), abs=1e-6)
        assert merged.count == whole.count


class TestGrandTotal:
    """Tests for totals across groups."""

    def test_target_rate_not_summed(self):
        groups = [PeriodAggregate(qty_kg=1, target_rate=700), PeriodAggregate(qty_kg=2, target_rate=700)]
        total = grand_total(groups)
        assert total.target_rate == 700
        assert total.qty_kg == 3

    def test_accepts_mapping(self, collections, farmers):
        grouped = aggregate(collections, farmers=farmers)
        assert grand_total(grouped).qty_kg == pytest.approx(330)

    def test_empty(self):
        total = grand_total([])
        assert total.qty_kg == 0
        assert total.net_rate_per_kg_fat == 0
