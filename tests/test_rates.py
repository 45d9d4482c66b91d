# =============================================================================
# DAIRY BILLING ENGINE - TARGET RATE TESTS
# =============================================================================

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from billing.period_key import PeriodKey
from billing.periods import BaseCyclePeriod
from billing.rates import bill_start_date, find_rate_config, resolve_target_rate


SECOND_CYCLE = BaseCyclePeriod("2", 11, 20)


class TestTargetRate:
    """Tests for rate configuration lookup."""

    def test_bill_start_date(self):
        assert bill_start_date(PeriodKey(2026, 0, "2"), SECOND_CYCLE) == "2026-01-11"

    def test_covering_config(self, rate_configs):
        assert resolve_target_rate(PeriodKey(2026, 0, "2"), SECOND_CYCLE, rate_configs) == 700
        assert resolve_target_rate(PeriodKey(2025, 11, "2"), SECOND_CYCLE, rate_configs) == 650

    def test_inclusive_bounds(self):
        configs = [{"fromDate": "2026-01-11", "toDate": "2026-01-11", "targetKgFatRate": 710}]
        assert resolve_target_rate(PeriodKey(2026, 0, "2"), SECOND_CYCLE, configs) == 710

    def test_falls_back_to_first(self, rate_configs):
        config = find_rate_config(PeriodKey(2027, 5, "2"), SECOND_CYCLE, rate_configs)
        assert config["id"] == "r1"

    def test_no_configs(self):
        assert resolve_target_rate(PeriodKey(2026, 0, "2"), SECOND_CYCLE, []) == 0.0
        assert resolve_target_rate(PeriodKey(2026, 0, "2"), SECOND_CYCLE, None) == 0.0

    def test_non_numeric_rate(self):
        configs = [{"fromDate": "2026-01-01", "toDate": "2026-12-31", "targetKgFatRate": "n/a"}]
        assert resolve_target_rate(PeriodKey(2026, 0, "2"), SECOND_CYCLE, configs) == 0.0
