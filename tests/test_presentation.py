# =============================================================================
# DAIRY BILLING ENGINE - PRESENTATION TESTS
# =============================================================================

import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from billing.presentation import (
    blank_if_none,
    dash_if_none,
    format_currency,
    format_date,
    format_period_range,
    zero_if_none,
)


class TestSentinels:
    """Tests for the three not-applicable conventions."""

    def test_blank(self):
        assert blank_if_none(None) == ""
        assert blank_if_none(9.7, 2) == "9.70"
        assert blank_if_none(8.31) == "8.31"

    def test_dash(self):
        assert dash_if_none(None) == "-"
        assert dash_if_none("") == "-"
        assert dash_if_none("Kheda") == "Kheda"

    def test_zero(self):
        assert zero_if_none(None) == 0.0
        assert zero_if_none("x") == 0.0
        assert zero_if_none("4.5") == 4.5


class TestCurrency:
    """Tests for Indian-grouped currency."""

    @pytest.mark.parametrize("amount,expected", [
        (1234567.5, "12,34,567.50"),
        (999, "999.00"),
        (1000, "1,000.00"),
        (100000, "1,00,000.00"),
        (-1234.5, "-1,234.50"),
        ("100", "100.00"),
        (0, "0.00"),
    ])
    def test_format(self, amount, expected):
        assert format_currency(amount) == expected

    @pytest.mark.parametrize("amount", [None, "", "abc"])
    def test_empty(self, amount):
        assert format_currency(amount) == ""


class TestDates:
    """Tests for DD-Mon-YY dates."""

    def test_iso_string(self):
        assert format_date("2026-01-05") == "05-Jan-26"

    def test_date_object(self):
        assert format_date(date(2025, 12, 31)) == "31-Dec-25"

    def test_unparseable_returned(self):
        assert format_date("not a date") == "not a date"
        assert format_date("") == ""

    def test_range(self):
        assert format_period_range(date(2026, 1, 1), date(2026, 1, 10)) == "01-Jan-26 to 10-Jan-26"
