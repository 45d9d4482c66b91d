# =============================================================================
# DAIRY BILLING ENGINE - PYTEST CONFIGURATION
# =============================================================================
# Shared fixtures and configuration for all tests.
# =============================================================================

import json
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root):
    """Get configuration directory."""
    return project_root / "config"


@pytest.fixture
def base_periods():
    """Three cycles per month: 1-10, 11-20, 21-month end."""
    return [
        {"id": "1", "startDay": 1, "endDay": 10},
        {"id": "2", "startDay": 11, "endDay": 20},
        {"id": "3", "startDay": 21, "endDay": 31},
    ]


@pytest.fixture
def branches():
    return [
        {"id": "1", "branchName": "Central", "branchCode": "10", "shortName": "CEN"},
        {"id": "2", "branchName": "North", "branchCode": "2", "shortName": "NTH"},
        {"id": "3", "branchName": "East", "branchCode": "3", "shortName": "EST"},
    ]


@pytest.fixture
def farmers():
    return [
        {"id": "1", "code": "101", "name": "Ramesh", "branchId": "1", "category": "Farmer", "village": "Kheda"},
        {"id": "2", "code": "102", "name": "Suresh", "branchId": "1", "category": "Agent"},
        {"id": "3", "code": "201", "name": "Mahesh", "branchId": "2", "village": "Anand"},
        {"id": "4", "code": "10", "name": "Dinesh", "branchId": "2", "category": "Farmer"},
    ]


@pytest.fixture
def collections():
    """
    January 2026 collections.

    Period 0-2026-2 (11th-20th) holds c1, c2, c3 and c6 (unknown farmer).
    """
    return [
        {
            "id": "c1", "date": "2026-01-12", "shift": "AM", "farmerId": "1",
            "qtyKg": 100, "qty": 97.09, "kgFat": 4.5, "kgSnf": 8.5,
            "milkValue": 3000, "fatIncentive": 50, "qtyIncentiveAmount": 20,
            "fatDeduction": 10, "amount": 3060,
        },
        {
            "id": "c2", "date": "2026-01-15", "shift": "PM", "farmerId": "2",
            "qtyKg": 50, "qty": 48.54, "kgFat": 2.0, "kgSnf": 4.25,
            "milkValue": 1400, "snfIncentive": 5, "snfDeduction": 2,
            "extraRateAmount": 30, "cartageAmount": 15, "amount": 1448,
        },
        {
            "id": "c3", "date": "2026-01-18", "shift": "AM", "farmerId": "3",
            "qtyKg": "40", "kgFat": "1.6", "kgSnf": "", "milkValue": "abc",
            "amount": 900,
        },
        {
            "id": "c4", "date": "2026-01-05", "shift": "AM", "farmerId": "1",
            "qtyKg": 80, "kgFat": 3.2, "milkValue": 2000,
        },
        {
            "id": "c5", "date": "2026-01-25", "shift": "PM", "farmerId": "4",
            "qtyKg": 60, "kgFat": 2.4,
        },
        {
            "id": "c6", "date": "2026-01-14", "shift": "AM", "farmerId": "99",
            "qtyKg": 30, "kgFat": 1.2, "milkValue": 800,
        },
    ]


@pytest.fixture
def rate_configs():
    return [
        {"id": "r1", "fromDate": "2025-12-01", "toDate": "2025-12-31", "targetKgFatRate": "650"},
        {"id": "r2", "fromDate": "2026-01-01", "toDate": "2026-03-31", "targetKgFatRate": "700"},
    ]


@pytest.fixture
def adjustments():
    """Master additions and deductions booked against bill periods."""
    return [
        {"id": "a1", "farmerId": "1", "billPeriod": "0-2026-2", "type": "Addition",
         "headName": "Bonus", "defaultValue": "100"},
        {"id": "a2", "farmerId": "1", "billPeriod": "0-2026-2", "type": "Deduction",
         "headName": "Cattle Feed", "defaultValue": 250.4},
        {"id": "a3", "farmerId": "4", "billPeriod": "00-2026-2", "type": "Deduction",
         "headName": "Loan", "defaultValue": 500},
        {"id": "a4", "farmerId": "2", "billPeriod": "0-2026-1", "type": "Addition",
         "headName": "Bonus", "defaultValue": 50},
    ]


@pytest.fixture
def snapshot_dir(tmp_path, base_periods, branches, farmers, collections, rate_configs, adjustments):
    """Store snapshot directory with one JSON file per collection."""
    data = {
        "bill-periods": base_periods,
        "locked-periods": ["0-2020-1"],
        "collections": collections,
        "farmers": farmers,
        "branches": branches,
        "rate-configs": rate_configs,
        "additions-deductions": adjustments,
    }
    for name, payload in data.items():
        (tmp_path / f"{name}.json").write_text(json.dumps(payload), encoding="utf-8")
    return tmp_path
