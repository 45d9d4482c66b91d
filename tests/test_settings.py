import copy
from pathlib import Path

import pytest

from billing.settings import (
    SettingsError,
    category_order,
    deep_merge,
    load_settings,
    period_window,
    validate_settings,
)


def _valid_settings():
    return {
        "bill_periods": {"epoch": {"year": 2025, "month_index": 11}, "months_ahead": 6},
        "valuation": {
            "kg_per_liter": 1.03,
            "snf_formula": {"clr_divisor": 4, "fat_factor": 0.21, "constant": 0.36},
            "precision": {"snf": 2, "qty": 2, "kg_fat": 3, "kg_snf": 3},
        },
        "reports": {"category_order": ["Farmer", "Agent"]},
    }


def test_deep_merge_keeps_originals():
    base = {"a": {"x": 1}, "b": 1}
    override = {"a": {"y": 2}}
    merged = deep_merge(base, override)
    assert merged == {"a": {"x": 1, "y": 2}, "b": 1}
    assert base == {"a": {"x": 1}, "b": 1}


def test_deep_merge_replaces_lists():
    merged = deep_merge({"order": ["a", "b"]}, {"order": ["c"]})
    assert merged == {"order": ["c"]}


def test_validate_settings_happy_path():
    assert validate_settings(_valid_settings()) == []


def test_shipped_configuration_is_valid(config_dir):
    settings = load_settings("base", config_dir)
    assert validate_settings(settings) == []
    assert period_window(settings) == ((2025, 11), 6)
    assert category_order(settings)[0] == "Farmer"


def test_validate_settings_catches_bad_month():
    bad = copy.deepcopy(_valid_settings())
    bad["bill_periods"]["epoch"]["month_index"] = 12
    errors = validate_settings(bad)
    assert any("month_index invalid" in err for err in errors)


def test_validate_settings_catches_zero_density():
    bad = copy.deepcopy(_valid_settings())
    bad["valuation"]["kg_per_liter"] = 0
    assert any("kg_per_liter" in err for err in validate_settings(bad))


def test_validate_settings_catches_duplicate_categories():
    bad = copy.deepcopy(_valid_settings())
    bad["reports"]["category_order"] = ["Farmer", "Farmer"]
    assert any("duplicates" in err for err in validate_settings(bad))


def test_validate_settings_missing_sections():
    errors = validate_settings({})
    assert "Missing required section: bill_periods" in errors
    assert "Missing required section: valuation" in errors


def test_load_settings_merges_profile(tmp_path: Path):
    (tmp_path / "base.yaml").write_text(
        "bill_periods:\n  epoch:\n    year: 2025\n    month_index: 11\n  months_ahead: 6\n"
        "valuation:\n  kg_per_liter: 1.03\n",
        encoding="utf-8",
    )
    (tmp_path / "pilot.yaml").write_text(
        "bill_periods:\n  months_ahead: 2\n", encoding="utf-8"
    )
    merged = load_settings("pilot", tmp_path)
    assert merged["bill_periods"]["months_ahead"] == 2
    assert merged["bill_periods"]["epoch"]["year"] == 2025


def test_load_settings_missing_profile_falls_back(tmp_path: Path):
    (tmp_path / "base.yaml").write_text("valuation:\n  kg_per_liter: 1.03\n", encoding="utf-8")
    assert load_settings("unknown", tmp_path) == {"valuation": {"kg_per_liter": 1.03}}


def test_load_settings_rejects_non_mapping(tmp_path: Path):
    (tmp_path / "base.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(SettingsError):
        load_settings("base", tmp_path)


def test_load_settings_missing_file(tmp_path: Path):
    with pytest.raises(SettingsError):
        load_settings("base", tmp_path)
