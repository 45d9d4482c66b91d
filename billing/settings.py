"""Configuration loading and validation utilities."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Dict, List, Tuple

import yaml


DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class SettingsError(ValueError):
    """Raised when a configuration file cannot be read."""


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base; lists are replaced, not merged."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return an object (empty dict for empty files)."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise SettingsError(f"Cannot read configuration {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"Configuration {path} must contain a mapping")
    return data


def load_settings(profile: str = "base", config_dir: Path = DEFAULT_CONFIG_DIR) -> dict:
    """Load base settings and merge the profile override if present."""
    config_dir = Path(config_dir)
    base = load_yaml_file(config_dir / "base.yaml")
    if profile == "base":
        return base

    override_path = config_dir / f"{profile}.yaml"
    if override_path.exists():
        return deep_merge(base, load_yaml_file(override_path))
    return base


def period_window(settings: Dict) -> Tuple[Tuple[int, int], int]:
    """(epoch, months_ahead) for bill period generation."""
    section = settings.get("bill_periods", {})
    epoch = section.get("epoch", {})
    return (
        (int(epoch.get("year", 2025)), int(epoch.get("month_index", 11))),
        int(section.get("months_ahead", 6)),
    )


def category_order(settings: Dict) -> List[str]:
    return list(settings.get("reports", {}).get("category_order", []))


def validate_settings(settings: Dict) -> List[str]:
    """Validate settings structure and key constraints."""
    errors: List[str] = []

    for section in ["bill_periods", "valuation"]:
        if section not in settings:
            errors.append(f"Missing required section: {section}")

    bill_periods = settings.get("bill_periods", {})
    epoch = bill_periods.get("epoch", {})
    month_index = epoch.get("month_index", 11)
    if not isinstance(month_index, int) or not 0 <= month_index <= 11:
        errors.append(f"bill_periods.epoch.month_index invalid: {month_index} (must be 0-11)")
    if not isinstance(epoch.get("year", 2025), int):
        errors.append(f"bill_periods.epoch.year invalid: {epoch.get('year')}")
    months_ahead = bill_periods.get("months_ahead", 6)
    if not isinstance(months_ahead, int) or months_ahead < 0:
        errors.append(f"bill_periods.months_ahead invalid: {months_ahead} (must be >= 0)")

    valuation = settings.get("valuation", {})
    kg_per_liter = valuation.get("kg_per_liter", 1.03)
    if not isinstance(kg_per_liter, (int, float)) or kg_per_liter <= 0:
        errors.append(f"valuation.kg_per_liter invalid: {kg_per_liter} (must be > 0)")
    formula = valuation.get("snf_formula", {})
    divisor = formula.get("clr_divisor", 4)
    if not isinstance(divisor, (int, float)) or divisor == 0:
        errors.append(f"valuation.snf_formula.clr_divisor invalid: {divisor}")
    for name in ["fat_factor", "constant"]:
        value = formula.get(name, 0.0)
        if not isinstance(value, (int, float)):
            errors.append(f"valuation.snf_formula.{name} invalid: {value}")
    for name, places in valuation.get("precision", {}).items():
        if not isinstance(places, int) or places < 0:
            errors.append(f"valuation.precision.{name} invalid: {places}")

    order = settings.get("reports", {}).get("category_order", [])
    if not isinstance(order, list):
        errors.append("reports.category_order must be a list")
    elif len(set(order)) != len(order):
        errors.append("reports.category_order contains duplicates")

    return errors
