# =============================================================================
# DAIRY BILLING ENGINE - COLLECTION VALUATION
# =============================================================================
# Derives computed fields of a milk collection entry from the weighed and
# tested inputs.
#
# FORMULAS:
# - SNF[%]   = CLR / 4 + 0.21 * Fat + 0.36     (only when Fat > 0 and CLR > 0)
# - Qty[L]   = Qty_kg / 1.03                   (only when Qty_kg > 0)
# - Kg_Fat   = Qty_kg * Fat / 100              (only when Qty_kg > 0 and Fat > 0)
# - Kg_SNF   = Qty_kg * SNF / 100              (only when Qty_kg > 0 and SNF > 0)
#
# A derived field that does not apply is None internally and "" in store
# records; it is never 0.
# =============================================================================

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Dict, Optional


@dataclass(frozen=True)
class ValuationConstants:
    """Domain constants of the valuation formulas."""
    kg_per_liter: float = 1.03
    clr_divisor: float = 4.0
    fat_factor: float = 0.21
    snf_constant: float = 0.36
    snf_places: int = 2
    qty_places: int = 2
    kg_fat_places: int = 3
    kg_snf_places: int = 3

    @classmethod
    def from_settings(cls, settings: Dict) -> "ValuationConstants":
        valuation = settings.get("valuation", {})
        formula = valuation.get("snf_formula", {})
        precision = valuation.get("precision", {})
        defaults = cls()
        return cls(
            kg_per_liter=float(valuation.get("kg_per_liter", defaults.kg_per_liter)),
            clr_divisor=float(formula.get("clr_divisor", defaults.clr_divisor)),
            fat_factor=float(formula.get("fat_factor", defaults.fat_factor)),
            snf_constant=float(formula.get("constant", defaults.snf_constant)),
            snf_places=int(precision.get("snf", defaults.snf_places)),
            qty_places=int(precision.get("qty", defaults.qty_places)),
            kg_fat_places=int(precision.get("kg_fat", defaults.kg_fat_places)),
            kg_snf_places=int(precision.get("kg_snf", defaults.kg_snf_places)),
        )


DEFAULT_CONSTANTS = ValuationConstants()


def parse_number(value) -> Optional[float]:
    """Float value of a number or numeric string; None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_number(value) -> float:
    """Numeric coercion for accumulation: anything not numeric counts as 0."""
    number = parse_number(value)
    return 0.0 if number is None else number


def round_half_up(value: float, places: int) -> float:
    """
    Decimal half-up rounding (8.305 -> 8.31).

    The value is first snapped to 10 decimals so binary representation
    error does not decide the tie. Precision grows with the magnitude, so
    large finite values round instead of raising.
    """
    if not math.isfinite(value):
        return value
    snapped = Decimal(str(round(value, 10)))
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as context:
        context.prec = max(context.prec, snapped.adjusted() + places + 2)
        return float(snapped.quantize(quantum, rounding=ROUND_HALF_UP))


def snf_from_clr(fat: float, clr: float, constants: ValuationConstants = DEFAULT_CONSTANTS) -> float:
    """Unrounded SNF from fat and corrected lactometer reading."""
    return clr / constants.clr_divisor + constants.fat_factor * fat + constants.snf_constant


def calculate_snf(fat, clr, constants: ValuationConstants = DEFAULT_CONSTANTS) -> Optional[float]:
    """
    SNF rounded to the configured precision.

    Returns None when either input is not numeric.
    """
    fat_value = parse_number(fat)
    clr_value = parse_number(clr)
    if fat_value is None or clr_value is None:
        return None
    return round_half_up(snf_from_clr(fat_value, clr_value, constants), constants.snf_places)


@dataclass(frozen=True)
class DerivedFields:
    """
    Computed fields of one collection entry.

    snf is only set when it was recomputed from CLR; otherwise the caller's
    own SNF stands. None means "not applicable".
    """
    snf: Optional[float] = None
    qty: Optional[float] = None
    kg_fat: Optional[float] = None
    kg_snf: Optional[float] = None

    @property
    def snf_recomputed(self) -> bool:
        return self.snf is not None


def derive_fields(
    qty_kg,
    fat,
    clr=None,
    snf=None,
    constants: ValuationConstants = DEFAULT_CONSTANTS,
) -> DerivedFields:
    """
    Derive SNF, liters, kg fat and kg SNF from the raw inputs.

    Args:
        qty_kg: Weighed quantity in kg
        fat: Fat percentage
        clr: Corrected lactometer reading (optional)
        snf: Manually entered SNF percentage (optional)
        constants: Formula constants

    Returns:
        DerivedFields; fields that do not apply are None

    Notes:
        - CLR-derived SNF overrides a manual SNF whenever Fat > 0 and CLR > 0
        - Kg SNF uses the unrounded SNF value
        - Non-numeric inputs count as 0
    """
    kgs = to_number(qty_kg)
    fat_pct = to_number(fat)
    clr_value = to_number(clr)
    snf_pct = to_number(snf)

    recomputed = None
    if fat_pct > 0 and clr_value > 0:
        snf_pct = snf_from_clr(fat_pct, clr_value, constants)
        recomputed = round_half_up(snf_pct, constants.snf_places)

    liters = None
    kg_fat = None
    kg_snf = None
    if kgs > 0:
        liters = round_half_up(kgs / constants.kg_per_liter, constants.qty_places)
        if fat_pct > 0:
            kg_fat = round_half_up(kgs * fat_pct / 100, constants.kg_fat_places)
        if snf_pct > 0:
            kg_snf = round_half_up(kgs * snf_pct / 100, constants.kg_snf_places)

    return DerivedFields(snf=recomputed, qty=liters, kg_fat=kg_fat, kg_snf=kg_snf)


def derive_entry_fields(entry: Dict, constants: ValuationConstants = DEFAULT_CONSTANTS) -> Dict:
    """
    Return a copy of a collection record with derived fields filled in.

    Derived fields that do not apply are written as "" (store convention).
    The input record is not modified.
    """
    derived = derive_fields(
        entry.get("qtyKg"),
        entry.get("fat"),
        clr=entry.get("clr"),
        snf=entry.get("snf"),
        constants=constants,
    )
    result = dict(entry)
    if derived.snf_recomputed:
        result["snf"] = derived.snf
    result["qty"] = "" if derived.qty is None else derived.qty
    result["kgFat"] = "" if derived.kg_fat is None else derived.kg_fat
    result["kgSnf"] = "" if derived.kg_snf is None else derived.kg_snf
    return result


# =============================================================================
# END OF VALUATION MODULE
# =============================================================================
