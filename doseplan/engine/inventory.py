"""
Inventory arithmetic: total mg on hand and syringe dosing units.

Stock bookkeeping lives with the caller. These helpers only turn stock
figures into the scalars the forecast needs.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

U100_UNITS_PER_ML = 100


@dataclass(frozen=True)
class VialStock:
    peptide_id: int
    vials: float = 0
    mg_per_vial: float = 0
    bac_ml: float = 0  # Bacteriostatic water used to reconstitute
    current_used_mg: float = 0


@dataclass(frozen=True)
class CapsuleStock:
    peptide_id: int
    bottles: float = 0
    caps_per_bottle: float = 0
    mg_per_cap: float = 0
    current_used_mg: float = 0


@dataclass(frozen=True)
class InventorySnapshot:
    peptide_id: int
    total_mg: float = 0


def vial_total_mg(stock: VialStock) -> float:
    return max(0.0, (stock.vials or 0) * (stock.mg_per_vial or 0) - (stock.current_used_mg or 0))


def capsule_total_mg(stock: CapsuleStock) -> float:
    total = (stock.bottles or 0) * (stock.caps_per_bottle or 0) * (stock.mg_per_cap or 0)
    return max(0.0, total - (stock.current_used_mg or 0))


def snapshots(
    vials: Iterable[VialStock] = (),
    capsules: Iterable[CapsuleStock] = (),
) -> Dict[int, InventorySnapshot]:
    """Sum vial and capsule stock into one snapshot per peptide."""
    totals: Dict[int, float] = {}
    for stock in vials:
        totals[stock.peptide_id] = totals.get(stock.peptide_id, 0.0) + vial_total_mg(stock)
    for stock in capsules:
        totals[stock.peptide_id] = totals.get(stock.peptide_id, 0.0) + capsule_total_mg(stock)
    return {pid: InventorySnapshot(peptide_id=pid, total_mg=mg) for pid, mg in totals.items()}


def concentration_mg_per_ml(mg_per_vial: Optional[float], bac_ml: Optional[float]) -> Optional[float]:
    mg = float(mg_per_vial or 0)
    ml = float(bac_ml or 0)
    if mg <= 0 or ml <= 0:
        return None
    return mg / ml


def syringe_units(
    dose_mg: Optional[float],
    mg_per_vial: Optional[float],
    bac_ml: Optional[float],
) -> Optional[float]:
    """U-100 insulin syringe units for ``dose_mg`` from a reconstituted vial."""
    concentration = concentration_mg_per_ml(mg_per_vial, bac_ml)
    if not dose_mg or dose_mg <= 0 or concentration is None:
        return None
    return max(0.0, dose_mg / concentration * U100_UNITS_PER_ML)
