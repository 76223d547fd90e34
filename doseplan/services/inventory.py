"""
Inventory Service - stock totals and reorder forecasts per peptide.
"""
from datetime import date
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from doseplan.engine import DosePlanner
from doseplan.engine.inventory import (
    CapsuleStock,
    InventorySnapshot,
    VialStock,
    snapshots,
    syringe_units,
)
from doseplan.models import InventoryCapsule, InventoryVial
from doseplan.services.protocols import get_active_protocol_record, to_engine

logger = logging.getLogger(__name__)


def load_inventory(db: Session, user_id: str) -> Dict[int, InventorySnapshot]:
    vials = [
        VialStock(
            peptide_id=v.peptide_id,
            vials=v.vials or 0,
            mg_per_vial=v.mg_per_vial or 0,
            bac_ml=v.bac_ml or 0,
            current_used_mg=v.current_used_mg or 0,
        )
        for v in db.query(InventoryVial).filter(InventoryVial.user_id == user_id).all()
    ]
    capsules = [
        CapsuleStock(
            peptide_id=c.peptide_id,
            bottles=c.bottles or 0,
            caps_per_bottle=c.caps_per_bottle or 0,
            mg_per_cap=c.mg_per_cap or 0,
            current_used_mg=c.current_used_mg or 0,
        )
        for c in db.query(InventoryCapsule).filter(InventoryCapsule.user_id == user_id).all()
    ]
    return snapshots(vials, capsules)


def get_forecasts(
    db: Session,
    user_id: str,
    planner: Optional[DosePlanner] = None,
    today: Optional[date] = None,
) -> List[dict]:
    """
    Remaining doses and reorder date for each item of the active protocol.

    Peptides with no stock on record forecast from zero mg.
    """
    planner = planner or DosePlanner()
    record = get_active_protocol_record(db, user_id)
    if record is None:
        logger.info(f"No active protocol for user {user_id}; no forecasts")
        return []

    _, items = to_engine(db, record, planner.frame)
    inventory = load_inventory(db, user_id)
    vial_rows = {
        v.peptide_id: v
        for v in db.query(InventoryVial).filter(InventoryVial.user_id == user_id).all()
    }

    forecasts = []
    for item in items:
        snapshot = inventory.get(item.peptide_id, InventorySnapshot(item.peptide_id, 0.0))
        result = planner.forecast(snapshot.total_mg, item, today=today)
        vial = vial_rows.get(item.peptide_id)
        forecasts.append({
            "peptide_id": item.peptide_id,
            "canonical_name": item.canonical_name,
            "total_mg": snapshot.total_mg,
            "dose_mg": item.dose_mg,
            "syringe_units": syringe_units(item.dose_mg, vial.mg_per_vial, vial.bac_ml) if vial else None,
            **result.to_dict(),
        })
    return forecasts
