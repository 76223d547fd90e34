"""
Regeneration Service - applies regeneration plans to the dose table.

Deletes run before upserts, so two overlapping regenerations for the same
protocol converge on the same rows instead of duplicating them. Deletion
failures are reported as a leftover count rather than raised.
"""
from datetime import date, timedelta
from typing import List, Optional
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from doseplan.config import get_settings
from doseplan.engine import DosePlanner
from doseplan.engine.types import DoseKey, DoseRecord, DoseRow, DoseStatus, RegenerationPlan
from doseplan.engine.regeneration import reconcile_leftover
from doseplan.models import Dose
from doseplan.schemas import DoseRecordIn
from doseplan.services.protocols import activate_protocol, get_protocol_record, to_engine

logger = logging.getLogger(__name__)


def load_dose_records(db: Session, user_id: str, protocol_id: int) -> List[DoseRecord]:
    rows = db.query(Dose).filter(
        Dose.user_id == user_id,
        Dose.protocol_id == protocol_id,
    ).all()
    return [DoseRecordIn(**row.to_dict()).to_record() for row in rows]


def delete_stale(db: Session, user_id: str, keys: List[DoseKey], today: date) -> int:
    """Delete the planned keys, re-checking PENDING and future so history is never hit."""
    if not keys:
        return 0
    tomorrow = today + timedelta(days=1)
    targeted = set(keys)
    protocol_ids = {k.protocol_id for k in keys}
    candidates = db.query(Dose.id, Dose.protocol_id, Dose.peptide_id, Dose.date_for).filter(
        Dose.user_id == user_id,
        Dose.protocol_id.in_(protocol_ids),
        Dose.status == DoseStatus.PENDING.value,
        Dose.date_for >= tomorrow,
    ).all()
    ids = [
        row.id for row in candidates
        if DoseKey(row.protocol_id, row.peptide_id, row.date_for) in targeted
    ]

    deleted = 0
    chunk_size = get_settings().upsert_chunk_size
    for i in range(0, len(ids), chunk_size):
        deleted += db.query(Dose).filter(
            Dose.id.in_(ids[i:i + chunk_size]),
            Dose.status == DoseStatus.PENDING.value,
        ).delete(synchronize_session=False)
    db.commit()
    return deleted


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


def upsert_rows(db: Session, user_id: str, rows: List[DoseRow]) -> int:
    """
    Upsert PENDING rows keyed on (user, protocol, peptide, date).

    A conflicting row is only updated while it is still PENDING; a dose the
    user has logged in the meantime keeps its status and amount.
    """
    if not rows:
        return 0
    insert = _insert_for(db)
    doses = Dose.__table__
    stmt = insert(doses)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "protocol_id", "peptide_id", "date_for"],
        set_={
            "dose_mg": stmt.excluded.dose_mg,
            "site_label": stmt.excluded.site_label,
        },
        where=doses.c.status == DoseStatus.PENDING.value,
    )
    chunk_size = get_settings().upsert_chunk_size
    for i in range(0, len(rows), chunk_size):
        values = [
            {
                "user_id": user_id,
                "protocol_id": row.protocol_id,
                "peptide_id": row.peptide_id,
                "date_for": row.date,
                "status": DoseStatus.PENDING.value,
                "dose_mg": row.dose_mg,
                "site_label": row.site_label,
            }
            for row in rows[i:i + chunk_size]
        ]
        # Core executemany inside the session transaction
        db.connection().execute(stmt, values)
    db.commit()
    return len(rows)


def apply_plan(
    db: Session,
    user_id: str,
    protocol_id: int,
    plan: RegenerationPlan,
    today: date,
) -> RegenerationPlan:
    """Delete stale rows, count survivors, then upsert the new rows."""
    try:
        deleted = delete_stale(db, user_id, plan.delete_keys, today)
        logger.info(f"Deleted {deleted} future doses for protocol {protocol_id}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to delete future doses for protocol {protocol_id}: {e}")

    plan = reconcile_leftover(plan, load_dose_records(db, user_id, protocol_id))

    try:
        upsert_rows(db, user_id, plan.insert_rows)
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info(
        f"Regenerated protocol {protocol_id}: {len(plan.insert_rows)} doses upserted"
        + (f", {plan.leftover} leftover" if plan.leftover else "")
    )
    return plan


def regenerate_protocol(
    db: Session,
    user_id: str,
    protocol_id: int,
    planner: Optional[DosePlanner] = None,
    today: Optional[date] = None,
) -> RegenerationPlan:
    """Recompute and store a protocol's future PENDING doses."""
    planner = planner or DosePlanner()
    today = today or planner.today()
    record = get_protocol_record(db, user_id, protocol_id)
    protocol, items = to_engine(db, record, planner.frame)
    existing = load_dose_records(db, user_id, protocol_id)
    plan = planner.plan_regeneration(protocol, items, existing, today=today)
    return apply_plan(db, user_id, protocol_id, plan, today)


def activate_and_regenerate(
    db: Session,
    user_id: str,
    protocol_id: int,
    planner: Optional[DosePlanner] = None,
    today: Optional[date] = None,
) -> RegenerationPlan:
    """Activate a protocol starting today and rebuild its schedule."""
    planner = planner or DosePlanner()
    today = today or planner.today()
    activate_protocol(db, user_id, protocol_id, start_date=today)
    return regenerate_protocol(db, user_id, protocol_id, planner=planner, today=today)
