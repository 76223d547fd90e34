"""
Dose views and status changes for a user's active protocol.
"""
from datetime import date
from typing import List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from doseplan.engine import DosePlanner
from doseplan.engine.calendar import DateInput
from doseplan.engine.status import parse_status, transition
from doseplan.engine.types import DoseRecord, DoseRow, DoseStatus
from doseplan.models import Dose
from doseplan.schemas import DoseRecordIn
from doseplan.services.protocols import get_active_protocol_record, to_engine

logger = logging.getLogger(__name__)


def load_records_in_range(
    db: Session,
    user_id: str,
    first: date,
    last: date,
    protocol_id: Optional[int] = None,
) -> List[DoseRecord]:
    """Stored doses in the range; with ``protocol_id``, only that protocol's and ad-hoc ones."""
    query = db.query(Dose).filter(
        Dose.user_id == user_id,
        Dose.date_for >= first,
        Dose.date_for <= last,
    )
    if protocol_id is not None:
        query = query.filter(or_(Dose.protocol_id == protocol_id, Dose.protocol_id.is_(None)))
    rows = query.order_by(Dose.date_for, Dose.id).all()
    return [DoseRecordIn(**row.to_dict()).to_record() for row in rows]


def get_doses_for_range(
    db: Session,
    user_id: str,
    start: DateInput,
    end: DateInput,
    planner: Optional[DosePlanner] = None,
) -> List[DoseRow]:
    """
    Calendar rows for the inclusive range.

    Uses the active protocol's schedule overlaid with that protocol's stored
    doses and ad-hoc ones. With no active protocol, only stored doses are
    returned.
    """
    planner = planner or DosePlanner()
    first = planner.frame.to_date(start)
    last = planner.frame.to_date(end)

    record = get_active_protocol_record(db, user_id)
    if record is None:
        records = load_records_in_range(db, user_id, first, last)
        return planner.materialize(first, last, first, [], records)

    records = load_records_in_range(db, user_id, first, last, protocol_id=record.id)
    protocol, items = to_engine(db, record, planner.frame)
    rows = planner.materialize(first, last, protocol.start_date, items, records)
    if protocol.end_date is not None:
        # Expected doses stop at the protocol's end; stored doses still show.
        stored = {(r.date, r.peptide_id) for r in records}
        rows = [
            r for r in rows
            if r.date <= protocol.end_date or (r.date, r.peptide_id) in stored
        ]
    return rows


def get_today_doses(db: Session, user_id: str, planner: Optional[DosePlanner] = None) -> List[DoseRow]:
    planner = planner or DosePlanner()
    today = planner.today()
    return get_doses_for_range(db, user_id, today, today, planner)


def set_dose_status(
    db: Session,
    user_id: str,
    protocol_id: Optional[int],
    peptide_id: int,
    day: DateInput,
    status,
    dose_mg: Optional[float] = None,
    site_label: Optional[str] = None,
    planner: Optional[DosePlanner] = None,
) -> Dose:
    """
    Move a dose to ``status``, creating the row if the dose was only scheduled.

    ``dose_mg`` is captured when the row is created so later protocol edits do
    not rewrite it. Raises InvalidStatusTransition for disallowed moves.
    """
    planner = planner or DosePlanner()
    day = planner.frame.to_date(day)
    target = parse_status(status)

    dose = db.query(Dose).filter(
        Dose.user_id == user_id,
        Dose.protocol_id == protocol_id,
        Dose.peptide_id == peptide_id,
        Dose.date_for == day,
    ).first()

    if dose is None:
        transition(DoseStatus.PENDING, target)
        dose = Dose(
            user_id=user_id,
            protocol_id=protocol_id,
            peptide_id=peptide_id,
            date_for=day,
            status=target.value,
            dose_mg=dose_mg or 0,
            site_label=site_label,
        )
        db.add(dose)
    else:
        dose.status = transition(dose.status, target).value
        if site_label is not None:
            dose.site_label = site_label

    db.commit()
    db.refresh(dose)
    logger.info(f"Dose {peptide_id} on {day.isoformat()} for user {user_id} -> {target.value}")
    return dose


def log_dose(db: Session, user_id: str, protocol_id: Optional[int], peptide_id: int, day: DateInput, dose_mg: float, **kwargs) -> Dose:
    return set_dose_status(db, user_id, protocol_id, peptide_id, day, DoseStatus.TAKEN, dose_mg=dose_mg, **kwargs)


def skip_dose(db: Session, user_id: str, protocol_id: Optional[int], peptide_id: int, day: DateInput, dose_mg: float, **kwargs) -> Dose:
    return set_dose_status(db, user_id, protocol_id, peptide_id, day, DoseStatus.SKIPPED, dose_mg=dose_mg, **kwargs)


def reset_dose(db: Session, user_id: str, protocol_id: Optional[int], peptide_id: int, day: DateInput, **kwargs) -> Dose:
    return set_dose_status(db, user_id, protocol_id, peptide_id, day, DoseStatus.PENDING, **kwargs)
