"""
Protocol loading and editing against the database.

Turns ORM rows into the engine's typed values. The engine itself never sees a
session.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from doseplan.engine.calendar import CalendarFrame, UTC
from doseplan.engine.types import Protocol, ProtocolItem
from doseplan.exceptions import ProtocolNotFound
from doseplan.models import InjectionSite, ProtocolItemRecord, ProtocolRecord
from doseplan.schemas import ProtocolIn, ProtocolItemIn

logger = logging.getLogger(__name__)


def get_protocol_record(db: Session, user_id: str, protocol_id: int) -> ProtocolRecord:
    record = db.query(ProtocolRecord).filter(
        ProtocolRecord.id == protocol_id,
        ProtocolRecord.user_id == user_id,
    ).first()
    if record is None:
        raise ProtocolNotFound(f"Protocol {protocol_id} not found")
    return record


def get_active_protocol_record(db: Session, user_id: str) -> Optional[ProtocolRecord]:
    return db.query(ProtocolRecord).filter(
        ProtocolRecord.user_id == user_id,
        ProtocolRecord.is_active == True,
    ).first()


def load_site_lists(db: Session, list_ids: Iterable[int]) -> Dict[int, List[str]]:
    """Site names per list, in rotation order."""
    list_ids = sorted({i for i in list_ids if i})
    if not list_ids:
        return {}
    rows = db.query(InjectionSite).filter(
        InjectionSite.list_id.in_(list_ids)
    ).order_by(InjectionSite.list_id, InjectionSite.position, InjectionSite.id).all()

    sites: Dict[int, List[str]] = {}
    for row in rows:
        sites.setdefault(row.list_id, []).append(row.name)
    return sites


def to_engine(
    db: Session,
    record: ProtocolRecord,
    frame: Optional[CalendarFrame] = None,
) -> Tuple[Protocol, List[ProtocolItem]]:
    """Convert a protocol row and its items into engine values."""
    protocol = ProtocolIn(**record.to_dict()).to_protocol(frame or UTC)
    sites = load_site_lists(db, (it.site_list_id for it in record.items))

    items = []
    for it in record.items:
        row = it.to_dict()
        row["site_labels"] = sites.get(it.site_list_id, []) if it.site_list_id else []
        items.append(ProtocolItemIn(**row).to_item())
    return protocol, items


def load_protocol(
    db: Session,
    user_id: str,
    protocol_id: int,
    frame: Optional[CalendarFrame] = None,
) -> Tuple[Protocol, List[ProtocolItem]]:
    return to_engine(db, get_protocol_record(db, user_id, protocol_id), frame)


def replace_items(db: Session, user_id: str, protocol_id: int, items: List[dict]) -> ProtocolRecord:
    """
    Replace a protocol's items wholesale.

    Items are not diffed: every existing item is deleted and the new list is
    inserted. Callers regenerate future doses afterwards.
    """
    record = get_protocol_record(db, user_id, protocol_id)
    record.items.clear()
    db.flush()
    for row in items:
        parsed = ProtocolItemIn(**row)
        record.items.append(ProtocolItemRecord(
            peptide_id=parsed.peptide_id,
            dose_mg_per_administration=parsed.dose_mg_per_administration,
            schedule=parsed.schedule or "EVERYDAY",
            custom_days=parsed.custom_days,
            every_n_days=parsed.every_n_days,
            cycle_on_weeks=parsed.cycle_on_weeks,
            cycle_off_weeks=parsed.cycle_off_weeks,
            titration_interval_days=parsed.titration_interval_days,
            titration_amount_mg=parsed.titration_amount_mg,
            titration_target_mg=parsed.titration_target_mg,
            time_of_day=parsed.time_of_day,
            site_list_id=row.get("site_list_id"),
        ))
    db.commit()
    db.refresh(record)
    logger.info(f"Replaced items for protocol {protocol_id}: {len(record.items)} items")
    return record


def activate_protocol(
    db: Session,
    user_id: str,
    protocol_id: int,
    start_date: Optional[date] = None,
) -> ProtocolRecord:
    """Make ``protocol_id`` the user's only active protocol, optionally restarting it."""
    record = get_protocol_record(db, user_id, protocol_id)
    db.query(ProtocolRecord).filter(
        ProtocolRecord.user_id == user_id,
        ProtocolRecord.id != protocol_id,
    ).update({ProtocolRecord.is_active: False}, synchronize_session=False)
    record.is_active = True
    if start_date is not None:
        record.start_date = start_date
    db.commit()
    db.refresh(record)
    logger.info(f"Activated protocol {protocol_id} for user {user_id}")
    return record
