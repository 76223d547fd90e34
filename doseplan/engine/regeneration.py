"""
Regeneration planning: recompute a protocol's future PENDING doses.

Only future PENDING rows are ever replaced. Past rows and anything the user
has taken or skipped are left exactly as they are, so dose history survives
protocol edits.
"""
import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional, Set, Tuple

from .calendar import CalendarFrame, DateInput, UTC, date_range
from .generator import doses_for_day_on, merge_same_peptide
from .types import (
    DoseKey,
    DoseRecord,
    DoseRow,
    DoseStatus,
    Protocol,
    ProtocolItem,
    RegenerationPlan,
)

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 365


def generation_window(
    protocol: Protocol,
    today: date,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> Optional[Tuple[date, date]]:
    """
    First and last day (inclusive) to generate doses for, or None if empty.

    Starts at the later of protocol start and tomorrow; ends at the earlier of
    protocol start + ``horizon_days`` and the protocol's end date.
    """
    if protocol.end_date is not None and protocol.end_date < today:
        return None
    tomorrow = today + timedelta(days=1)
    first = max(protocol.start_date, tomorrow)
    last = protocol.start_date + timedelta(days=horizon_days)
    if protocol.end_date is not None:
        last = min(last, protocol.end_date)
    if last < first:
        return None
    return first, last


def stale_keys(protocol: Protocol, records: Iterable[DoseRecord], today: date) -> List[DoseKey]:
    """Keys of this protocol's PENDING records dated tomorrow or later."""
    tomorrow = today + timedelta(days=1)
    keys = []
    for record in records:
        if record.protocol_id != protocol.id:
            continue
        if record.status == DoseStatus.PENDING and record.date >= tomorrow:
            keys.append(record.key)
    return keys


def plan_regeneration(
    protocol: Protocol,
    items: Iterable[ProtocolItem],
    existing_records: Iterable[DoseRecord] = (),
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    today: Optional[DateInput] = None,
    frame: Optional[CalendarFrame] = None,
) -> RegenerationPlan:
    """
    Work out which future rows to delete and which PENDING rows to upsert.

    Args:
        protocol: The protocol being regenerated
        items: Its current items
        existing_records: Dose records already stored for the protocol
        horizon_days: Days after protocol start to generate through
        today: The invocation day (defaults to today in ``frame``)
        frame: Calendar reference frame (UTC by default)

    Returns:
        RegenerationPlan with delete keys and insert rows. Inserts are meant
        to be applied as upserts on (protocol, peptide, date), after deletes.
    """
    frame = frame or UTC
    today = frame.to_date(today) if today is not None else frame.today()
    items = list(items)
    records = list(existing_records)

    delete_keys = stale_keys(protocol, records, today)

    # Keys the user has already acted on; an upsert there would rewrite history.
    protected: Set[DoseKey] = {
        r.key for r in records
        if r.protocol_id == protocol.id and r.status != DoseStatus.PENDING
    }

    window = generation_window(protocol, today, horizon_days)
    insert_rows: List[DoseRow] = []
    if window is not None:
        first, last = window
        for day in date_range(first, last):
            for dose in merge_same_peptide(doses_for_day_on(day, protocol.start_date, items)):
                key = DoseKey(protocol.id, dose.peptide_id, day)
                if key in protected:
                    continue
                insert_rows.append(DoseRow(
                    date=day,
                    peptide_id=dose.peptide_id,
                    canonical_name=dose.canonical_name,
                    dose_mg=dose.dose_mg,
                    status=DoseStatus.PENDING,
                    time_of_day=dose.time_of_day,
                    site_label=dose.site_label,
                    protocol_id=protocol.id,
                ))

    logger.debug(
        f"Protocol {protocol.id}: {len(delete_keys)} stale rows, "
        f"{len(insert_rows)} rows to upsert"
    )
    return RegenerationPlan(delete_keys=delete_keys, insert_rows=insert_rows)


def reconcile_leftover(plan: RegenerationPlan, records_after_delete: Iterable[DoseRecord]) -> RegenerationPlan:
    """
    Record how many stale rows survived the caller's delete pass.

    ``records_after_delete`` is a fresh read of the store after deletes were
    applied. Survivors are counted, not raised; upserting still proceeds.
    """
    targeted = set(plan.delete_keys)
    leftover = sum(
        1 for r in records_after_delete
        if r.key in targeted and r.status == DoseStatus.PENDING
    )
    if leftover:
        logger.warning(f"{leftover} future doses could not be deleted")
    return plan.with_leftover(leftover)
