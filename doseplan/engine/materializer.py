"""
Range materialization: the calendar view for a span of days.

Generated "expected" doses are overlaid with whatever the user has already
recorded, and recorded doses the schedule did not produce are appended.
"""
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .calendar import CalendarFrame, DateInput, UTC, date_range
from .generator import doses_for_day_on, merge_same_peptide
from .types import DoseRecord, DoseRow, DoseStatus, ProtocolItem

logger = logging.getLogger(__name__)

NO_TIME_SENTINEL = "99:99"


def row_sort_key(row: DoseRow) -> Tuple[date, str, str, int]:
    """Date, then time of day (untimed rows last), then name."""
    return (row.date, row.time_of_day or NO_TIME_SENTINEL, row.canonical_name or "", row.peptide_id)


def materialize(
    start: DateInput,
    end: DateInput,
    protocol_start: DateInput,
    items: Iterable[ProtocolItem],
    existing_records: Iterable[DoseRecord] = (),
    frame: Optional[CalendarFrame] = None,
) -> List[DoseRow]:
    """
    Build every dose row between ``start`` and ``end`` inclusive.

    A recorded dose for the same (date, peptide) replaces the generated
    status, amount and site. When several records share that key, the first
    non-PENDING one wins. Recorded doses inside the range that the schedule
    did not generate are returned as extra rows.
    """
    frame = frame or UTC
    first = frame.to_date(start)
    last = frame.to_date(end)
    anchor = frame.to_date(protocol_start)
    items = list(items)
    names = {item.peptide_id: item.canonical_name for item in items}
    times = {item.peptide_id: item.time_of_day for item in items}

    # One record per (date, peptide); a logged or skipped dose beats a PENDING one.
    recorded: Dict[Tuple[date, int], DoseRecord] = {}
    for record in existing_records:
        if not first <= record.date <= last:
            continue
        key = (record.date, record.peptide_id)
        held = recorded.get(key)
        if held is None or (held.status == DoseStatus.PENDING and record.status != DoseStatus.PENDING):
            recorded[key] = record

    rows: List[DoseRow] = []
    generated = set()
    for day in date_range(first, last):
        for dose in merge_same_peptide(doses_for_day_on(day, anchor, items)):
            key = (day, dose.peptide_id)
            generated.add(key)
            record = recorded.get(key)
            if record is None:
                rows.append(DoseRow(
                    date=day,
                    peptide_id=dose.peptide_id,
                    canonical_name=dose.canonical_name,
                    dose_mg=dose.dose_mg,
                    status=DoseStatus.PENDING,
                    time_of_day=dose.time_of_day,
                    site_label=dose.site_label,
                ))
            else:
                rows.append(DoseRow(
                    date=day,
                    peptide_id=dose.peptide_id,
                    canonical_name=dose.canonical_name,
                    dose_mg=record.dose_mg,
                    status=record.status,
                    time_of_day=dose.time_of_day,
                    site_label=record.site_label,
                    protocol_id=record.protocol_id,
                ))

    extra = 0
    for key, record in recorded.items():
        if key in generated:
            continue
        extra += 1
        rows.append(DoseRow(
            date=record.date,
            peptide_id=record.peptide_id,
            canonical_name=record.canonical_name or names.get(record.peptide_id, ""),
            dose_mg=record.dose_mg,
            status=record.status,
            time_of_day=record.time_of_day or times.get(record.peptide_id),
            site_label=record.site_label,
            protocol_id=record.protocol_id,
        ))

    rows.sort(key=row_sort_key)
    logger.debug(
        f"Materialized {len(rows)} rows for {first.isoformat()}..{last.isoformat()} "
        f"({extra} unscheduled)"
    )
    return rows
