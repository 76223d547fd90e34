"""Daily dose generation: which items are due on a day, and how much."""
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from .calendar import CalendarFrame, DateInput, UTC, elapsed_days
from .schedule import is_due_on_day
from .types import ProtocolItem, ScheduledDose, TitrationRule

logger = logging.getLogger(__name__)


def titrated_dose(base_dose: float, elapsed: int, titration: TitrationRule) -> float:
    """
    Dose after stepwise titration.

    The dose rises by ``amount_mg`` for every full ``interval_days`` elapsed
    since protocol start, then is clamped to ``target_mg`` when one is set.
    """
    if not titration.enabled or elapsed < 0:
        return base_dose
    dose = base_dose + (elapsed // titration.interval_days) * titration.amount_mg
    if titration.target_mg is not None and titration.target_mg > 0 and dose > titration.target_mg:
        dose = titration.target_mg
    return dose


def site_label_for(item: ProtocolItem, elapsed: int) -> Optional[str]:
    """Injection site for a dose, rotating through the item's site list by day."""
    if not item.site_labels or elapsed < 0:
        return None
    return item.site_labels[elapsed % len(item.site_labels)]


def doses_for_day_on(d: date, protocol_start: date, items: Iterable[ProtocolItem]) -> List[ScheduledDose]:
    """``doses_for_day`` for dates already truncated to the caller's frame."""
    elapsed = elapsed_days(d, protocol_start)
    doses = []
    for item in items:
        if not is_due_on_day(d, item, protocol_start):
            continue
        doses.append(ScheduledDose(
            peptide_id=item.peptide_id,
            canonical_name=item.canonical_name,
            dose_mg=titrated_dose(item.dose_mg, elapsed, item.titration),
            time_of_day=item.time_of_day,
            site_label=site_label_for(item, elapsed),
        ))
    return doses


def doses_for_day(
    day: DateInput,
    protocol_start: DateInput,
    items: Iterable[ProtocolItem],
    frame: Optional[CalendarFrame] = None,
) -> List[ScheduledDose]:
    """
    List the doses due on ``day``, in item order.

    Args:
        day: The calendar day to generate for
        protocol_start: Protocol start date, anchor for cycling and titration
        items: The protocol's items
        frame: Calendar reference frame (UTC by default)

    Returns:
        One ScheduledDose per due item. Not sorted; ordering is left to callers.
    """
    frame = frame or UTC
    d = frame.to_date(day)
    doses = doses_for_day_on(d, frame.to_date(protocol_start), items)
    logger.debug(f"{len(doses)} doses due on {d.isoformat()}")
    return doses


def merge_same_peptide(doses: Iterable[ScheduledDose]) -> List[ScheduledDose]:
    """
    Collapse doses of the same peptide on one day into a single dose.

    Amounts are summed and the last non-null site label wins; the first
    dose's name and time are kept.
    """
    merged: Dict[int, ScheduledDose] = {}
    for dose in doses:
        previous = merged.get(dose.peptide_id)
        if previous is None:
            merged[dose.peptide_id] = dose
            continue
        merged[dose.peptide_id] = ScheduledDose(
            peptide_id=previous.peptide_id,
            canonical_name=previous.canonical_name,
            dose_mg=previous.dose_mg + dose.dose_mg,
            time_of_day=previous.time_of_day,
            site_label=dose.site_label if dose.site_label is not None else previous.site_label,
        )
    return list(merged.values())
