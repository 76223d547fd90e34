"""
Schedule predicate: is a calendar date a dose day for a protocol item?

This is the single place cadence is decided. Daily generation, range
materialization and regeneration all call through ``is_due_on``.
"""
from datetime import date
from typing import Optional

from .calendar import CalendarFrame, DateInput, UTC, elapsed_days, weekday_index
from .types import CustomDays, CycleRule, EveryNDays, Everyday, ProtocolItem, Weekdays

WEEKDAY_INDICES = frozenset({1, 2, 3, 4, 5})


def in_cycle_on_phase(elapsed: int, cycle: CycleRule) -> bool:
    """True when ``elapsed`` days since start falls in an "on" stretch of the cycle."""
    if not cycle.enabled:
        return True
    return elapsed % cycle.length_days < cycle.on_weeks * 7


def cadence_matches(d: date, elapsed: int, cadence) -> bool:
    """Apply the schedule kind alone, ignoring cycling."""
    if isinstance(cadence, Everyday):
        return True
    if isinstance(cadence, Weekdays):
        return weekday_index(d) in WEEKDAY_INDICES
    if isinstance(cadence, CustomDays):
        return weekday_index(d) in cadence.days
    if isinstance(cadence, EveryNDays):
        return cadence.n > 0 and elapsed % cadence.n == 0
    # NeverDue and anything unrecognised
    return False


def is_due_on_day(d: date, item: ProtocolItem, protocol_start: date) -> bool:
    """``is_due_on`` for dates already truncated to the caller's frame."""
    elapsed = elapsed_days(d, protocol_start)
    if elapsed < 0:
        return False
    if not in_cycle_on_phase(elapsed, item.cycle):
        return False
    return cadence_matches(d, elapsed, item.cadence)


def is_due_on(
    day: DateInput,
    item: ProtocolItem,
    protocol_start: DateInput,
    frame: Optional[CalendarFrame] = None,
) -> bool:
    """
    Decide whether ``item`` is due on ``day``.

    Both dates are truncated to calendar days in ``frame`` (UTC by default).
    Cycling is applied before the schedule kind. Dates before the protocol
    start are never due, and malformed schedules are never due.
    """
    frame = frame or UTC
    return is_due_on_day(frame.to_date(day), item, frame.to_date(protocol_start))
