"""
Inventory forecasting: how many doses are left and when to reorder.

The on/off cycle is folded in as an average duty cycle rather than simulated
day by day, so the reorder date is an approximation. Regeneration, by
contrast, walks the real cycle calendar.
"""
import math
from datetime import date, timedelta
from typing import Iterable, Optional, Union

from .calendar import CalendarFrame, DateInput, UTC, to_iso
from .types import (
    CustomDays,
    EveryNDays,
    ForecastResult,
    ProtocolItem,
    Schedule,
)


def _as_schedule(schedule: Union[Schedule, str, None]) -> Optional[Schedule]:
    if isinstance(schedule, Schedule):
        return schedule
    try:
        return Schedule(schedule)
    except ValueError:
        return None


def base_freq_per_week(
    schedule: Union[Schedule, str],
    custom_days: Optional[Iterable[int]] = None,
    every_n_days: Optional[int] = None,
) -> float:
    """Doses per week implied by the schedule kind alone."""
    schedule = _as_schedule(schedule)
    if schedule == Schedule.EVERYDAY:
        return 7
    if schedule == Schedule.WEEKDAYS:
        return 5
    if schedule == Schedule.EVERY_N_DAYS:
        return 7 / every_n_days if every_n_days and every_n_days > 0 else 0
    if schedule == Schedule.CUSTOM:
        return len(set(custom_days)) if custom_days else 0
    return 0


def effective_freq_per_week(base: float, on_weeks: int, off_weeks: int) -> float:
    """Dilute a weekly frequency by the fraction of weeks the cycle is on."""
    on_weeks = on_weeks or 0
    off_weeks = off_weeks or 0
    if not on_weeks and not off_weeks:
        return base
    total = on_weeks + off_weeks
    return base * (on_weeks / total) if total > 0 else base


def forecast_remaining_doses(
    total_mg: float,
    dose_mg: float,
    schedule: Union[Schedule, str],
    custom_days: Optional[Iterable[int]] = None,
    cycle_on_weeks: int = 0,
    cycle_off_weeks: int = 0,
    every_n_days: Optional[int] = None,
    today: Optional[DateInput] = None,
    frame: Optional[CalendarFrame] = None,
) -> ForecastResult:
    """
    Forecast remaining doses and a reorder date from stock and cadence.

    Args:
        total_mg: Total mg on hand for the peptide
        dose_mg: mg per administration
        schedule: Schedule kind
        custom_days: Weekday indices for CUSTOM
        cycle_on_weeks: Active weeks per cycle (0 with 0 off means no cycling)
        cycle_off_weeks: Inactive weeks per cycle
        every_n_days: Interval for EVERY_N_DAYS
        today: Day the projection starts from (defaults to today in ``frame``)
        frame: Calendar reference frame (UTC by default)

    Returns:
        ForecastResult. Both fields are None for a non-positive dose; the date
        is None when the cadence never recurs.
    """
    if dose_mg is None or dose_mg <= 0:
        return ForecastResult(remaining_doses=None, reorder_date_iso=None)

    remaining = max(0, math.floor((total_mg or 0) / dose_mg))
    base = base_freq_per_week(schedule, custom_days, every_n_days)
    effective = effective_freq_per_week(base, cycle_on_weeks, cycle_off_weeks)
    if effective <= 0:
        return ForecastResult(remaining_doses=remaining, reorder_date_iso=None)

    frame = frame or UTC
    start = frame.to_date(today) if today is not None else frame.today()
    weeks_until_empty = math.ceil(remaining / effective)
    reorder: date = start + timedelta(days=weeks_until_empty * 7)
    return ForecastResult(remaining_doses=remaining, reorder_date_iso=to_iso(reorder))


def forecast_for_item(
    item: ProtocolItem,
    total_mg: float,
    today: Optional[DateInput] = None,
    frame: Optional[CalendarFrame] = None,
) -> ForecastResult:
    """Forecast using a protocol item's nominal dose and cadence."""
    custom_days = item.cadence.days if isinstance(item.cadence, CustomDays) else None
    every_n_days = item.cadence.n if isinstance(item.cadence, EveryNDays) else None
    return forecast_remaining_doses(
        total_mg,
        item.dose_mg,
        item.schedule,
        custom_days=custom_days,
        cycle_on_weeks=item.cycle.on_weeks,
        cycle_off_weeks=item.cycle.off_weeks,
        every_n_days=every_n_days,
        today=today,
        frame=frame,
    )
