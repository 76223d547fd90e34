from datetime import date

from doseplan.engine.forecast import (
    base_freq_per_week,
    effective_freq_per_week,
    forecast_for_item,
    forecast_remaining_doses,
)
from doseplan.engine.types import CustomDays, CycleRule, EveryNDays, ForecastResult, Schedule

TODAY = date(2024, 1, 1)


def test_continuous_dosing():
    result = forecast_remaining_doses(100, 10, "EVERYDAY", None, 0, 0, None, today=TODAY)
    assert result == ForecastResult(remaining_doses=10, reorder_date_iso="2024-01-15")


def test_cycled_dosing_dilutes_frequency():
    result = forecast_remaining_doses(100, 10, "EVERYDAY", None, 1, 1, None, today=TODAY)
    assert result == ForecastResult(remaining_doses=10, reorder_date_iso="2024-01-22")


def test_zero_dose_returns_nulls():
    result = forecast_remaining_doses(100, 0, "EVERYDAY", None, 0, 0, None, today=TODAY)
    assert result.to_dict() == {"remainingDoses": None, "reorderDateISO": None}


def test_zero_inventory_reorders_today():
    result = forecast_remaining_doses(0, 10, Schedule.EVERYDAY, None, 0, 0, None, today=TODAY)
    assert result == ForecastResult(remaining_doses=0, reorder_date_iso="2024-01-01")


def test_no_recurrence_has_no_reorder_date():
    result = forecast_remaining_doses(100, 10, "CUSTOM", [], 0, 0, None, today=TODAY)
    assert result == ForecastResult(remaining_doses=10, reorder_date_iso=None)


def test_base_frequencies():
    assert base_freq_per_week("EVERYDAY") == 7
    assert base_freq_per_week("WEEKDAYS") == 5
    assert base_freq_per_week("EVERY_N_DAYS", every_n_days=2) == 3.5
    assert base_freq_per_week("EVERY_N_DAYS", every_n_days=None) == 0
    assert base_freq_per_week("CUSTOM", custom_days=[1, 3, 5]) == 3
    assert base_freq_per_week("MONTHLY") == 0


def test_effective_frequency():
    assert effective_freq_per_week(7, 0, 0) == 7
    assert effective_freq_per_week(7, 3, 1) == 5.25


def test_forecast_for_item(make_item):
    item = make_item(dose_mg=2, cadence=CustomDays(frozenset({1, 4})), cycle=CycleRule(2, 2))
    # 5 doses at 1 per week -> 5 weeks
    assert forecast_for_item(item, 10, today=TODAY).reorder_date_iso == "2024-02-05"

    weekly = make_item(dose_mg=1, cadence=EveryNDays(7))
    assert forecast_for_item(weekly, 3, today=TODAY).reorder_date_iso == "2024-01-22"


def test_forecast_is_deterministic():
    args = (250, 7.5, "WEEKDAYS", None, 3, 1, None)
    assert forecast_remaining_doses(*args, today=TODAY) == forecast_remaining_doses(*args, today=TODAY)
