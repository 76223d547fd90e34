from datetime import date, datetime, timedelta

import pytest
import pytz

from doseplan.engine.calendar import CalendarFrame
from doseplan.engine.schedule import is_due_on
from doseplan.engine.types import CustomDays, CycleRule, EveryNDays, NeverDue, Weekdays

START = date(2024, 1, 1)


def test_weekdays_due_monday_to_friday_only(make_item):
    item = make_item(cadence=Weekdays())
    for start in (date(2023, 12, 27), START, date(2024, 1, 6)):
        for offset in range(14):
            d = date(2024, 1, 8) + timedelta(days=offset)
            assert is_due_on(d, item, start) == (d.weekday() < 5)


def test_every_n_days_interval(make_item):
    item = make_item(cadence=EveryNDays(2))
    for day in ("2024-01-01", "2024-01-03", "2024-01-05", "2024-01-07"):
        assert is_due_on(day, item, "2024-01-01")
    for day in ("2024-01-02", "2024-01-04", "2024-01-06"):
        assert not is_due_on(day, item, "2024-01-01")


def test_custom_days_use_sunday_zero(make_item):
    item = make_item(cadence=CustomDays(frozenset({0, 3})))  # Sunday, Wednesday
    assert is_due_on(date(2024, 1, 7), item, START)
    assert is_due_on(date(2024, 1, 3), item, START)
    assert not is_due_on(date(2024, 1, 4), item, START)


def test_cycle_one_on_one_off(make_item):
    item = make_item(cycle=CycleRule(on_weeks=1, off_weeks=1))
    for offset in range(28):
        d = START + timedelta(days=offset)
        assert is_due_on(d, item, START) == (offset % 14 < 7)


def test_cycle_applies_before_schedule_kind(make_item):
    item = make_item(cadence=EveryNDays(2), cycle=CycleRule(on_weeks=1, off_weeks=1))
    assert is_due_on(date(2024, 1, 7), item, START)  # day 6
    assert not is_due_on(date(2024, 1, 9), item, START)  # day 8, off week
    assert is_due_on(date(2024, 1, 15), item, START)  # day 14, back on


def test_before_protocol_start_is_never_due(make_item):
    assert not is_due_on(date(2023, 12, 31), make_item(), START)


@pytest.mark.parametrize("cadence", [NeverDue(), EveryNDays(0), CustomDays(frozenset())])
def test_malformed_schedules_fail_closed(make_item, cadence):
    item = make_item(cadence=cadence)
    assert not any(is_due_on(START + timedelta(days=i), item, START) for i in range(14))


def test_local_frame_truncates_aware_datetimes(make_item):
    item = make_item(cadence=Weekdays())
    # 02:00 UTC Saturday is still Friday evening in New York.
    moment = datetime(2024, 1, 6, 2, 0, tzinfo=pytz.utc)
    assert not is_due_on(moment, item, START)
    assert is_due_on(moment, item, START, frame=CalendarFrame.local("America/New_York"))


def test_is_due_on_is_deterministic(make_item):
    item = make_item(cadence=EveryNDays(3), cycle=CycleRule(2, 1))
    days = [START + timedelta(days=i) for i in range(60)]
    assert [is_due_on(d, item, START) for d in days] == [is_due_on(d, item, START) for d in days]
