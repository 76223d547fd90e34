"""
Calendar-day arithmetic in a single reference frame.

Every due-day computation truncates to a calendar day. Mixing UTC midnight and
local midnight shifts due days by one near timezone boundaries, so callers pick
one frame per call and every date goes through it.
"""
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Union

import pytz

from doseplan.config import get_settings
from doseplan.exceptions import InvalidDateInput

DateInput = Union[date, datetime, str]


class CalendarFrame:
    """Reference frame that decides where a calendar day starts."""

    def __init__(self, timezone=None):
        self.timezone = timezone or pytz.utc

    @classmethod
    def utc(cls) -> "CalendarFrame":
        return cls(pytz.utc)

    @classmethod
    def local(cls, timezone_name: str) -> "CalendarFrame":
        try:
            return cls(pytz.timezone(timezone_name))
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {timezone_name}")

    @property
    def name(self) -> str:
        return self.timezone.zone

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def today(self) -> date:
        return self.now().date()

    def to_date(self, value: DateInput) -> date:
        """
        Read a caller-supplied value as a calendar day in this frame.

        Aware datetimes are converted into the frame first; naive ones are
        taken as already expressed in it.
        """
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(self.timezone)
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return self._parse(value)
        raise InvalidDateInput(value, f"unsupported type {type(value).__name__}")

    def _parse(self, text: str) -> date:
        text = text.strip()
        if len(text) == 10:
            try:
                return date.fromisoformat(text)
            except ValueError as e:
                raise InvalidDateInput(text, str(e))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidDateInput(text, str(e))
        return self.to_date(parsed)

    def __repr__(self) -> str:
        return f"CalendarFrame({self.name})"


UTC = CalendarFrame.utc()


def frame_from_settings() -> CalendarFrame:
    """Build the frame configured by ``calendar_frame`` / ``local_timezone``."""
    settings = get_settings()
    if settings.calendar_frame.lower() == "local":
        return CalendarFrame.local(settings.local_timezone)
    return UTC


def to_iso(d: date) -> str:
    return d.isoformat()


def weekday_index(d: date) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return (d.weekday() + 1) % 7


def elapsed_days(d: date, start: date) -> int:
    return (d - start).days


def date_range(start: date, end: date) -> Iterator[date]:
    """Every calendar day from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def month_grid(day: DateInput, frame: Optional[CalendarFrame] = None) -> List[date]:
    """The 42 days of a Sunday-first six-week grid around ``day``'s month."""
    frame = frame or UTC
    first = frame.to_date(day).replace(day=1)
    start = first - timedelta(days=weekday_index(first))
    return [start + timedelta(days=i) for i in range(42)]
