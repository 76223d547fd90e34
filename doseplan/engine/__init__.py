from typing import Iterable, List, Optional

from doseplan.config import get_settings
from .calendar import CalendarFrame, DateInput, frame_from_settings, month_grid
from .forecast import forecast_for_item, forecast_remaining_doses
from .generator import doses_for_day
from .materializer import materialize
from .regeneration import plan_regeneration, reconcile_leftover
from .schedule import is_due_on
from .types import (
    CustomDays,
    CycleRule,
    DoseKey,
    DoseRecord,
    DoseRow,
    DoseStatus,
    EveryNDays,
    Everyday,
    ForecastResult,
    NeverDue,
    Protocol,
    ProtocolItem,
    RegenerationPlan,
    Schedule,
    ScheduledDose,
    TitrationRule,
    Weekdays,
)


class DosePlanner:
    """Scheduling core bound to one calendar frame and regeneration horizon."""

    def __init__(self, frame: Optional[CalendarFrame] = None, horizon_days: Optional[int] = None):
        settings = get_settings()
        self.frame = frame or frame_from_settings()
        if horizon_days is None:
            horizon_days = settings.regeneration_horizon_days
        self.horizon_days = horizon_days

    def today(self):
        return self.frame.today()

    def is_due_on(self, day: DateInput, item: ProtocolItem, protocol_start: DateInput) -> bool:
        return is_due_on(day, item, protocol_start, frame=self.frame)

    def doses_for_day(self, day: DateInput, protocol_start: DateInput, items: Iterable[ProtocolItem]) -> List[ScheduledDose]:
        return doses_for_day(day, protocol_start, items, frame=self.frame)

    def forecast(self, total_mg: float, item: ProtocolItem, today: Optional[DateInput] = None) -> ForecastResult:
        return forecast_for_item(item, total_mg, today=today, frame=self.frame)

    def materialize(
        self,
        start: DateInput,
        end: DateInput,
        protocol_start: DateInput,
        items: Iterable[ProtocolItem],
        existing_records: Iterable[DoseRecord] = (),
    ) -> List[DoseRow]:
        return materialize(start, end, protocol_start, items, existing_records, frame=self.frame)

    def month(self, day: DateInput, protocol_start: DateInput, items, existing_records=()) -> List[DoseRow]:
        """Materialize the six-week calendar grid containing ``day``."""
        grid = month_grid(day, frame=self.frame)
        return self.materialize(grid[0], grid[-1], protocol_start, items, existing_records)

    def plan_regeneration(
        self,
        protocol: Protocol,
        items: Iterable[ProtocolItem],
        existing_records: Iterable[DoseRecord] = (),
        today: Optional[DateInput] = None,
    ) -> RegenerationPlan:
        return plan_regeneration(
            protocol,
            items,
            existing_records,
            horizon_days=self.horizon_days,
            today=today,
            frame=self.frame,
        )
