"""
Boundary models for rows handed to the planner by its callers.

Storage rows are loosely typed: numbers may be null, schedule-specific columns
may be set on items they don't apply to. These models coerce what they can and
turn each row into the engine's typed values. Irrelevant fields are ignored
rather than rejected.
"""
import logging
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from doseplan.engine.calendar import CalendarFrame, UTC
from doseplan.engine.status import parse_status
from doseplan.engine.types import (
    CustomDays,
    CycleRule,
    DoseRecord,
    EveryNDays,
    Everyday,
    NeverDue,
    Protocol,
    ProtocolItem,
    Schedule,
    TitrationRule,
    Weekdays,
)

logger = logging.getLogger(__name__)


def _whole_number(v) -> Optional[int]:
    """``v`` as an int when it is a whole number, else None."""
    if v is None or v == "" or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or not f.is_integer():
        return None
    return int(f)


def _number(v) -> Optional[float]:
    if v is None or v == "" or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


class ProtocolItemIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    peptide_id: int
    canonical_name: str = ""
    dose_mg_per_administration: float = 0
    schedule: Optional[str] = None
    custom_days: Optional[List[Any]] = None
    every_n_days: Optional[int] = None
    cycle_on_weeks: int = 0
    cycle_off_weeks: int = 0
    titration_interval_days: Optional[int] = None
    titration_amount_mg: Optional[float] = None
    titration_target_mg: Optional[float] = None
    time_of_day: Optional[str] = None
    site_labels: List[str] = Field(default_factory=list)

    # Unusable numbers become None/0 so a bad row fails closed instead of raising.
    @field_validator("every_n_days", "titration_interval_days", "cycle_on_weeks", "cycle_off_weeks", mode="before")
    @classmethod
    def whole_or_none(cls, v, info: ValidationInfo):
        n = _whole_number(v)
        if n is None and v not in (None, ""):
            logger.warning(f"Ignoring non-integer {info.field_name}={v!r}")
        if info.field_name.startswith("cycle_"):
            return n or 0
        return n

    @field_validator("dose_mg_per_administration", "titration_amount_mg", "titration_target_mg", mode="before")
    @classmethod
    def number_or_none(cls, v, info: ValidationInfo):
        f = _number(v)
        if f is None and v not in (None, ""):
            logger.warning(f"Ignoring non-numeric {info.field_name}={v!r}")
        if info.field_name == "dose_mg_per_administration":
            return f or 0
        return f

    @field_validator("custom_days", mode="before")
    @classmethod
    def list_or_none(cls, v):
        return list(v) if isinstance(v, (list, tuple, set, frozenset)) else None

    @field_validator("cycle_on_weeks", "cycle_off_weeks")
    @classmethod
    def non_negative(cls, v):
        return max(0, v)

    @field_validator("schedule", mode="before")
    @classmethod
    def upper_schedule(cls, v):
        return str(v).strip().upper() if v else None

    @field_validator("canonical_name", mode="before")
    @classmethod
    def null_name(cls, v):
        return v or ""

    def cadence(self):
        """The schedule as a tagged value; unusable configurations never come due."""
        try:
            kind = Schedule(self.schedule)
        except ValueError:
            logger.warning(f"Unknown schedule {self.schedule!r} for peptide {self.peptide_id}")
            return NeverDue()

        if kind == Schedule.EVERYDAY:
            return Everyday()
        if kind == Schedule.WEEKDAYS:
            return Weekdays()
        if kind == Schedule.CUSTOM:
            days = set()
            for d in self.custom_days or []:
                try:
                    d = int(d)
                except (TypeError, ValueError):
                    continue
                if 0 <= d <= 6:
                    days.add(d)
            return CustomDays(frozenset(days)) if days else NeverDue()
        # EVERY_N_DAYS
        n = self.every_n_days or 0
        return EveryNDays(n) if n > 0 else NeverDue()

    def to_item(self) -> ProtocolItem:
        return ProtocolItem(
            peptide_id=self.peptide_id,
            canonical_name=self.canonical_name,
            dose_mg=self.dose_mg_per_administration,
            cadence=self.cadence(),
            cycle=CycleRule(self.cycle_on_weeks, self.cycle_off_weeks),
            titration=TitrationRule(
                interval_days=self.titration_interval_days or 0,
                amount_mg=self.titration_amount_mg or 0,
                target_mg=self.titration_target_mg,
            ),
            time_of_day=self.time_of_day or None,
            site_labels=tuple(self.site_labels),
        )


class ProtocolIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    start_date: Any
    end_date: Any = None
    is_active: bool = False
    name: str = ""

    def to_protocol(self, frame: Optional[CalendarFrame] = None) -> Protocol:
        frame = frame or UTC
        return Protocol(
            id=self.id,
            start_date=frame.to_date(self.start_date),
            end_date=frame.to_date(self.end_date) if self.end_date else None,
            is_active=self.is_active,
            name=self.name or "",
        )


class DoseRecordIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    peptide_id: int
    date_for: Any
    status: Optional[str] = None
    dose_mg: Optional[float] = None
    protocol_id: Optional[int] = None
    site_label: Optional[str] = None
    canonical_name: Optional[str] = None
    time_of_day: Optional[str] = None

    def to_record(self, frame: Optional[CalendarFrame] = None) -> DoseRecord:
        frame = frame or UTC
        return DoseRecord(
            peptide_id=self.peptide_id,
            date=frame.to_date(self.date_for),
            status=parse_status(self.status),
            dose_mg=self.dose_mg or 0.0,
            protocol_id=self.protocol_id,
            site_label=self.site_label,
            canonical_name=self.canonical_name,
            time_of_day=self.time_of_day,
        )


def items_from_rows(rows: List[dict]) -> List[ProtocolItem]:
    return [ProtocolItemIn(**row).to_item() for row in rows]


def records_from_rows(rows: List[dict], frame: Optional[CalendarFrame] = None) -> List[DoseRecord]:
    return [DoseRecordIn(**row).to_record(frame) for row in rows]
