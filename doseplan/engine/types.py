"""
Core value types for the dose planner.

Everything here is plain data: the engine takes these in and hands them back
out, and never talks to storage.
"""
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import FrozenSet, List, NamedTuple, Optional, Tuple


class Schedule(str, Enum):
    EVERYDAY = "EVERYDAY"
    WEEKDAYS = "WEEKDAYS"
    CUSTOM = "CUSTOM"
    EVERY_N_DAYS = "EVERY_N_DAYS"


class DoseStatus(str, Enum):
    PENDING = "PENDING"
    TAKEN = "TAKEN"
    SKIPPED = "SKIPPED"


# Cadence variants. Exactly one describes an item's schedule kind.

@dataclass(frozen=True)
class Everyday:
    kind = Schedule.EVERYDAY


@dataclass(frozen=True)
class Weekdays:
    kind = Schedule.WEEKDAYS


@dataclass(frozen=True)
class CustomDays:
    """Due on the listed weekday indices (0=Sunday..6=Saturday)."""
    days: FrozenSet[int] = frozenset()
    kind = Schedule.CUSTOM


@dataclass(frozen=True)
class EveryNDays:
    """Due every ``n`` days counted from protocol start."""
    n: int = 0
    kind = Schedule.EVERY_N_DAYS


@dataclass(frozen=True)
class NeverDue:
    """Unknown or unusable schedule; never due on any date."""
    kind = None


@dataclass(frozen=True)
class CycleRule:
    """Alternate ``on_weeks`` active weeks with ``off_weeks`` inactive weeks."""
    on_weeks: int = 0
    off_weeks: int = 0

    @property
    def enabled(self) -> bool:
        return self.on_weeks + self.off_weeks > 0

    @property
    def length_days(self) -> int:
        return (self.on_weeks + self.off_weeks) * 7


@dataclass(frozen=True)
class TitrationRule:
    """Step the dose up by ``amount_mg`` every ``interval_days``, capped at ``target_mg``."""
    interval_days: int = 0
    amount_mg: float = 0.0
    target_mg: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.interval_days > 0 and self.amount_mg > 0


@dataclass(frozen=True)
class ProtocolItem:
    """One scheduled dosing rule within a protocol."""
    peptide_id: int
    dose_mg: float
    cadence: object = field(default_factory=Everyday)
    canonical_name: str = ""
    cycle: CycleRule = field(default_factory=CycleRule)
    titration: TitrationRule = field(default_factory=TitrationRule)
    time_of_day: Optional[str] = None  # "HH:MM", display/sort only
    site_labels: Tuple[str, ...] = ()

    @property
    def schedule(self) -> Optional[Schedule]:
        return self.cadence.kind


@dataclass(frozen=True)
class Protocol:
    id: int
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    name: str = ""


class DoseKey(NamedTuple):
    """Natural key of a dose row within one user's data."""
    protocol_id: Optional[int]
    peptide_id: int
    date: date


@dataclass(frozen=True)
class ScheduledDose:
    """A dose the schedule says is due on a given day."""
    peptide_id: int
    canonical_name: str
    dose_mg: float
    time_of_day: Optional[str] = None
    site_label: Optional[str] = None


@dataclass(frozen=True)
class DoseRecord:
    """A persisted dose, as loaded by the caller."""
    peptide_id: int
    date: date
    status: DoseStatus = DoseStatus.PENDING
    dose_mg: float = 0.0
    protocol_id: Optional[int] = None
    site_label: Optional[str] = None
    canonical_name: Optional[str] = None
    time_of_day: Optional[str] = None

    @property
    def key(self) -> DoseKey:
        return DoseKey(self.protocol_id, self.peptide_id, self.date)


@dataclass(frozen=True)
class DoseRow:
    """A dose as shown on a calendar or written back to storage."""
    date: date
    peptide_id: int
    canonical_name: str
    dose_mg: float
    status: DoseStatus = DoseStatus.PENDING
    time_of_day: Optional[str] = None
    site_label: Optional[str] = None
    protocol_id: Optional[int] = None

    @property
    def key(self) -> DoseKey:
        return DoseKey(self.protocol_id, self.peptide_id, self.date)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "peptide_id": self.peptide_id,
            "canonical_name": self.canonical_name,
            "dose_mg": self.dose_mg,
            "status": self.status.value,
            "time_of_day": self.time_of_day,
            "site_label": self.site_label,
            "protocol_id": self.protocol_id,
        }


@dataclass(frozen=True)
class ForecastResult:
    remaining_doses: Optional[int] = None
    reorder_date_iso: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "remainingDoses": self.remaining_doses,
            "reorderDateISO": self.reorder_date_iso,
        }


@dataclass(frozen=True)
class RegenerationPlan:
    """Rows to delete and rows to upsert for one protocol."""
    delete_keys: List[DoseKey] = field(default_factory=list)
    insert_rows: List[DoseRow] = field(default_factory=list)
    leftover: int = 0  # Stale rows the caller could not delete

    def with_leftover(self, leftover: int) -> "RegenerationPlan":
        return replace(self, leftover=max(0, int(leftover)))
