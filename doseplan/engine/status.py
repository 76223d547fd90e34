"""Dose status lifecycle."""
from typing import Dict, FrozenSet, Union

from doseplan.exceptions import InvalidStatusTransition
from .types import DoseStatus

# TAKEN and SKIPPED only reach each other by way of PENDING.
ALLOWED_TRANSITIONS: Dict[DoseStatus, FrozenSet[DoseStatus]] = {
    DoseStatus.PENDING: frozenset({DoseStatus.TAKEN, DoseStatus.SKIPPED}),
    DoseStatus.TAKEN: frozenset({DoseStatus.PENDING}),
    DoseStatus.SKIPPED: frozenset({DoseStatus.PENDING}),
}


def parse_status(value: Union[DoseStatus, str, None]) -> DoseStatus:
    """Read a stored status. Missing means PENDING; the legacy LOGGED means TAKEN."""
    if isinstance(value, DoseStatus):
        return value
    if not value:
        return DoseStatus.PENDING
    value = str(value).upper()
    if value == "LOGGED":
        return DoseStatus.TAKEN
    return DoseStatus(value)


def can_transition(current: DoseStatus, target: DoseStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(current: Union[DoseStatus, str], target: Union[DoseStatus, str]) -> DoseStatus:
    """Return ``target`` if the move from ``current`` is allowed, else raise."""
    current = parse_status(current)
    target = parse_status(target)
    if not can_transition(current, target):
        raise InvalidStatusTransition(current.value, target.value)
    return target
