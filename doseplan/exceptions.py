"""Errors raised by the dose planner."""


class DosePlanError(Exception):
    """Base class for dose planner errors."""


class InvalidDateInput(DosePlanError, ValueError):
    """A caller-supplied date could not be read as a calendar day."""

    def __init__(self, value, reason: str = ""):
        self.value = value
        message = f"Invalid date input: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidStatusTransition(DosePlanError, ValueError):
    """A dose status change that the dose lifecycle does not allow."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move dose from {current} to {target}")


class ProtocolNotFound(DosePlanError, LookupError):
    """No protocol with the requested id."""
