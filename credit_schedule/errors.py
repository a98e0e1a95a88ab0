"""Errors raised by the schedule engine.

All of them derive from ``ValueError`` so that callers which only guard
against bad input keep working. Every validation failure is raised before the
first period is produced; the engine never returns a partial schedule.
"""

from datetime import date
from typing import Optional


class ScheduleError(ValueError):
    """Base class for schedule engine errors."""


class NoApplicableRate(ScheduleError):
    """No rate entry is in force at the date being evaluated."""

    def __init__(self, on_date: Optional[date] = None) -> None:
        self.on_date = on_date
        if on_date is None:
            message = "No interest rate entries supplied"
        else:
            message = f"No interest rate in force on {on_date.isoformat()}"
        super().__init__(message)


class InvalidTermOrPrincipal(ScheduleError):
    pass


class InvalidPaymentDay(ScheduleError):
    pass


class InvalidDeferment(ScheduleError):
    pass


class InvalidCalculationMethod(ScheduleError):
    pass


class InvalidPaymentHistory(ScheduleError):
    pass
