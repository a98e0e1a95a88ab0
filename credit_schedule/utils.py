"""Utility functions for the credit schedule engine.

This module provides helpers for parsing user input into Python data types,
for month arithmetic and due-date placement, for money rounding and for
turning the many spellings of a calculation method into a
``CalculationMethod``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP, getcontext
import calendar
from typing import Optional, Union

from .data_models import CalculationMethod
from .errors import InvalidCalculationMethod, InvalidPaymentDay

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")

_METHOD_ALIASES = {
    "classic_annuity": CalculationMethod.CLASSIC_ANNUITY,
    "annuity": CalculationMethod.CLASSIC_ANNUITY,
    "fixed": CalculationMethod.CLASSIC_ANNUITY,
    "classic_differentiated": CalculationMethod.CLASSIC_DIFFERENTIATED,
    "differentiated": CalculationMethod.CLASSIC_DIFFERENTIATED,
    "decreasing": CalculationMethod.CLASSIC_DIFFERENTIATED,
    "floating_annuity": CalculationMethod.FLOATING_ANNUITY,
    "floating": CalculationMethod.FLOATING_ANNUITY,
    "floating_differentiated": CalculationMethod.FLOATING_DIFFERENTIATED,
}


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date``.

    Raises
    ------
    ValueError
        If the string is not a valid ISO date.
    """
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def payment_date(start_date: date, period: int, payment_day: int) -> date:
    """Return the due date of ``period`` for a credit starting on ``start_date``.

    The target month is ``period`` whole months after the start month. The
    date is placed on ``payment_day`` of that month, or on the month's last
    day when ``payment_day`` does not exist in it (31 in April, 29-31 in a
    short February).
    """
    if not 1 <= payment_day <= 31:
        raise InvalidPaymentDay(f"Payment day must be between 1 and 31; got {payment_day}")
    target = add_months(start_date.replace(day=1), period)
    last_day = calendar.monthrange(target.year, target.month)[1]
    return target.replace(day=min(payment_day, last_day))


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to cents, halves away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def decimal_from_str(value: Union[str, int, float, Decimal]) -> Decimal:
    """Convert a numeric value into a ``Decimal``.

    Strings may contain thousands separators. Floats go through ``str`` so
    that ``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value}")
    if isinstance(value, (int, float)):
        value = str(value)
    try:
        cleaned = value.replace(",", "").strip()
        result = Decimal(cleaned)
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def rate_fraction_to_percent(value: Union[str, float, Decimal]) -> Decimal:
    """Convert a stored rate fraction (``0.155``) into a percent (``15.5``)."""
    return decimal_from_str(value) * 100


def parse_method(value: Optional[Union[str, CalculationMethod]]) -> CalculationMethod:
    """Return the ``CalculationMethod`` named by ``value``.

    Accepts the enum itself, its value in any case, and the historical
    aliases ``fixed``, ``annuity``, ``differentiated``, ``decreasing`` and
    ``floating``. Dashes and spaces are treated as underscores.
    """
    if isinstance(value, CalculationMethod):
        return value
    if value is None:
        raise InvalidCalculationMethod("Calculation method is required")
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return _METHOD_ALIASES[key]
    except KeyError:
        raise InvalidCalculationMethod(f"Unknown calculation method: {value}") from None
