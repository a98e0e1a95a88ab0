"""Interest accrual and level-payment calculations.

Accrual is simple daily proration with no compounding inside a period. A date
range is split at every rate change; each piece accrues
``principal * rate / 100 / days_in_year * days`` where the year length is 366
when the piece starts in a leap year and 365 otherwise.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal, getcontext
from typing import Iterator, Tuple

from .timeline import RateTimeline

getcontext().prec = 28  # increase precision for financial calculations

HUNDRED = Decimal(100)
MONTHS_PER_YEAR = Decimal(12)


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def monthly_rate(annual_percent: Decimal) -> Decimal:
    """Convert an annual percent into a monthly fraction (12 -> 0.01)."""
    return annual_percent / MONTHS_PER_YEAR / HUNDRED


def annual_to_daily_rate(annual_percent: Decimal, on_date: date) -> Decimal:
    return annual_percent / HUNDRED / Decimal(days_in_year(on_date.year))


def rate_segments(start: date, end: date, rates: RateTimeline) -> Iterator[Tuple[date, date, Decimal]]:
    """Yield ``(segment_start, segment_end, annual_percent)`` covering
    ``[start, end)``, split at every rate change inside the range."""
    current = start
    while current < end:
        rate = rates.rate_on(current)
        next_change = rates.next_change_after(current)
        segment_end = next_change if next_change is not None and next_change < end else end
        yield current, segment_end, rate
        current = segment_end


def interest_for(principal: Decimal, start: date, end: date, rates: RateTimeline) -> Decimal:
    """Return the interest accrued on ``principal`` over ``[start, end)``.

    The result is kept at full precision; callers round at emission time.

    Raises
    ------
    NoApplicableRate
        If some day in the range has no rate in force.
    """
    total = Decimal("0")
    for seg_start, seg_end, rate in rate_segments(start, end, rates):
        days = (seg_end - seg_start).days
        total += principal * annual_to_daily_rate(rate, seg_start) * days
    return total


def average_rate(start: date, end: date, rates: RateTimeline) -> Decimal:
    """Return the day-weighted annual percent in force over ``[start, end)``.

    An empty range reports the rate in force on ``start``.
    """
    if end <= start:
        return rates.rate_on(start)
    weighted = Decimal("0")
    for seg_start, seg_end, rate in rate_segments(start, end, rates):
        weighted += rate * (seg_end - seg_start).days
    return weighted / Decimal((end - start).days)


def annuity_payment(principal: Decimal, periodic_rate: Decimal, periods: int) -> Decimal:
    """Return the level payment that amortizes ``principal`` over ``periods``.

    The formula is:

        payment = P * i / (1 - (1 + i)^-n)

    When the periodic rate is zero the payment simplifies to ``P / n``.
    """
    if periods <= 0:
        raise ValueError("Number of periods must be positive")
    if periodic_rate == 0:
        return principal / Decimal(periods)
    return principal * periodic_rate / (1 - (1 + periodic_rate) ** -periods)
