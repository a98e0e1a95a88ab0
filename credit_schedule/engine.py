"""Core calculation engine for credit payment schedules.

This module builds amortization schedules for the four calculation methods:
classic annuity and differentiated schedules accrue at a fixed monthly rate,
while floating schedules accrue interest day by day against the rate
timeline and apply principal adjustments as they fall due. It can also
regenerate the unpaid remainder of a schedule from a checkpoint date given
the payment history.

Every function here is a pure function of its arguments: nothing is read,
stored or logged.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal, getcontext
from typing import Dict, Iterable, List, Optional, Union

from .data_models import (
    AdjustmentEntry,
    CalculationMethod,
    Credit,
    PaymentRecord,
    PaymentStatus,
    RateEntry,
    ScheduleItem,
)
from .errors import (
    InvalidCalculationMethod,
    InvalidDeferment,
    InvalidPaymentDay,
    InvalidPaymentHistory,
    InvalidTermOrPrincipal,
    NoApplicableRate,
)
from .interest import annuity_payment, average_rate, interest_for, monthly_rate
from .timeline import AdjustmentTimeline, RateTimeline
from .utils import payment_date, round_money

getcontext().prec = 28  # increase precision for financial calculations

ZERO = Decimal("0")

Rates = Union[RateTimeline, Iterable[RateEntry]]
Adjustments = Union[AdjustmentTimeline, Iterable[AdjustmentEntry]]


def _rate_timeline(rates: Rates) -> RateTimeline:
    return rates if isinstance(rates, RateTimeline) else RateTimeline(rates)


def _adjustment_timeline(adjustments: Optional[Adjustments]) -> AdjustmentTimeline:
    if isinstance(adjustments, AdjustmentTimeline):
        return adjustments
    return AdjustmentTimeline(adjustments or ())


def validate_credit(credit: Credit, rates: RateTimeline) -> None:
    """Reject terms that cannot produce a schedule.

    Raises the matching ``ScheduleError`` subclass; on success the rate in
    force at the start date is known to exist.
    """
    if not isinstance(credit.method, CalculationMethod):
        raise InvalidCalculationMethod(
            f"Calculation method must be a CalculationMethod; got {credit.method!r}"
        )
    if credit.principal is None or credit.principal <= 0:
        raise InvalidTermOrPrincipal(f"Principal must be positive; got {credit.principal}")
    if credit.term_months is None or credit.term_months <= 0:
        raise InvalidTermOrPrincipal(f"Term must be a positive number of months; got {credit.term_months}")
    if not 1 <= credit.payment_day <= 31:
        raise InvalidPaymentDay(f"Payment day must be between 1 and 31; got {credit.payment_day}")
    if not 0 <= credit.deferment_months < credit.term_months:
        raise InvalidDeferment(
            f"Deferment must be between 0 and {credit.term_months - 1} months; got {credit.deferment_months}"
        )
    if not len(rates):
        raise NoApplicableRate()
    rates.rate_on(credit.start_date)


def _make_item(
    period: int,
    due: date,
    balance: Decimal,
    principal_due: Decimal,
    interest: Decimal,
    rate: Decimal,
) -> ScheduleItem:
    # principal_due is already in cents; never take more than is outstanding
    principal_due = min(max(principal_due, ZERO), balance)
    interest_due = round_money(interest)
    return ScheduleItem(
        period_number=period,
        due_date=due,
        principal_due=principal_due,
        interest_due=interest_due,
        total_due=principal_due + interest_due,
        remaining_balance=balance - principal_due,
        average_rate=rate,
    )


def _classic_schedule(credit: Credit, principal: Decimal, rates: RateTimeline) -> List[ScheduleItem]:
    """Fixed-rate schedule at the rate in force on the start date."""
    annual = rates.rate_on(credit.start_date)
    rate = monthly_rate(annual)
    # deferred periods pay interest only; the last period takes what is left
    level_payment = round_money(annuity_payment(principal, rate, credit.term_months))
    level_principal = round_money(principal / Decimal(credit.term_months))

    schedule: List[ScheduleItem] = []
    balance = principal
    for period in range(1, credit.term_months + 1):
        due = payment_date(credit.start_date, period, credit.payment_day)
        interest = balance * rate
        if period <= credit.deferment_months:
            principal_due = ZERO
        elif period == credit.term_months:
            principal_due = balance
        elif credit.method.is_annuity:
            principal_due = level_payment - round_money(interest)
        else:
            principal_due = level_principal
        item = _make_item(period, due, balance, principal_due, interest, annual)
        schedule.append(item)
        balance = item.remaining_balance
    return schedule


def _floating_schedule(
    credit: Credit,
    principal: Decimal,
    rates: RateTimeline,
    adjustments: AdjustmentTimeline,
) -> List[ScheduleItem]:
    """Daily-accrual schedule against the rate timeline.

    Each period accrues from the previous due date (the start date for the
    first period) to its own due date. Adjustments effective in that window
    change the balance before interest is computed; the first window also
    includes adjustments dated on the start date itself.
    """
    schedule: List[ScheduleItem] = []
    balance = principal
    previous_due = credit.start_date
    for period in range(1, credit.term_months + 1):
        due = payment_date(credit.start_date, period, credit.payment_day)
        delta = adjustments.total_between(previous_due, due, include_start=period == 1)
        if delta:
            balance = max(balance + round_money(delta), ZERO)

        interest = interest_for(balance, previous_due, due, rates)
        if period <= credit.deferment_months:
            principal_due = ZERO
        elif period == credit.term_months:
            principal_due = balance
        elif credit.method.is_annuity:
            rate = monthly_rate(rates.rate_on(previous_due))
            remaining_periods = credit.term_months - period + 1
            payment = round_money(annuity_payment(balance, rate, remaining_periods))
            principal_due = payment - round_money(interest)
        else:
            remaining_periods = credit.term_months - max(period - 1, credit.deferment_months)
            principal_due = round_money(balance / Decimal(remaining_periods))

        rate_over_period = average_rate(previous_due, due, rates)
        item = _make_item(period, due, balance, principal_due, interest, rate_over_period)
        schedule.append(item)
        balance = item.remaining_balance
        previous_due = due
    return schedule


def generate_schedule(
    credit: Credit,
    rates: Rates,
    adjustments: Optional[Adjustments] = None,
) -> List[ScheduleItem]:
    """Compute the full payment schedule for a credit.

    Parameters
    ----------
    credit: Credit
        The credit terms. The principal is taken to the cent.
    rates: RateTimeline or iterable of RateEntry
        Annual rates in percent. A rate must be in force on the start date.
    adjustments: AdjustmentTimeline or iterable of AdjustmentEntry
        Principal adjustments. Only floating methods apply them.

    Returns
    -------
    List[ScheduleItem]
        One item per period, in order. The principal portions sum to the
        principal and the last item leaves a zero balance.
    """
    timeline = _rate_timeline(rates)
    validate_credit(credit, timeline)
    principal = round_money(credit.principal)
    if credit.method.is_floating:
        return _floating_schedule(credit, principal, timeline, _adjustment_timeline(adjustments))
    return _classic_schedule(credit, principal, timeline)


def _status_of(record: PaymentRecord) -> PaymentStatus:
    if isinstance(record.status, PaymentStatus):
        return record.status
    try:
        return PaymentStatus(str(record.status).lower())
    except ValueError:
        raise InvalidPaymentHistory(
            f"Unknown payment status {record.status!r} for period {record.period_number}"
        ) from None


def _paid_principal(record: PaymentRecord) -> Decimal:
    amount = record.principal_due if record.principal_due is not None else record.paid_amount
    if amount is None:
        raise InvalidPaymentHistory(f"Paid period {record.period_number} has no paid amount")
    if amount < 0:
        raise InvalidPaymentHistory(f"Paid period {record.period_number} has a negative amount: {amount}")
    return amount


def recalculate_schedule_from(
    credit: Credit,
    rates: Rates,
    adjustments: Optional[Adjustments],
    from_date: date,
    existing_payments: Iterable[PaymentRecord],
) -> List[ScheduleItem]:
    """Regenerate the unpaid remainder of a schedule from ``from_date``.

    Payments marked paid with a due date before ``from_date`` are taken as
    settled: their principal is removed from the balance, their count from the
    term and from any remaining deferment, and the new schedule starts on
    ``from_date``. The returned periods are numbered from 1; callers that
    persist them continue the numbering after the paid periods.
    """
    paid = [
        record
        for record in existing_payments
        if _status_of(record) is PaymentStatus.PAID and record.due_date < from_date
    ]
    paid_principal = sum((_paid_principal(record) for record in paid), ZERO)
    remainder = replace(
        credit,
        principal=credit.principal - paid_principal,
        start_date=from_date,
        term_months=credit.term_months - len(paid),
        deferment_months=max(credit.deferment_months - len(paid), 0),
    )
    return generate_schedule(remainder, rates, adjustments)


def summarize_schedule(schedule: List[ScheduleItem]) -> Dict[str, object]:
    """Return aggregate metrics for a schedule.

    ``overpayment`` is what is paid on top of the principal, i.e. the total
    of all payments minus the total principal.
    """
    total_principal = sum((item.principal_due for item in schedule), ZERO)
    total_interest = sum((item.interest_due for item in schedule), ZERO)
    total_payments = sum((item.total_due for item in schedule), ZERO)
    return {
        "total_principal": total_principal,
        "total_interest": total_interest,
        "total_payments": total_payments,
        "overpayment": total_payments - total_principal,
        "payments_count": len(schedule),
        "first_due_date": schedule[0].due_date if schedule else None,
        "last_due_date": schedule[-1].due_date if schedule else None,
        "max_payment": max((item.total_due for item in schedule), default=ZERO),
    }


def build_schedule_response(
    credit: Credit,
    rates: Rates,
    adjustments: Optional[Adjustments] = None,
) -> Dict[str, object]:
    """Generate a schedule and wrap it with the credit and its totals."""
    schedule = generate_schedule(credit, rates, adjustments)
    summary = summarize_schedule(schedule)
    return {
        "loan": {
            "id": credit.credit_id,
            "principal": round_money(credit.principal),
            "calculation_method": credit.method.value,
        },
        "schedule": schedule,
        "totals": {
            "total_principal": summary["total_principal"],
            "total_payments": summary["total_payments"],
            "total_interest": summary["total_interest"],
            "overpayment": summary["overpayment"],
        },
    }
