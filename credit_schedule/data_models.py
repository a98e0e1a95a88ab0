"""Data models for the credit schedule engine.

This module defines the enums and dataclasses passed in and out of the
engine: the credit terms, rate and principal adjustment entries, historical
payment records and the emitted schedule items. Money values are always
``Decimal``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class CalculationMethod(Enum):
    """The four supported amortization methods."""

    CLASSIC_ANNUITY = "classic_annuity"
    CLASSIC_DIFFERENTIATED = "classic_differentiated"
    FLOATING_ANNUITY = "floating_annuity"
    FLOATING_DIFFERENTIATED = "floating_differentiated"

    @property
    def is_floating(self) -> bool:
        return self in (CalculationMethod.FLOATING_ANNUITY, CalculationMethod.FLOATING_DIFFERENTIATED)

    @property
    def is_annuity(self) -> bool:
        return self in (CalculationMethod.CLASSIC_ANNUITY, CalculationMethod.FLOATING_ANNUITY)


class PaymentStatus(Enum):
    SCHEDULED = "scheduled"
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELED = "canceled"


@dataclass
class Credit:
    """Terms of a credit contract.

    Attributes
    ----------
    principal: Decimal
        The amount lent. Must be positive.
    term_months: int
        Number of monthly periods in the schedule.
    start_date: date
        Contract start. Interest accrues from this date and due dates are
        counted in whole months from it.
    method: CalculationMethod
        The amortization method.
    deferment_months: int
        Leading periods in which only interest is due.
    payment_day: int
        Day of month (1-31) on which payments fall. Days that do not exist in
        a month are clamped to that month's last day.
    """

    principal: Decimal
    term_months: int
    start_date: date
    method: CalculationMethod
    deferment_months: int = 0
    payment_day: int = 1
    credit_id: Optional[str] = None
    bank_id: Optional[str] = None


@dataclass
class RateEntry:
    """An annual rate in percent (``Decimal("12")`` is 12 %) in force from
    ``effective_date`` until the next entry takes over."""

    annual_percent: Decimal
    effective_date: date
    note: Optional[str] = None


@dataclass
class AdjustmentEntry:
    """A signed change to outstanding principal.

    A positive ``amount`` increases the balance (additional drawdown), a
    negative one reduces it (early repayment).
    """

    amount: Decimal
    effective_date: date
    type: Optional[str] = None


@dataclass
class PaymentRecord:
    """A historical payment as stored by the caller.

    Only ``status``, ``due_date`` and ``paid_amount`` are required for a
    recalculation. When ``principal_due`` is known it is used as the principal
    portion of a paid record; otherwise the whole ``paid_amount`` is.
    """

    period_number: int
    due_date: date
    status: PaymentStatus
    paid_amount: Optional[Decimal] = None
    principal_due: Optional[Decimal] = None
    interest_due: Optional[Decimal] = None
    total_due: Optional[Decimal] = None


@dataclass
class ScheduleItem:
    """One period of a payment schedule.

    ``remaining_balance`` is the outstanding principal after this period's
    principal is applied. ``average_rate`` is the day-weighted annual percent
    over the period's accrual span.
    """

    period_number: int
    due_date: date
    principal_due: Decimal
    interest_due: Decimal
    total_due: Decimal
    remaining_balance: Decimal
    average_rate: Decimal
