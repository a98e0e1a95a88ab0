from datetime import date
from decimal import Decimal

import pytest

from credit_schedule.data_models import CalculationMethod, PaymentRecord, PaymentStatus, RateEntry
from credit_schedule.engine import generate_schedule, recalculate_schedule_from
from credit_schedule.errors import InvalidPaymentHistory, InvalidTermOrPrincipal
from credit_schedule.interest import annuity_payment
from credit_schedule.utils import round_money


def paid(item, status=PaymentStatus.PAID, **overrides):
    values = dict(
        period_number=item.period_number,
        due_date=item.due_date,
        status=status,
        paid_amount=item.total_due,
        principal_due=item.principal_due,
        interest_due=item.interest_due,
        total_due=item.total_due,
    )
    values.update(overrides)
    return PaymentRecord(**values)


@pytest.mark.parametrize("method", list(CalculationMethod))
def test_no_history_reproduces_full_schedule(make_credit, twelve_percent, method):
    credit = make_credit(method, deferment_months=2)
    original = generate_schedule(credit, twelve_percent)
    assert recalculate_schedule_from(credit, twelve_percent, [], credit.start_date, []) == original


def test_paid_periods_are_removed(credit, twelve_percent):
    original = generate_schedule(credit, twelve_percent)
    history = [paid(item) for item in original[:3]]

    remainder = recalculate_schedule_from(credit, twelve_percent, [], date(2024, 4, 1), history)

    # the third payment falls on the checkpoint date itself and does not count
    assert len(remainder) == 10
    assert remainder[0].period_number == 1
    assert remainder[0].due_date == date(2024, 5, 1)
    outstanding = Decimal("120000") - original[0].principal_due - original[1].principal_due
    assert outstanding == Decimal("100981.68")
    assert sum(item.principal_due for item in remainder) == outstanding
    assert remainder[0].total_due == round_money(annuity_payment(outstanding, Decimal("0.01"), 10))
    assert remainder[-1].remaining_balance == Decimal("0")


def test_paid_amount_used_without_principal_split(credit, twelve_percent):
    history = [
        PaymentRecord(period_number=1, due_date=date(2024, 2, 1), status=PaymentStatus.PAID, paid_amount=Decimal("20000")),
    ]
    remainder = recalculate_schedule_from(credit, twelve_percent, [], date(2024, 2, 2), history)
    assert len(remainder) == 11
    assert sum(item.principal_due for item in remainder) == Decimal("100000")


def test_only_paid_records_before_checkpoint_count(credit, twelve_percent):
    original = generate_schedule(credit, twelve_percent)
    history = [
        paid(original[0]),
        paid(original[1], status=PaymentStatus.OVERDUE),
        paid(original[2], status="paid"),
        paid(original[5]),
    ]
    remainder = recalculate_schedule_from(credit, twelve_percent, [], date(2024, 5, 1), history)
    assert len(remainder) == 10
    expected = Decimal("120000") - original[0].principal_due - original[2].principal_due
    assert sum(item.principal_due for item in remainder) == expected


def test_deferment_shrinks_with_paid_periods(make_credit, twelve_percent):
    credit = make_credit(CalculationMethod.FLOATING_DIFFERENTIATED, deferment_months=3)
    original = generate_schedule(credit, twelve_percent)
    history = [paid(item) for item in original[:2]]
    remainder = recalculate_schedule_from(credit, twelve_percent, [], date(2024, 3, 2), history)
    assert remainder[0].principal_due == Decimal("0")
    assert remainder[1].principal_due > 0


def test_unknown_status_is_rejected(credit, twelve_percent):
    history = [PaymentRecord(period_number=1, due_date=date(2024, 2, 1), status="settled", paid_amount=Decimal("1"))]
    with pytest.raises(InvalidPaymentHistory):
        recalculate_schedule_from(credit, twelve_percent, [], date(2024, 3, 1), history)


def test_paid_record_without_amount_is_rejected(credit, twelve_percent):
    history = [PaymentRecord(period_number=1, due_date=date(2024, 2, 1), status=PaymentStatus.PAID)]
    with pytest.raises(InvalidPaymentHistory):
        recalculate_schedule_from(credit, twelve_percent, [], date(2024, 3, 1), history)


def test_fully_paid_credit_cannot_be_recalculated(credit, twelve_percent):
    original = generate_schedule(credit, twelve_percent)
    history = [paid(item) for item in original]
    with pytest.raises(InvalidTermOrPrincipal):
        recalculate_schedule_from(credit, twelve_percent, [], date(2025, 2, 1), history)


def test_floating_remainder_uses_rates_from_checkpoint(make_credit):
    credit = make_credit(CalculationMethod.FLOATING_ANNUITY)
    rates = [
        RateEntry(annual_percent=Decimal("12"), effective_date=date(2024, 1, 1)),
        RateEntry(annual_percent=Decimal("18"), effective_date=date(2024, 4, 1)),
    ]
    original = generate_schedule(credit, rates)
    history = [paid(item) for item in original[:3]]
    remainder = recalculate_schedule_from(credit, rates, [], date(2024, 4, 2), history)
    assert len(remainder) == 9
    assert {item.average_rate for item in remainder} == {Decimal("18")}
