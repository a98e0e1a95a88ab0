from datetime import date
from decimal import Decimal

import pytest

from credit_schedule.data_models import CalculationMethod, Credit, RateEntry
from credit_schedule_web.payment_store import PaymentStore


def _make_credit(method=CalculationMethod.CLASSIC_ANNUITY, **overrides):
    values = dict(
        principal=Decimal("120000"),
        term_months=12,
        start_date=date(2024, 1, 1),
        method=method,
        deferment_months=0,
        payment_day=1,
    )
    values.update(overrides)
    return Credit(**values)


@pytest.fixture
def make_credit():
    return _make_credit


@pytest.fixture
def credit():
    return _make_credit()


@pytest.fixture
def twelve_percent():
    return [RateEntry(annual_percent=Decimal("12"), effective_date=date(2024, 1, 1))]


@pytest.fixture
def store():
    return PaymentStore("sqlite://")
