from datetime import date, datetime
from decimal import Decimal

from credit_schedule.data_models import PaymentStatus
from credit_schedule.engine import generate_schedule


def test_add_schedule_is_insert_if_absent(store, credit, twelve_percent):
    items = generate_schedule(credit, twelve_percent)
    assert store.add_schedule("c-1", items) == 12
    assert store.add_schedule("c-1", items) == 0
    assert store.add_schedule("c-2", items[:3]) == 3

    payments = store.list_payments("c-1")
    assert [p["period_number"] for p in payments] == list(range(1, 13))
    first = payments[0]
    assert first["due_date"] == date(2024, 2, 1)
    assert first["principal_due"] == Decimal("9461.85")
    assert first["total_due"] == Decimal("10661.85")
    assert first["status"] == PaymentStatus.SCHEDULED.value
    assert first["paid_amount"] is None


def test_versions_and_period_offset(store, credit, twelve_percent):
    items = generate_schedule(credit, twelve_percent)
    assert store.latest_version("c-1") == 0
    store.add_schedule("c-1", items)
    store.add_schedule("c-1", items[:2], version=2, period_offset=10)

    assert store.latest_version("c-1") == 2
    assert [p["period_number"] for p in store.list_payments("c-1", version=2)] == [11, 12]


def test_due_payments_and_mark_paid(store, credit, twelve_percent):
    store.add_schedule("c-1", generate_schedule(credit, twelve_percent))

    due = store.find_due_payments(date(2024, 3, 1))
    assert [p["period_number"] for p in due] == [1, 2]

    paid_at = datetime(2024, 3, 1, 9, 0)
    assert store.mark_paid(due[0]["id"], paid_at=paid_at) is True
    assert store.mark_paid(due[0]["id"]) is False
    assert store.mark_paid(999) is False

    assert [p["period_number"] for p in store.find_due_payments(date(2024, 3, 1))] == [2]
    settled = store.list_payments("c-1")[0]
    assert settled["status"] == "paid"
    assert settled["paid_amount"] == Decimal("10661.85")
    assert settled["paid_at"] == paid_at


def test_payment_history_returns_paid_records(store, credit, twelve_percent):
    store.add_schedule("c-1", generate_schedule(credit, twelve_percent))
    for payment in store.find_due_payments(date(2024, 4, 1)):
        store.mark_paid(payment["id"])

    history = store.payment_history("c-1")
    assert [record.period_number for record in history] == [1, 2, 3]
    assert all(record.status is PaymentStatus.PAID for record in history)
    assert history[0].principal_due == Decimal("9461.85")
    assert history[0].paid_amount == Decimal("10661.85")
    assert store.payment_history("unknown") == []


def test_cancel_scheduled_leaves_paid_and_newer_rows(store, credit, twelve_percent):
    items = generate_schedule(credit, twelve_percent)
    store.add_schedule("c-1", items)
    store.add_schedule("c-1", items[1:], version=2, period_offset=1)
    store.mark_paid(store.list_payments("c-1", version=1)[0]["id"])

    assert store.cancel_scheduled("c-1", below_version=2) == 11
    assert store.cancel_scheduled("c-1", below_version=2) == 0

    assert [p["status"] for p in store.list_payments("c-1", version=1)][:2] == ["paid", "canceled"]
    assert {p["status"] for p in store.list_payments("c-1", version=2)} == {"scheduled"}
    assert [p["recalculated_version"] for p in store.find_due_payments(date(2025, 1, 1))] == [2] * 11
