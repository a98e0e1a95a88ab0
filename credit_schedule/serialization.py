"""Conversion between engine dataclasses and JSON-friendly dictionaries.

Incoming dictionaries accept both ``snake_case`` and the ``camelCase`` keys
used by REST clients (``termMonths``, ``effectiveDate``...).
Outgoing money values are rendered as floats, dates as ISO strings.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .data_models import (
    AdjustmentEntry,
    Credit,
    PaymentRecord,
    PaymentStatus,
    RateEntry,
    ScheduleItem,
)
from .errors import InvalidPaymentHistory
from .utils import decimal_from_str, parse_date, parse_method, rate_fraction_to_percent


def _get(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _require(data: Mapping[str, Any], *keys: str) -> Any:
    value = _get(data, *keys)
    if value is None:
        raise ValueError(f"Missing required field: {keys[0]}")
    return value


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return parse_date(str(value)[:10])


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else decimal_from_str(value)


def credit_from_dict(data: Mapping[str, Any]) -> Credit:
    credit_id = _get(data, "credit_id", "id")
    bank_id = _get(data, "bank_id", "bankId")
    return Credit(
        principal=decimal_from_str(_require(data, "principal")),
        term_months=int(_require(data, "term_months", "termMonths")),
        start_date=_as_date(_require(data, "start_date", "startDate")),
        method=parse_method(_get(data, "method", "calculation_method", "calculationMethod")),
        deferment_months=int(_get(data, "deferment_months", "defermentMonths", default=0)),
        payment_day=int(_get(data, "payment_day", "paymentDay", default=1)),
        credit_id=None if credit_id is None else str(credit_id),
        bank_id=None if bank_id is None else str(bank_id),
    )


def _annual_percent(item: Mapping[str, Any]) -> Decimal:
    percent = _get(item, "annual_percent", "annualPercent")
    if percent is not None:
        return decimal_from_str(percent)
    # stored rows keep the rate as a fraction
    fraction = _get(item, "rate")
    if fraction is None:
        raise ValueError("Missing required field: annual_percent")
    return rate_fraction_to_percent(fraction)


def rates_from_list(items: Iterable[Mapping[str, Any]]) -> List[RateEntry]:
    return [
        RateEntry(
            annual_percent=_annual_percent(item),
            effective_date=_as_date(_require(item, "effective_date", "effectiveDate")),
            note=_get(item, "note", "notes"),
        )
        for item in items
    ]


def adjustments_from_list(items: Iterable[Mapping[str, Any]]) -> List[AdjustmentEntry]:
    return [
        AdjustmentEntry(
            amount=decimal_from_str(_require(item, "amount")),
            effective_date=_as_date(_require(item, "effective_date", "effectiveDate", "adjustment_date")),
            type=_get(item, "type"),
        )
        for item in items
    ]


def payments_from_list(items: Iterable[Mapping[str, Any]]) -> List[PaymentRecord]:
    """Parse historical payment records.

    Raises ``InvalidPaymentHistory`` when a record is malformed.
    """
    records: List[PaymentRecord] = []
    for item in items:
        try:
            status = PaymentStatus(str(_require(item, "status")).lower())
            records.append(
                PaymentRecord(
                    period_number=int(_require(item, "period_number", "periodNumber")),
                    due_date=_as_date(_require(item, "due_date", "dueDate")),
                    status=status,
                    paid_amount=_optional_decimal(_get(item, "paid_amount", "paidAmount")),
                    principal_due=_optional_decimal(_get(item, "principal_due", "principalDue")),
                    interest_due=_optional_decimal(_get(item, "interest_due", "interestDue")),
                    total_due=_optional_decimal(_get(item, "total_due", "totalDue")),
                )
            )
        except (TypeError, ValueError) as exc:
            raise InvalidPaymentHistory(f"Malformed payment record {dict(item)!r}: {exc}") from exc
    return records


def schedule_item_to_dict(item: ScheduleItem) -> Dict[str, Any]:
    return {
        "period_number": item.period_number,
        "due_date": item.due_date.isoformat(),
        "principal_due": float(item.principal_due),
        "interest_due": float(item.interest_due),
        "total_due": float(item.total_due),
        "remaining_balance": float(item.remaining_balance),
        "average_rate": float(round(item.average_rate, 4)),
    }


def summary_to_dict(summary: Mapping[str, Any]) -> Dict[str, Any]:
    """Render a summary or totals mapping with floats and ISO dates."""
    rendered: Dict[str, Any] = {}
    for key, value in summary.items():
        if isinstance(value, Decimal):
            rendered[key] = float(value)
        elif isinstance(value, date):
            rendered[key] = value.isoformat()
        else:
            rendered[key] = value
    return rendered


def response_to_dict(response: Mapping[str, Any]) -> Dict[str, Any]:
    """Render the envelope returned by ``engine.build_schedule_response``."""
    return {
        "loan": summary_to_dict(response["loan"]),
        "schedule": [schedule_item_to_dict(item) for item in response["schedule"]],
        "totals": summary_to_dict(response["totals"]),
    }
