"""Payment services built on the schedule engine and the payment store.

``DuePaymentsJob`` settles scheduled payments that have fallen due. It is
constructed with the store it works against; each application (web app,
CLI run, test) owns its own instance. Scheduling it periodically is left to
whatever runs the process (cron, a systemd timer, the admin endpoint).
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Tuple

from credit_schedule.data_models import Credit, ScheduleItem
from credit_schedule.engine import Adjustments, Rates, generate_schedule, recalculate_schedule_from

from .payment_store import PaymentStore

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    success: bool
    processed_count: int = 0
    total_due_payments: int = 0
    errors: List[str] = field(default_factory=list)


class DuePaymentsJob:
    """Marks scheduled payments due on or before a given day as paid."""

    def __init__(self, store: PaymentStore, clock: Callable[[], date] = date.today) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._last_result: Optional[JobResult] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def status(self) -> dict:
        last = self._last_result
        return {
            "is_running": self.is_running,
            "last_success": None if last is None else last.success,
            "last_processed_count": None if last is None else last.processed_count,
        }

    def execute(self, today: Optional[date] = None) -> JobResult:
        """Settle every due payment.

        A call made while another one is still running returns immediately
        with ``success=False``. Failures on individual payments are collected
        in ``errors`` and do not stop the run.
        """
        if not self._lock.acquire(blocking=False):
            return JobResult(success=False, errors=["Job is already running"])
        try:
            result = self._run(today or self._clock())
            self._last_result = result
            return result
        finally:
            self._lock.release()

    def _run(self, today: date) -> JobResult:
        started = time.monotonic()
        logger.info("Due payments run started for %s", today.isoformat())
        try:
            due = self._store.find_due_payments(today)
        except Exception as exc:
            logger.exception("Due payments run failed")
            return JobResult(success=False, errors=[f"Job execution failed: {exc}"])

        result = JobResult(success=True, total_due_payments=len(due))
        logger.info("Found %d due payments to process", len(due))
        for payment in due:
            try:
                if self._store.mark_paid(payment["id"]):
                    result.processed_count += 1
                    logger.debug("Payment %s marked as paid", payment["id"])
                else:
                    result.errors.append(f"Payment {payment['id']}: not found or already processed")
            except Exception as exc:
                logger.exception("Error processing payment %s", payment["id"])
                result.errors.append(f"Payment {payment['id']}: {exc}")

        logger.info(
            "Due payments run completed in %.0fms: processed %d, errors %d",
            (time.monotonic() - started) * 1000,
            result.processed_count,
            len(result.errors),
        )
        return result


def _require_credit_id(credit: Credit) -> str:
    if not credit.credit_id:
        raise ValueError("Credit id is required to store a schedule")
    return credit.credit_id


def store_schedule(
    store: PaymentStore,
    credit: Credit,
    rates: Rates,
    adjustments: Optional[Adjustments] = None,
) -> Tuple[List[ScheduleItem], int]:
    """Generate a credit's schedule and store any periods not stored yet.

    Returns the schedule and the number of rows created.
    """
    credit_id = _require_credit_id(credit)
    items = generate_schedule(credit, rates, adjustments)
    version = max(store.latest_version(credit_id), 1)
    created = store.add_schedule(credit_id, items, version=version)
    logger.info("Stored %d of %d periods for credit %s", created, len(items), credit_id)
    return items, created


def checkpoint_recalculate(
    store: PaymentStore,
    credit: Credit,
    rates: Rates,
    adjustments: Optional[Adjustments],
    from_date: date,
) -> Tuple[List[ScheduleItem], int]:
    """Recalculate the unpaid remainder of a credit from ``from_date``.

    The paid history comes from the store. The remainder is stored under the
    next ``recalculated_version`` with period numbers continuing after the
    paid periods; unpaid rows of earlier versions are canceled so only the
    remainder falls due. Returns the remainder and its version.
    """
    credit_id = _require_credit_id(credit)
    history = store.payment_history(credit_id)
    items = recalculate_schedule_from(credit, rates, adjustments, from_date, history)
    paid_count = sum(1 for record in history if record.due_date < from_date)
    version = store.latest_version(credit_id) + 1
    store.add_schedule(credit_id, items, version=version, period_offset=paid_count)
    canceled = store.cancel_scheduled(credit_id, below_version=version)
    logger.info(
        "Recalculated credit %s from %s: %d paid periods, %d remaining, version %d, %d superseded rows canceled",
        credit_id,
        from_date.isoformat(),
        paid_count,
        len(items),
        version,
        canceled,
    )
    return items, version
