"""Persistence layer for scheduled credit payments.

This module keeps generated schedule items in a ``credit_payment`` table so
that due payments can be settled and schedules recalculated against the paid
history. It defaults to SQLite for local development, but accepts any
SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL).

Rows are keyed by ``(credit_id, period_number, recalculated_version)``;
inserting a row whose key already exists leaves the stored row untouched.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from credit_schedule.data_models import PaymentRecord, PaymentStatus, ScheduleItem

Base = declarative_base()


class CreditPaymentModel(Base):
    __tablename__ = "credit_payment"
    __table_args__ = (
        UniqueConstraint("credit_id", "period_number", "recalculated_version", name="uq_credit_payment_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    credit_id = Column(String(64), index=True, nullable=False)
    period_number = Column(Integer, nullable=False)
    recalculated_version = Column(Integer, nullable=False, default=1)
    due_date = Column(Date, index=True, nullable=False)
    principal_due = Column(Numeric(18, 2), nullable=False)
    interest_due = Column(Numeric(18, 2), nullable=False)
    total_due = Column(Numeric(18, 2), nullable=False)
    status = Column(String(16), nullable=False, default=PaymentStatus.SCHEDULED.value)
    paid_amount = Column(Numeric(18, 2), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PaymentStore:
    """Database-backed store of scheduled payments."""

    def __init__(self, url: str) -> None:
        if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
            # one shared connection, otherwise every session sees an empty database
            self._engine = create_engine(
                url, future=True, connect_args={"check_same_thread": False}, poolclass=StaticPool
            )
        else:
            self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def add_schedule(
        self,
        credit_id: str,
        items: Iterable[ScheduleItem],
        *,
        version: int = 1,
        period_offset: int = 0,
    ) -> int:
        """Insert schedule items as scheduled payments.

        ``period_offset`` is added to every period number, so a recalculated
        remainder continues the numbering after the already paid periods.
        Returns the number of rows created.
        """
        created = 0
        with self._session_factory() as session:
            for item in items:
                period = item.period_number + period_offset
                exists = session.execute(
                    select(CreditPaymentModel.id).where(
                        CreditPaymentModel.credit_id == credit_id,
                        CreditPaymentModel.period_number == period,
                        CreditPaymentModel.recalculated_version == version,
                    )
                ).first()
                if exists:
                    continue
                session.add(
                    CreditPaymentModel(
                        credit_id=credit_id,
                        period_number=period,
                        recalculated_version=version,
                        due_date=item.due_date,
                        principal_due=item.principal_due,
                        interest_due=item.interest_due,
                        total_due=item.total_due,
                        status=PaymentStatus.SCHEDULED.value,
                    )
                )
                created += 1
            session.commit()
        return created

    def list_payments(self, credit_id: str, version: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            query = select(CreditPaymentModel).where(CreditPaymentModel.credit_id == credit_id)
            if version is not None:
                query = query.where(CreditPaymentModel.recalculated_version == version)
            rows = session.execute(
                query.order_by(CreditPaymentModel.recalculated_version.asc(), CreditPaymentModel.period_number.asc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def latest_version(self, credit_id: str) -> int:
        """Return the highest stored version for a credit, 0 when none."""
        with self._session_factory() as session:
            value = session.execute(
                select(func.max(CreditPaymentModel.recalculated_version)).where(
                    CreditPaymentModel.credit_id == credit_id
                )
            ).scalar()
            return int(value or 0)

    def payment_history(self, credit_id: str) -> List[PaymentRecord]:
        """Return the paid rows of a credit as engine payment records.

        Paid periods are unique per period number; if a period was paid under
        more than one version, the latest version counts.
        """
        with self._session_factory() as session:
            rows = session.execute(
                select(CreditPaymentModel)
                .where(
                    CreditPaymentModel.credit_id == credit_id,
                    CreditPaymentModel.status == PaymentStatus.PAID.value,
                )
                .order_by(CreditPaymentModel.period_number.asc(), CreditPaymentModel.recalculated_version.asc())
            ).scalars()
            by_period: Dict[int, PaymentRecord] = {}
            for row in rows:
                by_period[row.period_number] = PaymentRecord(
                    period_number=row.period_number,
                    due_date=row.due_date,
                    status=PaymentStatus(row.status),
                    paid_amount=self._decimal(row.paid_amount),
                    principal_due=self._decimal(row.principal_due),
                    interest_due=self._decimal(row.interest_due),
                    total_due=self._decimal(row.total_due),
                )
            return list(by_period.values())

    def find_due_payments(self, today: date) -> List[Dict[str, Any]]:
        """Return scheduled payments due on or before ``today``, oldest first."""
        with self._session_factory() as session:
            rows = session.execute(
                select(CreditPaymentModel)
                .where(
                    CreditPaymentModel.status == PaymentStatus.SCHEDULED.value,
                    CreditPaymentModel.due_date <= today,
                )
                .order_by(CreditPaymentModel.due_date.asc(), CreditPaymentModel.id.asc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def mark_paid(self, payment_id: int, paid_at: Optional[datetime] = None) -> bool:
        """Settle a scheduled payment for its full amount.

        Returns False if the payment does not exist or is no longer scheduled.
        """
        with self._session_factory() as session:
            row = session.get(CreditPaymentModel, payment_id)
            if row is None or row.status != PaymentStatus.SCHEDULED.value:
                return False
            row.status = PaymentStatus.PAID.value
            row.paid_amount = row.total_due
            row.paid_at = paid_at or datetime.utcnow()
            session.commit()
            return True

    def cancel_scheduled(self, credit_id: str, below_version: int) -> int:
        """Cancel the still scheduled rows of versions older than ``below_version``.

        Returns the number of rows canceled.
        """
        with self._session_factory() as session:
            rows = session.execute(
                select(CreditPaymentModel).where(
                    CreditPaymentModel.credit_id == credit_id,
                    CreditPaymentModel.recalculated_version < below_version,
                    CreditPaymentModel.status == PaymentStatus.SCHEDULED.value,
                )
            ).scalars().all()
            for row in rows:
                row.status = PaymentStatus.CANCELED.value
            session.commit()
            return len(rows)

    @staticmethod
    def _decimal(value: Any) -> Optional[Decimal]:
        if value is None:
            return None
        return Decimal(str(value)).quantize(Decimal("0.01"))

    @classmethod
    def _to_dict(cls, row: CreditPaymentModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "credit_id": row.credit_id,
            "period_number": row.period_number,
            "recalculated_version": row.recalculated_version,
            "due_date": row.due_date,
            "principal_due": cls._decimal(row.principal_due),
            "interest_due": cls._decimal(row.interest_due),
            "total_due": cls._decimal(row.total_due),
            "status": row.status,
            "paid_amount": cls._decimal(row.paid_amount),
            "paid_at": row.paid_at,
        }


def create_store_from_env(url: str | None) -> PaymentStore:
    return PaymentStore(url or "sqlite:///credit_payments.sqlite3")
