from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from config import LendingConfig
from errors import InvalidStateError, NotFoundError, ValidationError
from fees import FeeCalculator
from inventory import InventoryLedger
from models import LOAN_ACTIVE, LOAN_RETURNED, RESERVATION_PENDING, Loan
from orm import LoanORM, ReservationORM
from storage import as_utc, reading, unit_of_work, utcnow

logger = logging.getLogger(__name__)


def _loan_to_schema(l: LoanORM) -> Loan:
    return Loan(
        id=l.id,
        item_id=l.item_id,
        borrower_id=l.borrower_id,
        checkout_at=l.checkout_at,
        due_at=l.due_at,
        returned_at=l.returned_at,
        status=l.status,  # type: ignore
        renewal_count=l.renewal_count,
        late_fee=l.late_fee,
    )


class LoanManager:
    """Loan records and their Active -> Returned lifecycle.

    Checkout and return touch the item's copy counter through the
    InventoryLedger in the same transaction as the loan row, so the counter
    always equals total copies minus active loans.
    """

    def __init__(
        self,
        config: Optional[LendingConfig] = None,
        ledger: Optional[InventoryLedger] = None,
        fees: Optional[FeeCalculator] = None,
    ) -> None:
        self.config = config or LendingConfig()
        self.ledger = ledger or InventoryLedger(self.config)
        self.fees = fees or FeeCalculator(self.config)

    # ---------- Transitions ----------
    def checkout(
        self,
        db: Session,
        item_id: str,
        borrower_id: str,
        due_at: Optional[datetime] = None,
        *,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> Loan:
        now = as_utc(now) or utcnow()
        borrower_id = (borrower_id or "").strip()
        if not borrower_id:
            raise ValidationError("borrower_id is empty")

        due_at = as_utc(due_at) or now + timedelta(days=self.config.loan_period_days)
        if due_at <= now:
            raise ValidationError("due date must be after the checkout date")

        loan = LoanORM(
            id=str(uuid4()),
            item_id=item_id,
            borrower_id=borrower_id,
            checkout_at=now,
            due_at=due_at,
            returned_at=None,
            status=LOAN_ACTIVE,
            renewal_count=0,
            late_fee=None,
            created_at=now,
            updated_at=now,
        )
        with unit_of_work(db, commit=commit):
            self.ledger.reserve_copy(db, item_id, commit=False)
            db.add(loan)

        logger.info("checkout loan_id=%s item_id=%s borrower_id=%s due_at=%s", loan.id, item_id, borrower_id, due_at.isoformat())
        return _loan_to_schema(loan)

    def return_item(
        self,
        db: Session,
        loan_id: str,
        *,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> Loan:
        now = as_utc(now) or utcnow()
        with unit_of_work(db, commit=commit):
            result = db.execute(
                update(LoanORM)
                .where(LoanORM.id == loan_id, LoanORM.status == LOAN_ACTIVE)
                .values(status=LOAN_RETURNED, returned_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self._require(db, loan_id)
                logger.warning("return refused loan_id=%s reason=already_returned", loan_id)
                raise InvalidStateError(f"loan {loan_id} is already returned")

            loan = db.get(LoanORM, loan_id, populate_existing=True)
            # final fee uses the actual return time
            loan.late_fee = self.fees.compute(loan.due_at, now)
            self.ledger.release_copy(db, loan.item_id, commit=False)
            head = self._next_claimant(db, loan.item_id)

        returned = _loan_to_schema(loan)
        logger.info("return loan_id=%s item_id=%s late_fee=%s", returned.id, returned.item_id, returned.late_fee)
        if head:
            logger.info("copy released item_id=%s next_reservation_id=%s next_borrower_id=%s", returned.item_id, head[0], head[1])
        return returned

    def renew(
        self,
        db: Session,
        loan_id: str,
        *,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> Loan:
        now = as_utc(now) or utcnow()
        with unit_of_work(db, commit=commit):
            loan = self._require(db, loan_id)
            if loan.status != LOAN_ACTIVE:
                raise InvalidStateError(f"loan {loan_id} is not active")
            if loan.renewal_count >= self.config.max_renewals:
                logger.warning("renew refused loan_id=%s reason=limit renewal_count=%s", loan_id, loan.renewal_count)
                raise InvalidStateError(f"loan {loan_id} reached the renewal limit of {self.config.max_renewals}")
            if loan.due_at < now and not self.config.allow_overdue_renewal:
                logger.warning("renew refused loan_id=%s reason=overdue", loan_id)
                raise InvalidStateError(f"loan {loan_id} is overdue and cannot be renewed")

            new_due_at = loan.due_at + timedelta(days=self.config.renewal_period_days)
            # the fee projection follows the new due date
            late_fee = self.fees.compute(new_due_at, now) if new_due_at < now else None
            result = db.execute(
                update(LoanORM)
                .where(
                    LoanORM.id == loan_id,
                    LoanORM.status == LOAN_ACTIVE,
                    LoanORM.renewal_count == loan.renewal_count,
                    LoanORM.due_at == loan.due_at,
                )
                .values(
                    due_at=new_due_at,
                    renewal_count=loan.renewal_count + 1,
                    late_fee=late_fee,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError(f"loan {loan_id} changed concurrently")
            loan = db.get(LoanORM, loan_id, populate_existing=True)

        renewed = _loan_to_schema(loan)
        logger.info("renew loan_id=%s due_at=%s renewal_count=%s", loan_id, renewed.due_at.isoformat(), renewed.renewal_count)
        return renewed

    # ---------- Projections ----------
    def get_loan(self, db: Session, loan_id: str) -> Loan:
        with reading(db):
            row = self._require(db, loan_id)
        return _loan_to_schema(row)

    def list_loans(self, db: Session) -> list[Loan]:
        stmt = select(LoanORM).order_by(LoanORM.checkout_at.desc(), LoanORM.id.asc())
        return self._list(db, stmt)

    def list_overdue(self, db: Session, *, now: Optional[datetime] = None) -> list[Loan]:
        now = as_utc(now) or utcnow()
        stmt = (
            select(LoanORM)
            .where(LoanORM.status == LOAN_ACTIVE, LoanORM.due_at < now)
            .order_by(LoanORM.due_at.asc())
        )
        return self._list(db, stmt)

    def list_by_borrower(self, db: Session, borrower_id: str) -> list[Loan]:
        stmt = (
            select(LoanORM)
            .where(LoanORM.borrower_id == borrower_id)
            .order_by(LoanORM.checkout_at.desc(), LoanORM.id.asc())
        )
        return self._list(db, stmt)

    def list_active_by_borrower(self, db: Session, borrower_id: str) -> list[Loan]:
        stmt = (
            select(LoanORM)
            .where(LoanORM.borrower_id == borrower_id, LoanORM.status == LOAN_ACTIVE)
            .order_by(LoanORM.due_at.asc())
        )
        return self._list(db, stmt)

    def _list(self, db: Session, stmt) -> list[Loan]:
        with reading(db):
            rows = db.execute(stmt.execution_options(populate_existing=True)).scalars().all()
        return [_loan_to_schema(l) for l in rows]

    def _require(self, db: Session, loan_id: str) -> LoanORM:
        row = db.get(LoanORM, loan_id, populate_existing=True)
        if row is None:
            raise NotFoundError(f"loan {loan_id} not found")
        return row

    def _next_claimant(self, db: Session, item_id: str):
        return db.execute(
            select(ReservationORM.id, ReservationORM.borrower_id)
            .where(ReservationORM.item_id == item_id, ReservationORM.status == RESERVATION_PENDING)
            .order_by(ReservationORM.queue_position.asc())
            .limit(1)
        ).first()
