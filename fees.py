from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from config import LendingConfig
from models import LOAN_ACTIVE
from orm import LoanORM
from storage import as_utc, unit_of_work, utcnow

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ONE_DAY = timedelta(days=1)


class FeeCalculator:
    """Late fees as a pure function of (due date, now).

    The stored fee of an active loan is only a projection and is overwritten
    on every recalculation; it becomes final when the loan is returned.
    """

    def __init__(self, config: Optional[LendingConfig] = None) -> None:
        self.config = config or LendingConfig()

    def days_overdue(self, due_at: datetime, now: datetime) -> int:
        return max(0, math.floor((as_utc(now) - as_utc(due_at)) / ONE_DAY))

    def compute(self, due_at: datetime, now: datetime) -> Decimal:
        fee = self.config.fee_per_day * self.days_overdue(due_at, now)
        return fee.quantize(CENTS, rounding=ROUND_HALF_UP)

    def recalculate_overdue(self, db: Session, *, now: Optional[datetime] = None, commit: bool = True) -> int:
        """Overwrite the fee projection of every active overdue loan. Returns loans updated."""
        now = as_utc(now) or utcnow()
        updated = 0
        with unit_of_work(db, commit=commit):
            overdue = db.execute(
                select(LoanORM.id, LoanORM.due_at)
                .where(LoanORM.status == LOAN_ACTIVE, LoanORM.due_at < now)
                .order_by(LoanORM.due_at.asc())
            ).all()

            for loan_id, due_at in overdue:
                # skip loans returned or renewed since the select
                result = db.execute(
                    update(LoanORM)
                    .where(
                        LoanORM.id == loan_id,
                        LoanORM.status == LOAN_ACTIVE,
                        LoanORM.due_at == due_at,
                    )
                    .values(late_fee=self.compute(due_at, now), updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                updated += result.rowcount

        logger.info("late fees recalculated loans=%s now=%s", updated, now.isoformat())
        return updated
