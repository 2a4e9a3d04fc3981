from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from config import LendingConfig
from fees import FeeCalculator
from models import SweepResult
from reservations import ReservationQueue
from storage import as_utc, utcnow

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Batch pass run from an external timer. Holds no state between runs.

    Both steps are idempotent at a given instant, so overlapping or repeated
    runs leave the same stored values.
    """

    def __init__(
        self,
        config: Optional[LendingConfig] = None,
        fees: Optional[FeeCalculator] = None,
        queue: Optional[ReservationQueue] = None,
    ) -> None:
        self.config = config or LendingConfig()
        self.fees = fees or FeeCalculator(self.config)
        self.queue = queue or ReservationQueue(self.config)

    def recalculate_fees(self, db: Session, *, now: Optional[datetime] = None) -> SweepResult:
        now = as_utc(now) or utcnow()
        return SweepResult(ran_at=now, fees_updated=self.fees.recalculate_overdue(db, now=now))

    def expire_reservations(self, db: Session, *, now: Optional[datetime] = None) -> SweepResult:
        now = as_utc(now) or utcnow()
        return SweepResult(ran_at=now, reservations_expired=self.queue.process_expired(db, now=now))

    def run(self, db: Session, *, now: Optional[datetime] = None) -> SweepResult:
        now = as_utc(now) or utcnow()
        fees_updated = self.fees.recalculate_overdue(db, now=now)
        expired = self.queue.process_expired(db, now=now)
        logger.info("sweep finished fees_updated=%s reservations_expired=%s", fees_updated, expired)
        return SweepResult(ran_at=now, fees_updated=fees_updated, reservations_expired=expired)
