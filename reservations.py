from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from config import LendingConfig
from errors import InvalidStateError, NotFoundError, ValidationError
from inventory import InventoryLedger
from models import (
    RESERVATION_CANCELLED,
    RESERVATION_EXPIRED,
    RESERVATION_PENDING,
    TERMINAL_RESERVATION_STATUSES,
    Reservation,
)
from orm import ReservationORM
from storage import as_utc, reading, unit_of_work, utcnow

logger = logging.getLogger(__name__)


def _reservation_to_schema(r: ReservationORM) -> Reservation:
    return Reservation(
        id=r.id,
        item_id=r.item_id,
        borrower_id=r.borrower_id,
        reserved_at=r.reserved_at,
        expires_at=r.expires_at,
        status=r.status,  # type: ignore
        queue_position=r.queue_position,
    )


class ReservationQueue:
    """Per-item waiting lists.

    Positions start at 1 and increase by one per reservation in creation
    order. They are never renumbered; the pending reservation with the lowest
    position is the next claimant for a released copy.
    """

    def __init__(self, config: Optional[LendingConfig] = None, ledger: Optional[InventoryLedger] = None) -> None:
        self.config = config or LendingConfig()
        self.ledger = ledger or InventoryLedger(self.config)

    def create(
        self,
        db: Session,
        item_id: str,
        borrower_id: str,
        *,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> Reservation:
        now = as_utc(now) or utcnow()
        borrower_id = (borrower_id or "").strip()
        if not borrower_id:
            raise ValidationError("borrower_id is empty")

        with unit_of_work(db, commit=commit):
            # taking the position first holds the item row for the rest of the transaction
            position = self.ledger.next_queue_position(db, item_id)

            duplicate = db.execute(
                select(ReservationORM.id).where(
                    ReservationORM.item_id == item_id,
                    ReservationORM.borrower_id == borrower_id,
                    ReservationORM.status == RESERVATION_PENDING,
                )
            ).first()
            if duplicate:
                logger.warning("reservation refused item_id=%s borrower_id=%s reason=duplicate", item_id, borrower_id)
                raise InvalidStateError(f"borrower {borrower_id} already has a pending reservation for item {item_id}")

            r = ReservationORM(
                id=str(uuid4()),
                item_id=item_id,
                borrower_id=borrower_id,
                reserved_at=now,
                expires_at=now + timedelta(days=self.config.reservation_window_days),
                status=RESERVATION_PENDING,
                queue_position=position,
                created_at=now,
                updated_at=now,
            )
            db.add(r)

        logger.info("reservation created reservation_id=%s item_id=%s borrower_id=%s position=%s", r.id, item_id, borrower_id, position)
        return _reservation_to_schema(r)

    def update_status(
        self,
        db: Session,
        reservation_id: str,
        new_status: str,
        *,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> Reservation:
        if new_status not in TERMINAL_RESERVATION_STATUSES:
            raise ValidationError(f"cannot move a reservation to {new_status!r}")

        now = as_utc(now) or utcnow()
        with unit_of_work(db, commit=commit):
            result = db.execute(
                update(ReservationORM)
                .where(ReservationORM.id == reservation_id, ReservationORM.status == RESERVATION_PENDING)
                .values(status=new_status, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = self._require(db, reservation_id)
                raise InvalidStateError(f"reservation {reservation_id} is already {current.status}")
            row = db.get(ReservationORM, reservation_id, populate_existing=True)

        logger.info("reservation status reservation_id=%s status=%s", reservation_id, new_status)
        return _reservation_to_schema(row)

    def cancel(self, db: Session, reservation_id: str, *, now: Optional[datetime] = None, commit: bool = True) -> Reservation:
        return self.update_status(db, reservation_id, RESERVATION_CANCELLED, now=now, commit=commit)

    def process_expired(self, db: Session, *, now: Optional[datetime] = None, commit: bool = True) -> int:
        now = as_utc(now) or utcnow()
        with unit_of_work(db, commit=commit):
            result = db.execute(
                update(ReservationORM)
                .where(ReservationORM.status == RESERVATION_PENDING, ReservationORM.expires_at < now)
                .values(status=RESERVATION_EXPIRED, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        logger.info("expired reservations processed count=%s now=%s", result.rowcount, now.isoformat())
        return result.rowcount

    # ---------- Projections ----------
    def get_reservation(self, db: Session, reservation_id: str) -> Reservation:
        with reading(db):
            row = self._require(db, reservation_id)
        return _reservation_to_schema(row)

    def list_reservations(self, db: Session) -> list[Reservation]:
        stmt = select(ReservationORM).order_by(ReservationORM.reserved_at.desc(), ReservationORM.id.asc())
        return self._list(db, stmt)

    def list_by_item(self, db: Session, item_id: str) -> list[Reservation]:
        stmt = (
            select(ReservationORM)
            .where(ReservationORM.item_id == item_id)
            .order_by(ReservationORM.queue_position.asc())
        )
        return self._list(db, stmt)

    def list_by_borrower(self, db: Session, borrower_id: str) -> list[Reservation]:
        stmt = (
            select(ReservationORM)
            .where(ReservationORM.borrower_id == borrower_id, ReservationORM.status != RESERVATION_CANCELLED)
            .order_by(ReservationORM.reserved_at.desc(), ReservationORM.id.asc())
        )
        return self._list(db, stmt)

    def list_pending(self, db: Session) -> list[Reservation]:
        stmt = (
            select(ReservationORM)
            .where(ReservationORM.status == RESERVATION_PENDING)
            .order_by(ReservationORM.item_id.asc(), ReservationORM.queue_position.asc())
        )
        return self._list(db, stmt)

    def list_pending_ordered(self, db: Session, item_id: str) -> list[Reservation]:
        stmt = (
            select(ReservationORM)
            .where(ReservationORM.item_id == item_id, ReservationORM.status == RESERVATION_PENDING)
            .order_by(ReservationORM.queue_position.asc())
        )
        return self._list(db, stmt)

    def _list(self, db: Session, stmt) -> list[Reservation]:
        with reading(db):
            rows = db.execute(stmt.execution_options(populate_existing=True)).scalars().all()
        return [_reservation_to_schema(r) for r in rows]

    def _require(self, db: Session, reservation_id: str) -> ReservationORM:
        row = db.get(ReservationORM, reservation_id, populate_existing=True)
        if row is None:
            raise NotFoundError(f"reservation {reservation_id} not found")
        return row
