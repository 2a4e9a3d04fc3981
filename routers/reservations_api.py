from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dependencies import get_db, get_ledger, get_reservation_queue
from inventory import InventoryLedger
from models import Reservation, ReservationIn, ReservationStatusUpdate
from reservations import ReservationQueue

router = APIRouter(tags=["reservations"])


@router.post("/reservations", response_model=Reservation, status_code=201)
def create_reservation_api(
    body: ReservationIn,
    db: Session = Depends(get_db),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    return queue.create(db, body.item_id, body.borrower_id)


@router.get("/reservations", response_model=list[Reservation])
def list_reservations_api(
    db: Session = Depends(get_db),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    return queue.list_reservations(db)


@router.get("/reservations/pending", response_model=list[Reservation])
def list_pending_reservations_api(
    db: Session = Depends(get_db),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    return queue.list_pending(db)


@router.get("/reservations/{reservation_id}", response_model=Reservation)
def get_reservation_api(
    reservation_id: str,
    db: Session = Depends(get_db),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    return queue.get_reservation(db, reservation_id)


@router.patch("/reservations/{reservation_id}/status", response_model=Reservation)
def update_reservation_status_api(
    reservation_id: str,
    body: ReservationStatusUpdate,
    db: Session = Depends(get_db),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    return queue.update_status(db, reservation_id, body.status)


@router.post("/reservations/{reservation_id}/cancel", response_model=Reservation)
def cancel_reservation_api(
    reservation_id: str,
    db: Session = Depends(get_db),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    return queue.cancel(db, reservation_id)


@router.get("/items/{item_id}/reservations", response_model=list[Reservation])
def list_item_reservations_api(
    item_id: str,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    ledger.get_item(db, item_id)
    return queue.list_by_item(db, item_id)


@router.get("/items/{item_id}/reservations/pending", response_model=list[Reservation])
def list_item_pending_reservations_api(
    item_id: str,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    ledger.get_item(db, item_id)
    return queue.list_pending_ordered(db, item_id)


@router.get("/borrowers/{borrower_id}/reservations", response_model=list[Reservation])
def list_borrower_reservations_api(
    borrower_id: str,
    db: Session = Depends(get_db),
    queue: ReservationQueue = Depends(get_reservation_queue),
):
    return queue.list_by_borrower(db, borrower_id)
