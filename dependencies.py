from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from config import LendingConfig
from db import SessionLocal
from inventory import InventoryLedger
from loans import LoanManager
from reservations import ReservationQueue
from sweeper import ExpirySweeper


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_config(request: Request) -> LendingConfig:
    return request.app.state.config


def get_ledger(config: LendingConfig = Depends(get_config)) -> InventoryLedger:
    return InventoryLedger(config)


def get_loan_manager(config: LendingConfig = Depends(get_config)) -> LoanManager:
    return LoanManager(config)


def get_reservation_queue(config: LendingConfig = Depends(get_config)) -> ReservationQueue:
    return ReservationQueue(config)


def get_sweeper(config: LendingConfig = Depends(get_config)) -> ExpirySweeper:
    return ExpirySweeper(config)
