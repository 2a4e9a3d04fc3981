from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

LoanStatus = Literal["Active", "Returned"]
ReservationStatus = Literal["Pending", "Fulfilled", "Cancelled", "Expired"]
TerminalReservationStatus = Literal["Fulfilled", "Cancelled", "Expired"]

LOAN_ACTIVE = "Active"
LOAN_RETURNED = "Returned"

RESERVATION_PENDING = "Pending"
RESERVATION_FULFILLED = "Fulfilled"
RESERVATION_CANCELLED = "Cancelled"
RESERVATION_EXPIRED = "Expired"
TERMINAL_RESERVATION_STATUSES = {
    RESERVATION_FULFILLED,
    RESERVATION_CANCELLED,
    RESERVATION_EXPIRED,
}

class ItemIn(BaseModel):
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    total_copies: int = Field(default=1, ge=0)

class ItemUpdate(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    total_copies: Optional[int] = Field(default=None, ge=0)
    active: Optional[bool] = None

class Item(BaseModel):
    id: str
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    total_copies: int
    available_copies: int
    active: bool = True
    created_at: datetime
    updated_at: datetime

class CheckoutIn(BaseModel):
    item_id: str
    borrower_id: str
    due_at: Optional[datetime] = None

class Loan(BaseModel):
    id: str
    item_id: str
    borrower_id: str
    checkout_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    status: LoanStatus = "Active"
    renewal_count: int = 0
    late_fee: Optional[Decimal] = None

class ReservationIn(BaseModel):
    item_id: str
    borrower_id: str

class ReservationStatusUpdate(BaseModel):
    status: TerminalReservationStatus

class Reservation(BaseModel):
    id: str
    item_id: str
    borrower_id: str
    reserved_at: datetime
    expires_at: datetime
    status: ReservationStatus = "Pending"
    queue_position: int

class SweepResult(BaseModel):
    ran_at: datetime
    fees_updated: int = 0
    reservations_expired: int = 0
