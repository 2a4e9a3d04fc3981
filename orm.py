from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from db import Base

class ItemORM(Base):
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("total_copies >= 0", name="ck_items_total_nonneg"),
        CheckConstraint("available_copies >= 0", name="ck_items_available_nonneg"),
        CheckConstraint("available_copies <= total_copies", name="ck_items_available_le_total"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False, index=True)
    author: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    isbn: Mapped[str | None] = mapped_column(String, nullable=True, unique=True, index=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # highest reservation queue position handed out for this item
    last_queue_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

class LoanORM(Base):
    __tablename__ = "loans"
    __table_args__ = (
        CheckConstraint("renewal_count >= 0", name="ck_loans_renewal_nonneg"),
        CheckConstraint("late_fee IS NULL OR late_fee >= 0", name="ck_loans_fee_nonneg"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    item_id: Mapped[str] = mapped_column(String, ForeignKey("items.id"), nullable=False, index=True)

    borrower_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    checkout_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    returned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False, default="Active", index=True)
    renewal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class ReservationORM(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("item_id", "queue_position", name="uq_reservations_item_position"),
        CheckConstraint("queue_position >= 1", name="ck_reservations_position_positive"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    item_id: Mapped[str] = mapped_column(String, ForeignKey("items.id"), nullable=False, index=True)

    borrower_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    reserved_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[str] = mapped_column(String, nullable=False, default="Pending", index=True)
    queue_position: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
