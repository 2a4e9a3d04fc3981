from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import Session

from config import LendingConfig
from errors import DuplicateError, InvalidStateError, NotFoundError, OutOfStockError, ValidationError
from models import Item, ItemIn, ItemUpdate
from orm import ItemORM
from storage import reading, unit_of_work, utcnow

logger = logging.getLogger(__name__)

CATALOGUE_FIELDS = ("author", "isbn", "category", "description")


def blank_to_none(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def _item_to_schema(i: ItemORM) -> Item:
    return Item(
        id=i.id,
        title=i.title,
        author=i.author,
        isbn=i.isbn,
        category=i.category,
        description=i.description,
        total_copies=i.total_copies,
        available_copies=i.available_copies,
        active=i.active,
        created_at=i.created_at,
        updated_at=i.updated_at,
    )


class InventoryLedger:
    """Sole owner of an item's copy counters and reservation counter.

    Every counter change is a single conditional UPDATE, so the check and
    the change happen in one statement and concurrent callers on the same
    item are serialized by the database.
    """

    def __init__(self, config: Optional[LendingConfig] = None) -> None:
        self.config = config or LendingConfig()

    # ---------- Items ----------
    def isbn_exists(self, db: Session, isbn: str, exclude_item_id: Optional[str] = None) -> bool:
        stmt = select(ItemORM.id).where(ItemORM.isbn == isbn)
        if exclude_item_id:
            stmt = stmt.where(ItemORM.id != exclude_item_id)
        return db.execute(stmt).first() is not None

    def create_item(self, db: Session, body: ItemIn, *, commit: bool = True) -> Item:
        title = (body.title or "").strip()
        if not title:
            raise ValidationError("title is empty")
        if body.total_copies < 0:
            raise ValidationError("total_copies must be >= 0")

        now = utcnow()
        item = ItemORM(
            id=str(uuid4()),
            title=title,
            author=blank_to_none(body.author),
            isbn=blank_to_none(body.isbn),
            category=blank_to_none(body.category),
            description=blank_to_none(body.description),
            total_copies=body.total_copies,
            available_copies=body.total_copies,
            active=True,
            last_queue_position=0,
            created_at=now,
            updated_at=now,
        )
        with unit_of_work(db, commit=commit):
            if item.isbn and self.isbn_exists(db, item.isbn):
                raise DuplicateError(f"isbn {item.isbn} already exists")
            db.add(item)
        logger.info("item created item_id=%s isbn=%s total_copies=%s", item.id, item.isbn, item.total_copies)
        return _item_to_schema(item)

    def get_item(self, db: Session, item_id: str) -> Item:
        with reading(db):
            row = db.get(ItemORM, item_id, populate_existing=True)
        if row is None:
            raise NotFoundError(f"item {item_id} not found")
        return _item_to_schema(row)

    def list_items(
        self,
        db: Session,
        *,
        q: Optional[str] = None,
        category: Optional[str] = None,
        author: Optional[str] = None,
    ) -> list[Item]:
        """Catalogue listing ordered by title.

        ``q`` matches title, author or ISBN as a case-insensitive substring;
        ``category`` and ``author`` are case-insensitive exact matches.
        """
        stmt = select(ItemORM)
        q = blank_to_none(q)
        if q:
            like = f"%{q}%"
            stmt = stmt.where(
                or_(
                    ItemORM.title.ilike(like),
                    ItemORM.author.ilike(like),
                    ItemORM.isbn.ilike(like),
                )
            )
        category = blank_to_none(category)
        if category:
            stmt = stmt.where(func.lower(ItemORM.category) == category.lower())
        author = blank_to_none(author)
        if author:
            stmt = stmt.where(func.lower(ItemORM.author) == author.lower())

        stmt = stmt.order_by(ItemORM.title.asc(), ItemORM.id.asc())
        with reading(db):
            rows = db.execute(stmt.execution_options(populate_existing=True)).scalars().all()
        return [_item_to_schema(i) for i in rows]

    def update_details(self, db: Session, item_id: str, body: ItemUpdate, *, commit: bool = True) -> Item:
        """Change catalogue fields. Fields left out of ``body`` are kept; blank ones are cleared."""
        values = {}
        if "title" in body.model_fields_set:
            title = (body.title or "").strip()
            if not title:
                raise ValidationError("title is empty")
            values["title"] = title
        for name in CATALOGUE_FIELDS:
            if name in body.model_fields_set:
                values[name] = blank_to_none(getattr(body, name))

        with unit_of_work(db, commit=commit):
            isbn = values.get("isbn")
            if isbn and self.isbn_exists(db, isbn, exclude_item_id=item_id):
                raise DuplicateError(f"isbn {isbn} already exists")
            if values:
                result = db.execute(
                    update(ItemORM)
                    .where(ItemORM.id == item_id)
                    .values(**values, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise NotFoundError(f"item {item_id} not found")
            row = self._require(db, item_id)
        if values:
            logger.info("item details updated item_id=%s fields=%s", item_id, ",".join(sorted(values)))
        return _item_to_schema(row)

    def set_total_copies(self, db: Session, item_id: str, total_copies: int, *, commit: bool = True) -> Item:
        if total_copies < 0:
            raise ValidationError("total_copies must be >= 0")

        on_loan = ItemORM.total_copies - ItemORM.available_copies
        with unit_of_work(db, commit=commit):
            result = db.execute(
                update(ItemORM)
                .where(ItemORM.id == item_id, on_loan <= total_copies)
                .values(
                    total_copies=total_copies,
                    available_copies=total_copies - on_loan,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self._require(db, item_id)
                raise ValidationError("total_copies is below the number of copies on loan")
            row = db.get(ItemORM, item_id, populate_existing=True)
        logger.info("item copies adjusted item_id=%s total=%s available=%s", item_id, row.total_copies, row.available_copies)
        return _item_to_schema(row)

    def set_active(self, db: Session, item_id: str, active: bool, *, commit: bool = True) -> Item:
        with unit_of_work(db, commit=commit):
            result = db.execute(
                update(ItemORM)
                .where(ItemORM.id == item_id)
                .values(active=active, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"item {item_id} not found")
            row = db.get(ItemORM, item_id, populate_existing=True)
        logger.info("item active flag set item_id=%s active=%s", item_id, active)
        return _item_to_schema(row)

    # ---------- Copy counters ----------
    def reserve_copy(self, db: Session, item_id: str, *, commit: bool = True) -> Item:
        with unit_of_work(db, commit=commit):
            result = db.execute(
                update(ItemORM)
                .where(
                    ItemORM.id == item_id,
                    ItemORM.active.is_(True),
                    ItemORM.available_copies > 0,
                )
                .values(
                    available_copies=ItemORM.available_copies - 1,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                row = self._require(db, item_id)
                if not row.active:
                    raise InvalidStateError(f"item {item_id} is not active")
                logger.warning("out of stock item_id=%s", item_id)
                raise OutOfStockError(f"no copies of item {item_id} available")
            row = db.get(ItemORM, item_id, populate_existing=True)
        return _item_to_schema(row)

    def release_copy(self, db: Session, item_id: str, *, commit: bool = True) -> Item:
        with unit_of_work(db, commit=commit):
            result = db.execute(
                update(ItemORM)
                .where(ItemORM.id == item_id)
                .values(
                    available_copies=case(
                        (ItemORM.available_copies < ItemORM.total_copies, ItemORM.available_copies + 1),
                        else_=ItemORM.available_copies,
                    ),
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"item {item_id} not found")
            row = db.get(ItemORM, item_id, populate_existing=True)
        return _item_to_schema(row)

    def next_queue_position(self, db: Session, item_id: str) -> int:
        """Hand out the next reservation position for an item.

        Runs inside the caller's transaction; the row stays write-locked
        until that transaction ends, so positions come out gap-free.
        """
        result = db.execute(
            update(ItemORM)
            .where(ItemORM.id == item_id, ItemORM.active.is_(True))
            .values(last_queue_position=ItemORM.last_queue_position + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self._require(db, item_id)
            raise InvalidStateError(f"item {item_id} is not active")
        return db.execute(
            select(ItemORM.last_queue_position).where(ItemORM.id == item_id)
        ).scalar_one()

    def _require(self, db: Session, item_id: str) -> ItemORM:
        row = db.get(ItemORM, item_id, populate_existing=True)
        if row is None:
            raise NotFoundError(f"item {item_id} not found")
        return row
