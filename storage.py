from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import StorageError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # stored columns are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()


@contextmanager
def unit_of_work(db: Session, *, commit: bool) -> Iterator[Session]:
    """Run a block of writes as one transaction.

    With ``commit=True`` the block owns the transaction: it is committed on
    success and rolled back on any error. With ``commit=False`` the block is
    only flushed and the caller decides. Database errors always roll back and
    surface as StorageError.
    """
    try:
        yield db
        persist(db, commit=commit)
    except SQLAlchemyError as exc:
        raise _storage_failure(db, exc) from exc
    except Exception:
        if commit:
            db.rollback()
        raise


@contextmanager
def reading(db: Session) -> Iterator[Session]:
    try:
        yield db
    except SQLAlchemyError as exc:
        raise _storage_failure(db, exc) from exc


def _storage_failure(db: Session, exc: SQLAlchemyError) -> StorageError:
    db.rollback()
    logger.error("storage failure: %s", exc)
    return StorageError(f"storage failure: {exc.__class__.__name__}")
