from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dependencies import get_db, get_ledger
from inventory import InventoryLedger
from models import Item, ItemIn, ItemUpdate
from storage import unit_of_work

router = APIRouter(tags=["items"])


@router.post("/items", response_model=Item, status_code=201)
def create_item_api(
    body: ItemIn,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return ledger.create_item(db, body)


@router.get("/items", response_model=list[Item])
def list_items_api(
    q: Optional[str] = None,
    category: Optional[str] = None,
    author: Optional[str] = None,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return ledger.list_items(db, q=q, category=category, author=author)


@router.get("/items/{item_id}", response_model=Item)
def get_item_api(
    item_id: str,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return ledger.get_item(db, item_id)


@router.patch("/items/{item_id}", response_model=Item)
def update_item_api(
    item_id: str,
    body: ItemUpdate,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    # all changes land in one transaction
    with unit_of_work(db, commit=True):
        item = None
        if body.model_fields_set - {"total_copies", "active"}:
            item = ledger.update_details(db, item_id, body, commit=False)
        if body.total_copies is not None:
            item = ledger.set_total_copies(db, item_id, body.total_copies, commit=False)
        if body.active is not None:
            item = ledger.set_active(db, item_id, body.active, commit=False)
    if item is None:
        item = ledger.get_item(db, item_id)
    return item
