# Overview: Service-layer operations for the inventory catalog; encapsulates business logic and database work.

# backend/optimaster/services/catalog_service.py
"""
Catalog invariants (authoritative)

Quantity model:
- InventoryItem.quantity is a stored, mutable on-hand count.
- It is changed only by adjust_quantity(), which issues a single relative
  UPDATE (quantity = quantity + :delta). Concurrent adjustments therefore
  never lose updates, regardless of what the caller last read.
- A negative delta is applied only if the result stays >= 0; otherwise
  InsufficientStockError is raised and nothing is written.

Writers:
- restock (manual, +delta, own transaction)
- sales_service.process_sale (-delta per line, caller's transaction)
- sales_service cancellation (+delta per line, caller's transaction)

Errors:
- ItemNotFoundError: the id does not resolve. Distinct from storage errors
  (SQLAlchemyError), which propagate unchanged.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryItem
from ..validation import ConflictError, NotFoundError, is_record_id
from .concurrency import begin_write, lock_for_update, run_with_retry
from .supplier_service import get_supplier


class ItemNotFoundError(NotFoundError):
    """Raised when an inventory item id does not resolve."""

    def __init__(self, item_id: int):
        super().__init__(f"Inventory item {item_id} not found")
        self.item_id = item_id


class InsufficientStockError(ConflictError):
    """Raised when a decrement would drive quantity below zero."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def get_item(item_id: int, *, lock: bool = False) -> InventoryItem:
    if not is_record_id(item_id):
        raise ItemNotFoundError(item_id)
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise ItemNotFoundError(item_id)
    return item


def list_items() -> list[InventoryItem]:
    """Most recently created first."""
    return db.session.query(InventoryItem).order_by(InventoryItem.id.desc()).all()


def create_item(patch: dict) -> InventoryItem:
    """
    Create an inventory item from a validated patch.

    supplier_id must reference an existing supplier; sku must be unique.
    """
    get_supplier(patch["supplier_id"])

    sku = patch["sku"]
    existing = db.session.query(InventoryItem.id).filter_by(sku=sku).first()
    if existing is not None:
        raise ConflictError(f"SKU '{sku}' already exists")

    item = InventoryItem(
        name=patch["name"],
        category=patch["category"],
        sku=sku,
        description=patch.get("description"),
        quantity=patch.get("quantity") or 0,
        cost_price_cents=patch.get("cost_price_cents") or 0,
        selling_price_cents=patch.get("selling_price_cents") or 0,
        supplier_id=patch["supplier_id"],
    )
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same SKU
        db.session.rollback()
        raise ConflictError(f"SKU '{sku}' already exists")
    return item


def _current_quantity(item_id: int) -> int | None:
    return db.session.execute(
        select(InventoryItem.quantity).where(InventoryItem.id == item_id)
    ).scalar_one_or_none()


def adjust_quantity(item_id: int, delta: int, *, commit: bool = False) -> int:
    """
    Apply quantity += delta atomically and return the new quantity.

    Does not commit unless commit=True; sale processing calls this inside
    its own transaction and commits once for the whole unit.
    """
    if not is_record_id(item_id):
        raise ItemNotFoundError(item_id)
    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id == item_id)
        .values(quantity=InventoryItem.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if delta < 0:
        stmt = stmt.where(InventoryItem.quantity + delta >= 0)

    result = db.session.execute(stmt)

    if result.rowcount == 0:
        on_hand = _current_quantity(item_id)
        if on_hand is None:
            raise ItemNotFoundError(item_id)
        raise InsufficientStockError(
            "Insufficient stock",
            details={"items": [{
                "item_id": item_id,
                "requested_quantity": -delta,
                "on_hand": on_hand,
            }]},
        )

    # Refresh any cached instance so callers see the stored value
    item = db.session.get(InventoryItem, item_id, populate_existing=True)
    new_quantity = item.quantity

    if commit:
        db.session.commit()
    return new_quantity


def restock(item_id: int, quantity: int) -> int:
    """
    Manual restock: quantity += quantity, in its own transaction.

    Returns the updated quantity.
    """
    def _op():
        begin_write()
        return adjust_quantity(item_id, quantity, commit=True)

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise
