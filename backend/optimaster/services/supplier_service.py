# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers are referenced by every inventory item. They can be created and
updated but never deleted, so an item's supplier_id always resolves.
"""

from ..extensions import db
from ..models import Supplier
from ..validation import NotFoundError, ValidationError, is_record_id


class SupplierNotFoundError(NotFoundError):
    """Raised when a supplier is not found."""
    pass


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id) if is_record_id(supplier_id) else None
    if supplier is None:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers() -> list[Supplier]:
    """Most recently created first."""
    return db.session.query(Supplier).order_by(Supplier.id.desc()).all()


def create_supplier(*, name: str, mobile: str, address: str | None = None) -> Supplier:
    """
    Create a new supplier.

    Fields are expected to be validated by the route's payload policy;
    name and mobile are re-checked here for non-route callers (CLI, tests).
    """
    if not name or not name.strip():
        raise ValidationError("name is required")
    if not mobile or not mobile.strip():
        raise ValidationError("mobile is required")

    supplier = Supplier(name=name.strip(), mobile=mobile.strip(), address=address)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, patch: dict) -> Supplier:
    """
    Apply a validated patch (name/mobile/address) to a supplier.
    """
    supplier = get_supplier(supplier_id)

    for key in ("name", "mobile", "address"):
        if key in patch:
            setattr(supplier, key, patch[key])

    db.session.commit()
    return supplier
