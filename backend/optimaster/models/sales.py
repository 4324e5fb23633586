from __future__ import annotations

from ..extensions import db
from optimaster.time_utils import to_utc_z

SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_CANCELLED = "CANCELLED"

SALE_STATUSES = (SALE_STATUS_PENDING, SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED)

# Public sale identities are "INV-<id>"
INVOICE_PREFIX = "INV-"


class Sale(db.Model):
    """
    Customer sale with payment tracking.

    Amounts are integer cents:
    - total_price_cents = max(0, sub_total_cents - discount_cents)
    - balance_cents = max(0, total_price_cents - advance_paid_cents)

    Sales are never deleted. Header and lines are written in one transaction
    by sales_service.process_sale. version_id makes concurrent status
    transitions on the same sale conflict instead of both applying.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        db.CheckConstraint("advance_paid_cents >= 0", name="ck_sales_advance_nonnegative"),
        db.CheckConstraint("balance_cents >= 0", name="ck_sales_balance_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_mobile = db.Column(db.String(32), nullable=True)
    customer_place = db.Column(db.String(255), nullable=True)

    sub_total_cents = db.Column(db.BigInteger, nullable=False, default=0)
    discount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_price_cents = db.Column(db.BigInteger, nullable=False, default=0)
    advance_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)
    balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_PENDING, index=True)

    # Creation timestamp ("date"); immutable
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def invoice_number(self) -> str:
        return f"{INVOICE_PREFIX}{self.id}"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.invoice_number,
            "sale_id": self.id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_mobile": self.customer_mobile,
            "customer_place": self.customer_place,
            "sub_total_cents": self.sub_total_cents,
            "discount_cents": self.discount_cents,
            "total_price_cents": self.total_price_cents,
            "advance_paid_cents": self.advance_paid_cents,
            "balance_cents": self.balance_cents,
            "status": self.status,
            "date": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line on a sale: point-in-time snapshot of one inventory item.

    name, sku and unit_cost_price_cents are copied from the inventory item
    when the sale is processed and are not updated afterwards.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.BigInteger, nullable=False)
    unit_cost_price_cents = db.Column(db.BigInteger, nullable=False)
    sub_total_cents = db.Column(db.BigInteger, nullable=False)

    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_price_cents": self.unit_cost_price_cents,
            "sub_total_cents": self.sub_total_cents,
        }
