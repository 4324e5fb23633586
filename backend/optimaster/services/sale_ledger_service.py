# Overview: Service-layer operations for the sale ledger; sale headers, lines, payments and status.

"""
Sale Ledger

Stores sales and their lines. Every function here works inside the caller's
transaction (flush only, never commit); sales_service owns the transaction
boundary so a sale and its stock movements commit or roll back together.

apply_payment and set_status take a loaded Sale or a sale reference
("INV-12", "12", 12). A reference is resolved with a row lock and raises
SaleNotFoundError when it does not resolve.

Balance rules:
- total_price_cents = max(0, sub_total_cents - discount_cents)
- balance_cents = max(0, total_price_cents - advance_paid_cents)
- a payment adds to advance_paid_cents and lowers balance_cents, floor 0
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Sale, SaleItem
from ..models.sales import INVOICE_PREFIX, SALE_STATUSES, SALE_STATUS_PENDING
from ..validation import NotFoundError, ValidationError, is_record_id
from optimaster.time_utils import utcnow
from .concurrency import lock_for_update


class SaleNotFoundError(NotFoundError):
    """Raised when a sale identity does not resolve."""
    pass


def parse_sale_reference(ref) -> int:
    """
    Accept "INV-12", "inv-12", "12" or 12 and return the numeric id.
    """
    if isinstance(ref, int) and not isinstance(ref, bool):
        sale_id = ref
    else:
        s = str(ref).strip()
        if s.upper().startswith(INVOICE_PREFIX):
            s = s[len(INVOICE_PREFIX):]
        # isdigit() alone also accepts digits int() rejects, e.g. "²"
        if not (s.isascii() and s.isdigit()):
            raise SaleNotFoundError(f"Sale {ref} not found")
        sale_id = int(s)
    if not is_record_id(sale_id):
        raise SaleNotFoundError(f"Sale {ref} not found")
    return sale_id


def compute_totals(sub_total_cents: int, discount_cents: int, advance_paid_cents: int) -> dict:
    total = max(0, sub_total_cents - discount_cents)
    return {
        "sub_total_cents": sub_total_cents,
        "discount_cents": discount_cents,
        "total_price_cents": total,
        "advance_paid_cents": advance_paid_cents,
        "balance_cents": max(0, total - advance_paid_cents),
    }


def create_sale(header: dict, items: list[dict], *, created_by_user_id: int | None = None) -> Sale:
    """
    Stage a sale header and all of its lines as one unit (flushed, not committed).

    header: customer_* fields plus discount_cents / advance_paid_cents.
    items: fully snapshotted lines (item_id, name, sku, quantity,
    unit_price_cents, unit_cost_price_cents).
    """
    sub_total = sum(line["quantity"] * line["unit_price_cents"] for line in items)
    totals = compute_totals(
        sub_total,
        header.get("discount_cents") or 0,
        header.get("advance_paid_cents") or 0,
    )

    sale = Sale(
        customer_name=header["customer_name"],
        customer_email=header.get("customer_email"),
        customer_mobile=header.get("customer_mobile"),
        customer_place=header.get("customer_place"),
        status=SALE_STATUS_PENDING,
        created_at=utcnow(),
        created_by_user_id=created_by_user_id,
        **totals,
    )

    for line in items:
        sale.items.append(SaleItem(
            item_id=line["item_id"],
            name=line["name"],
            sku=line["sku"],
            quantity=line["quantity"],
            unit_price_cents=line["unit_price_cents"],
            unit_cost_price_cents=line["unit_cost_price_cents"],
            sub_total_cents=line["quantity"] * line["unit_price_cents"],
        ))

    db.session.add(sale)
    db.session.flush()
    return sale


def get_sale(sale_ref, *, lock: bool = False) -> Sale:
    sale_id = parse_sale_reference(sale_ref)
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise SaleNotFoundError(f"Sale {INVOICE_PREFIX}{sale_id} not found")
    return sale


def list_sales(
    *,
    status: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[Sale]:
    """Most recent first by date. since/until are inclusive."""
    q = db.session.query(Sale)
    if status is not None:
        q = q.filter(Sale.status == status)
    if since is not None:
        q = q.filter(Sale.created_at >= since)
    if until is not None:
        q = q.filter(Sale.created_at <= until)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def _resolve(sale_or_ref) -> Sale:
    if isinstance(sale_or_ref, Sale):
        return sale_or_ref
    return get_sale(sale_or_ref, lock=True)


def apply_payment(sale_or_ref, amount_cents: int) -> Sale:
    """
    advance_paid += amount; balance = max(0, balance - amount).

    The sale row is versioned, so a concurrent writer that read the same
    version fails with StaleDataError at flush instead of overwriting.
    """
    if amount_cents < 0:
        raise ValidationError("payment amount must be >= 0")
    sale = _resolve(sale_or_ref)
    if amount_cents == 0:
        return sale

    sale.advance_paid_cents = sale.advance_paid_cents + amount_cents
    sale.balance_cents = max(0, sale.balance_cents - amount_cents)
    db.session.flush()
    return sale


def set_status(sale_or_ref, status: str) -> Sale:
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SALE_STATUSES)}")
    sale = _resolve(sale_or_ref)
    sale.status = status
    db.session.flush()
    return sale
