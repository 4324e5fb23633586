"""
Sales Service - sale transaction processing

process_sale and update_sale_status each run as one database transaction
spanning the sale ledger and the inventory catalog. Either every effect of
the unit is committed or none is: any failure rolls back the sale header,
its lines, payments and every stock movement staged so far.

Status lifecycle:
    PENDING   -> PENDING    (payment only)
    PENDING   -> COMPLETED  (optional final payment, then complete)
    PENDING   -> CANCELLED  (stock returned)
    COMPLETED -> COMPLETED  (payment only)
    COMPLETED -> CANCELLED  (stock returned; ALLOW_CANCEL_COMPLETED_SALES)
    CANCELLED is terminal.

There is no idempotency key: a client that retries after a successful
commit it never saw will create a second sale.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale
from ..models.sales import (
    SALE_STATUSES,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_PENDING,
)
from ..validation import ConflictError, NotFoundError, ValidationError
from optimaster.time_utils import utcnow
from . import catalog_service, sale_ledger_service
from .catalog_service import InsufficientStockError
from .concurrency import begin_write, run_with_retry


ALLOWED_TRANSITIONS = {
    SALE_STATUS_PENDING: {SALE_STATUS_PENDING, SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED},
    SALE_STATUS_COMPLETED: {SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED},
    SALE_STATUS_CANCELLED: set(),
}


class InvalidTransitionError(ConflictError):
    """Raised when a status change is not allowed from the sale's current status."""
    pass


class TransactionFailure(Exception):
    """
    A multi-step sale operation failed and was rolled back.

    The message is safe to show to callers; the storage error is chained
    as __cause__ and logged.
    """
    pass


def normalize_status(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("status is required")
    status = value.strip().upper()
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SALE_STATUSES)}")
    return status


def _run_unit(op, action: str):
    """
    Run op with retry; roll back and translate storage errors on failure.

    Domain errors (validation, not found, conflicts) propagate unchanged.
    """
    try:
        return run_with_retry(op)
    except (ValidationError, ConflictError, NotFoundError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Rolled back %s: %s", action, exc)
        raise TransactionFailure(f"Could not {action}; no changes were saved") from exc
    except Exception:
        db.session.rollback()
        raise


def _snapshot_lines(lines: list[dict]) -> list[dict]:
    """
    Resolve every requested line against the catalog.

    name, sku and unit_cost_price_cents always come from the stored item;
    unit_price_cents falls back to the item's selling price.
    """
    snapshots = []
    for line in lines:
        item = catalog_service.get_item(line["item_id"], lock=True)
        unit_price = line.get("unit_price_cents")
        if unit_price is None:
            unit_price = item.selling_price_cents
        snapshots.append({
            "item_id": item.id,
            "name": item.name,
            "sku": item.sku,
            "quantity": line["quantity"],
            "unit_price_cents": unit_price,
            "unit_cost_price_cents": item.cost_price_cents,
            "on_hand": item.quantity,
        })
    return snapshots


def _validate_on_hand(snapshots: list[dict]) -> None:
    requested: dict[int, int] = {}
    on_hand: dict[int, int] = {}
    for line in snapshots:
        requested[line["item_id"]] = requested.get(line["item_id"], 0) + line["quantity"]
        on_hand[line["item_id"]] = line["on_hand"]

    insufficient = [
        {"item_id": item_id, "requested_quantity": qty, "on_hand": on_hand[item_id]}
        for item_id, qty in requested.items()
        if on_hand[item_id] < qty
    ]
    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock to process sale",
            details={"items": insufficient},
        )


def process_sale(header: dict, lines: list[dict], *, user_id: int | None = None) -> Sale:
    """
    Create a PENDING sale and take its stock, as one transaction.

    header: validated customer_* fields, discount_cents, advance_paid_cents.
    lines: validated [{item_id, quantity, unit_price_cents|None}].

    Raises ItemNotFoundError, InsufficientStockError, ValidationError or
    TransactionFailure; in every case nothing is committed.
    """
    if not lines:
        raise ValidationError("Cannot process a sale with no items")

    def _op():
        begin_write()

        snapshots = _snapshot_lines(lines)
        _validate_on_hand(snapshots)

        sale = sale_ledger_service.create_sale(header, snapshots, created_by_user_id=user_id)

        # adjust_quantity re-checks on-hand in SQL, so a concurrent writer
        # between the read above and this update still cannot oversell
        for line in snapshots:
            catalog_service.adjust_quantity(line["item_id"], -line["quantity"])

        db.session.commit()
        return sale

    sale = _run_unit(_op, "process sale")
    current_app.logger.info(
        "Processed sale %s: %d line(s), total=%d, balance=%d",
        sale.invoice_number, len(sale.items), sale.total_price_cents, sale.balance_cents,
    )
    return sale


def _check_transition(sale: Sale, new_status: str, payment_cents: int) -> None:
    if sale.status == SALE_STATUS_CANCELLED:
        raise InvalidTransitionError(f"Sale {sale.invoice_number} is cancelled and cannot change status")

    if new_status not in ALLOWED_TRANSITIONS[sale.status]:
        raise InvalidTransitionError(
            f"Cannot change sale {sale.invoice_number} from {sale.status} to {new_status}"
        )

    if (
        sale.status == SALE_STATUS_COMPLETED
        and new_status == SALE_STATUS_CANCELLED
        and not current_app.config.get("ALLOW_CANCEL_COMPLETED_SALES", True)
    ):
        raise InvalidTransitionError(f"Completed sale {sale.invoice_number} cannot be cancelled")

    if new_status == SALE_STATUS_CANCELLED and payment_cents:
        raise ValidationError("payment_received_cents cannot be recorded when cancelling a sale")


def update_sale_status(
    sale_ref,
    new_status: str,
    payment_received_cents: int = 0,
    *,
    user_id: int | None = None,
) -> Sale:
    """
    Apply an optional payment, move the sale to new_status and, on
    cancellation, return every line's quantity to stock. One transaction.
    """
    new_status = normalize_status(new_status)
    payment_cents = payment_received_cents or 0

    def _op():
        begin_write()

        sale = sale_ledger_service.get_sale(sale_ref, lock=True)
        _check_transition(sale, new_status, payment_cents)

        if payment_cents:
            sale_ledger_service.apply_payment(sale, payment_cents)

        previous = sale.status
        sale_ledger_service.set_status(sale, new_status)

        if new_status == SALE_STATUS_COMPLETED and previous != SALE_STATUS_COMPLETED:
            sale.completed_at = utcnow()

        if new_status == SALE_STATUS_CANCELLED:
            sale.cancelled_at = utcnow()
            for line in sale.items:
                catalog_service.adjust_quantity(line.item_id, line.quantity)

        db.session.commit()
        return sale, previous

    sale, previous = _run_unit(_op, "update sale status")
    current_app.logger.info(
        "Sale %s: %s -> %s (payment=%d, by user %s)",
        sale.invoice_number, previous, sale.status, payment_cents, user_id,
    )
    return sale


def get_sale(sale_ref) -> Sale:
    return sale_ledger_service.get_sale(sale_ref)


def list_sales(**filters) -> list[Sale]:
    return sale_ledger_service.list_sales(**filters)
