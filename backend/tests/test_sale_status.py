"""
Sale status lifecycle tests: payments, completion and cancellation.
"""

import pytest

from optimaster.models.sales import (
    SALE_STATUS_CANCELLED,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_PENDING,
)
from optimaster.services import sale_ledger_service, sales_service
from optimaster.services.sale_ledger_service import SaleNotFoundError, parse_sale_reference
from optimaster.services.sales_service import InvalidTransitionError
from optimaster.validation import ValidationError

from conftest import quantity_of


@pytest.fixture
def pending_sale(item_a):
    """A qty 3 at 100.00 with 150.00 paid up front; A drops to 7."""
    return sales_service.process_sale(
        {"customer_name": "Jane Doe", "discount_cents": 0, "advance_paid_cents": 15000},
        [{"item_id": item_a.id, "quantity": 3, "unit_price_cents": 10000}],
    )


class TestPayments:

    def test_complete_with_full_payment(self, pending_sale):
        sale = sales_service.update_sale_status(pending_sale.id, "COMPLETED", 15000)

        assert sale.status == SALE_STATUS_COMPLETED
        assert sale.balance_cents == 0
        assert sale.advance_paid_cents == sale.total_price_cents
        assert sale.completed_at is not None

    def test_partial_payment_keeps_pending(self, pending_sale):
        sale = sales_service.update_sale_status(pending_sale.id, "pending", 5000)

        assert sale.status == SALE_STATUS_PENDING
        assert sale.advance_paid_cents == 20000
        assert sale.balance_cents == 10000
        assert sale.completed_at is None

    def test_overpayment_floors_balance(self, pending_sale):
        sale = sales_service.update_sale_status(pending_sale.id, "COMPLETED", 20000)

        assert sale.balance_cents == 0
        assert sale.advance_paid_cents == 35000

    def test_zero_payment_changes_nothing(self, pending_sale):
        version = pending_sale.version_id
        sale = sales_service.update_sale_status(pending_sale.id, "PENDING", 0)

        assert sale.advance_paid_cents == 15000
        assert sale.balance_cents == 15000
        assert sale.version_id == version

    def test_payment_on_completed_sale(self, pending_sale):
        sales_service.update_sale_status(pending_sale.id, "COMPLETED", 10000)
        sale = sales_service.update_sale_status(pending_sale.id, "COMPLETED", 5000)

        assert sale.status == SALE_STATUS_COMPLETED
        assert sale.balance_cents == 0

    def test_completing_does_not_touch_stock(self, pending_sale, item_a):
        sales_service.update_sale_status(pending_sale.id, "COMPLETED", 15000)
        assert quantity_of(item_a.id) == 7


class TestCancellation:

    def test_cancel_returns_stock(self, pending_sale, item_a):
        assert quantity_of(item_a.id) == 7

        sale = sales_service.update_sale_status(pending_sale.id, "CANCELLED")

        assert sale.status == SALE_STATUS_CANCELLED
        assert sale.cancelled_at is not None
        assert sale.balance_cents == 15000
        assert sale.advance_paid_cents == 15000
        assert quantity_of(item_a.id) == 10

    def test_cancel_twice_rejected(self, pending_sale, item_a):
        sales_service.update_sale_status(pending_sale.id, "CANCELLED")

        with pytest.raises(InvalidTransitionError):
            sales_service.update_sale_status(pending_sale.id, "CANCELLED")
        assert quantity_of(item_a.id) == 10

    @pytest.mark.parametrize("status", ["PENDING", "COMPLETED"])
    def test_cancelled_is_terminal(self, pending_sale, status):
        sales_service.update_sale_status(pending_sale.id, "CANCELLED")

        with pytest.raises(InvalidTransitionError):
            sales_service.update_sale_status(pending_sale.id, status)

    def test_cancel_completed_sale_allowed_by_default(self, pending_sale, item_a):
        sales_service.update_sale_status(pending_sale.id, "COMPLETED", 15000)
        sale = sales_service.update_sale_status(pending_sale.id, "CANCELLED")

        assert sale.status == SALE_STATUS_CANCELLED
        assert quantity_of(item_a.id) == 10

    def test_cancel_completed_sale_can_be_disabled(self, app, pending_sale, item_a):
        app.config["ALLOW_CANCEL_COMPLETED_SALES"] = False
        sales_service.update_sale_status(pending_sale.id, "COMPLETED", 15000)

        with pytest.raises(InvalidTransitionError):
            sales_service.update_sale_status(pending_sale.id, "CANCELLED")
        assert quantity_of(item_a.id) == 7

    def test_completed_cannot_go_back_to_pending(self, pending_sale):
        sales_service.update_sale_status(pending_sale.id, "COMPLETED")

        with pytest.raises(InvalidTransitionError):
            sales_service.update_sale_status(pending_sale.id, "PENDING")

    def test_payment_with_cancel_rejected(self, pending_sale, item_a):
        with pytest.raises(ValidationError):
            sales_service.update_sale_status(pending_sale.id, "CANCELLED", 500)

        sale = sales_service.get_sale(pending_sale.id)
        assert sale.status == SALE_STATUS_PENDING
        assert sale.advance_paid_cents == 15000
        assert quantity_of(item_a.id) == 7


class TestLookup:

    def test_invoice_and_bare_references(self, pending_sale):
        ref = f"INV-{pending_sale.id}"
        assert sales_service.get_sale(ref).id == pending_sale.id
        assert sales_service.get_sale(ref.lower()).id == pending_sale.id
        assert sales_service.get_sale(str(pending_sale.id)).id == pending_sale.id

    def test_status_update_by_invoice_number(self, pending_sale):
        sale = sales_service.update_sale_status(f"INV-{pending_sale.id}", "completed", 15000)
        assert sale.status == SALE_STATUS_COMPLETED

    def test_unknown_sale(self, app):
        with pytest.raises(SaleNotFoundError):
            sales_service.update_sale_status("INV-999", "COMPLETED")

    @pytest.mark.parametrize("ref", [
        "INV-",
        "INV-abc",
        "",
        "12x",
        "INV-\N{SUPERSCRIPT TWO}",
        "INV-\N{ARABIC-INDIC DIGIT SEVEN}",
        "INV-" + "9" * 25,
        "9" * 20,
        "INV-0",
        0,
        -5,
        2**63,
    ])
    def test_malformed_reference(self, ref):
        with pytest.raises(SaleNotFoundError):
            parse_sale_reference(ref)

    def test_largest_reference_is_accepted(self):
        assert parse_sale_reference(f"INV-{2**63 - 1}") == 2**63 - 1

    @pytest.mark.parametrize("ref", ["INV-\N{SUPERSCRIPT TWO}", "INV-" + "9" * 25])
    def test_unresolvable_reference_in_status_update(self, app, ref):
        with pytest.raises(SaleNotFoundError):
            sales_service.update_sale_status(ref, "COMPLETED")
        with pytest.raises(SaleNotFoundError):
            sales_service.get_sale(ref)

    @pytest.mark.parametrize("status", [None, "", "SHIPPED", 3])
    def test_invalid_status(self, pending_sale, status):
        with pytest.raises(ValidationError):
            sales_service.update_sale_status(pending_sale.id, status)


class TestLedgerOperations:
    """Payments and status writes addressed by sale id or invoice number."""

    def test_payment_by_invoice_number(self, pending_sale):
        sale = sale_ledger_service.apply_payment(f"INV-{pending_sale.id}", 5000)
        assert sale.id == pending_sale.id
        assert sale.advance_paid_cents == 20000
        assert sale.balance_cents == 10000

    def test_status_by_sale_id(self, pending_sale):
        sale = sale_ledger_service.set_status(pending_sale.id, SALE_STATUS_COMPLETED)
        assert sale.status == SALE_STATUS_COMPLETED

    @pytest.mark.parametrize("ref", [999999, "INV-999", "INV-\N{SUPERSCRIPT TWO}"])
    def test_unknown_sale(self, app, ref):
        with pytest.raises(SaleNotFoundError):
            sale_ledger_service.apply_payment(ref, 100)
        with pytest.raises(SaleNotFoundError):
            sale_ledger_service.set_status(ref, SALE_STATUS_COMPLETED)

    def test_negative_payment_rejected_before_lookup(self, app):
        with pytest.raises(ValidationError):
            sale_ledger_service.apply_payment(999999, -1)
