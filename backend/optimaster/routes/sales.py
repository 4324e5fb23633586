# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/optimaster/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..models import Sale
from ..services import sales_service
from ..services.catalog_service import InsufficientStockError, ItemNotFoundError
from ..services.sale_ledger_service import SaleNotFoundError
from ..services.sales_service import InvalidTransitionError, TransactionFailure
from optimaster.time_utils import parse_date_window
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_sale_header,
    validate_payload,
    validate_payment_amount,
    validate_sale_lines,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_HEADER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "customer_email",
        "customer_mobile",
        "customer_place",
        "discount_cents",
        "advance_paid_cents",
    },
    required_on_create={"customer_name"},
)


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales, most recent first.

    Query parameters (all optional):
    - status: PENDING | COMPLETED | CANCELLED
    - since / until: ISO-8601 datetimes, inclusive; a bare-date until
      covers the whole day
    """
    try:
        status = request.args.get("status")
        if status:
            status = sales_service.normalize_status(status)
        since, until = parse_date_window(request.args.get("since"), request.args.get("until"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": f"Invalid since/until: {e}"}), 400

    sales = sales_service.list_sales(status=status or None, since=since, until=until)
    return jsonify({
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
    })


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Process a sale: record it as PENDING and take its items out of stock.

    Request body:
    {
        "customer_name": "Jane",                 // required
        "customer_email": "...", "customer_mobile": "...", "customer_place": "...",
        "items": [{"item_id": 1, "quantity": 2, "unit_price_cents": 1500}],
        "discount_cents": 0,
        "advance_paid_cents": 1000
    }

    If any line fails (unknown item, not enough stock) nothing is recorded.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    header_payload = {k: v for k, v in data.items() if k != "items"}

    try:
        header = validate_payload(
            model=Sale,
            payload=header_payload,
            policy=SALE_HEADER_POLICY,
            partial=False,
        )
        enforce_rules_sale_header(header)
        lines = validate_sale_lines(data.get("items"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        sale = sales_service.process_sale(header, lines, user_id=g.current_user.id)
    except ItemNotFoundError as e:
        return jsonify({"error": str(e), "details": {"item_id": e.item_id}}), 404
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TransactionFailure:
        return jsonify({"error": "Sale could not be processed"}), 500
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return jsonify({"error": "Internal server error"}), 500

    body = sale.to_dict()
    return jsonify({
        "id": body["id"],
        "date": body["date"],
        "balance_cents": body["balance_cents"],
        "status": body["status"],
        "sale": body,
    }), 201


@sales_bp.get("/<sale_ref>")
@require_auth
def get_sale_route(sale_ref: str):
    """Get one sale with its lines. Accepts "INV-12" or "12"."""
    try:
        sale = sales_service.get_sale(sale_ref)
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"sale": sale.to_dict()})


@sales_bp.patch("/<sale_ref>/status")
@require_auth
def update_status_route(sale_ref: str):
    """
    Change a sale's status, optionally collecting a payment first.

    Request body: {"status": "COMPLETED", "payment_received_cents": 500}

    CANCELLED returns every line's quantity to stock. Cancelled sales
    cannot change status again (409).
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        new_status = sales_service.normalize_status(data.get("status"))
        payment = validate_payment_amount(data.get("payment_received_cents"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        sale = sales_service.update_sale_status(
            sale_ref,
            new_status,
            payment,
            user_id=g.current_user.id,
        )
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TransactionFailure:
        return jsonify({"error": "Sale status could not be updated"}), 500
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"success": True, "sale": sale.to_dict()}), 200
