# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

All routes require authentication. Suppliers cannot be deleted.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..models import Supplier
from ..services import supplier_service
from ..services.supplier_service import SupplierNotFoundError
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "mobile", "address"},
    required_on_create={"name", "mobile"},
)


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    """List suppliers, most recently created first."""
    suppliers = supplier_service.list_suppliers()
    return jsonify({
        "items": [s.to_dict() for s in suppliers],
        "count": len(suppliers),
    })


@suppliers_bp.post("")
@require_auth
def create_supplier_route():
    """
    Create a new supplier.

    Request body:
    {
        "name": "Lens Co",      // required
        "mobile": "555-0100",   // required
        "address": "..."        // optional
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Supplier,
            payload=payload,
            policy=SUPPLIER_POLICY,
            partial=False,
        )
        supplier = supplier_service.create_supplier(
            name=patch["name"],
            mobile=patch["mobile"],
            address=patch.get("address"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"supplier": supplier.to_dict()}), 201


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"supplier": supplier.to_dict()})


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    """
    Replace a supplier's name, mobile and address.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Supplier,
            payload=payload,
            policy=SUPPLIER_POLICY,
            partial=False,
        )
        supplier = supplier_service.update_supplier(supplier_id, patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"supplier": supplier.to_dict()})
