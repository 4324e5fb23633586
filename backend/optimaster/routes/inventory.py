# backend/optimaster/routes/inventory.py
"""
Inventory catalog routes.

All routes require authentication.
- GET   /api/inventory               list items, newest first
- POST  /api/inventory               create an item (supplier must exist, SKU unique)
- GET   /api/inventory/<id>          one item
- PATCH /api/inventory/<id>/stock    restock: {"quantity_delta": n}, n > 0

Stock only goes down through sales (see routes/sales.py).
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..models import InventoryItem
from ..services import catalog_service
from ..services.catalog_service import ItemNotFoundError
from ..services.supplier_service import SupplierNotFoundError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_inventory_item,
    enforce_rules_restock,
    validate_payload,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "category",
        "sku",
        "description",
        "quantity",
        "cost_price_cents",
        "selling_price_cents",
        "supplier_id",
    },
    required_on_create={"name", "category", "sku", "supplier_id"},
)


@inventory_bp.get("")
@require_auth
def list_items_route():
    items = catalog_service.list_items()
    return jsonify({
        "items": [i.to_dict() for i in items],
        "count": len(items),
    })


@inventory_bp.post("")
@require_auth
def create_item_route():
    """
    Create an inventory item.

    Money fields are integer cents. quantity defaults to 0.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=INVENTORY_ITEM_POLICY,
            partial=False,
        )
        enforce_rules_inventory_item(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        item = catalog_service.create_item(patch)
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"item": item.to_dict()}), 201


@inventory_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = catalog_service.get_item(item_id)
    except ItemNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": item.to_dict()})


@inventory_bp.patch("/<int:item_id>/stock")
@require_auth
def restock_route(item_id: int):
    """
    Restock an item.

    Request body: {"quantity_delta": 5}
    Returns the item and its updated quantity.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        quantity = enforce_rules_restock(payload.get("quantity_delta"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        new_quantity = catalog_service.restock(item_id, quantity)
    except ItemNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to restock item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Restocked item %s by %d (now %d)", item_id, quantity, new_quantity)
    item = catalog_service.get_item(item_id)
    return jsonify({"item": item.to_dict(), "quantity": new_quantity}), 200
