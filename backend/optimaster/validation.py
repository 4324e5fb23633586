from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum money value: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

# Maximum quantity in a single stock movement or sale line
MAX_QUANTITY = 1_000_000

# Largest primary key any supported backend stores (signed 64-bit)
MAX_RECORD_ID = 2**63 - 1


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level: a referenced record does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion for JSON input.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals and
    scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def is_record_id(value: Any) -> bool:
    """True for an int that can be a stored primary key."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 < value <= MAX_RECORD_ID
    )


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        amount = patch[key]
        if amount < 0:
            raise ValidationError(f"{key} must be >= 0")
        if amount > MAX_AMOUNT_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_rules_inventory_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    if "quantity" in patch and patch["quantity"] is not None:
        if patch["quantity"] < 0:
            raise ValidationError("quantity must be >= 0")
        if patch["quantity"] > MAX_QUANTITY:
            raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")
    _check_amount(patch, "cost_price_cents")
    _check_amount(patch, "selling_price_cents")


def enforce_rules_restock(quantity_delta: Any) -> int:
    # Restock only adds stock
    qty = coerce_int("quantity_delta", quantity_delta)
    if qty <= 0:
        raise ValidationError("quantity_delta must be > 0 for restock")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"quantity_delta cannot exceed {MAX_QUANTITY}")
    return qty


def enforce_rules_sale_header(patch: dict) -> None:
    _check_amount(patch, "discount_cents")
    _check_amount(patch, "advance_paid_cents")


def validate_sale_lines(raw_lines: Any) -> list[dict]:
    """
    Normalize requested sale lines to [{item_id, quantity, unit_price_cents}].

    unit_price_cents may be None, meaning "use the item's selling price".
    """
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        unknown = set(raw.keys()) - {"item_id", "quantity", "unit_price_cents"}
        if unknown:
            raise ValidationError(f"items[{index}] field not allowed: {', '.join(sorted(unknown))}")

        if raw.get("item_id") is None:
            raise ValidationError(f"items[{index}].item_id is required")
        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")

        item_id = coerce_int(f"items[{index}].item_id", raw["item_id"])
        quantity = coerce_int(f"items[{index}].quantity", raw["quantity"])
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_QUANTITY}")

        unit_price = raw.get("unit_price_cents")
        if unit_price is not None:
            unit_price = coerce_int(f"items[{index}].unit_price_cents", unit_price)
            if unit_price < 0:
                raise ValidationError(f"items[{index}].unit_price_cents must be >= 0")
            if unit_price > MAX_AMOUNT_CENTS:
                raise ValidationError(f"items[{index}].unit_price_cents cannot exceed {MAX_AMOUNT_CENTS}")

        lines.append({"item_id": item_id, "quantity": quantity, "unit_price_cents": unit_price})

    return lines


def validate_payment_amount(value: Any) -> int:
    """Payment amounts are non-negative cents; 0 means no payment."""
    if value is None:
        return 0
    amount = coerce_int("payment_received_cents", value)
    if amount < 0:
        raise ValidationError("payment_received_cents must be >= 0")
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationError(f"payment_received_cents cannot exceed {MAX_AMOUNT_CENTS}")
    return amount
