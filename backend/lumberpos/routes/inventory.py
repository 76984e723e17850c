# backend/lumberpos/routes/inventory.py
"""
Inventory routes.

- add / remove: manual stock movements with a required reason
- PUT product/<id>: stock levels (min/max/location) and counted quantity
- movements: the append-only audit log
"""
from flask import Blueprint, request, current_app

from ..models import Inventory
from ..models.inventory import MOVEMENT_TYPES
from ..services import inventory_service
from ..validation import (
    ModelValidationPolicy,
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_choice,
    enforce_rules_stock_levels,
    error_body,
    parse_optional_id,
    parse_positive_quantity,
    parse_reason,
    validate_payload,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

STOCK_LEVELS_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "min_stock", "max_stock", "location"},
)


def _movement_payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    quantity = parse_positive_quantity("quantity", data.get("quantity"))
    reason = parse_reason(data.get("reason"))
    user_id = parse_optional_id("user_id", data.get("user_id"))
    return quantity, reason, user_id


@inventory_bp.get("")
def list_inventory_route():
    """
    Stock levels for active products, low stock first.

    Query params: search, low_stock=true
    """
    search = request.args.get("search") or None
    low_stock = request.args.get("low_stock", "").lower() == "true"
    return inventory_service.list_inventory(search=search, low_stock=low_stock), 200


@inventory_bp.get("/summary")
def inventory_summary_route():
    return inventory_service.get_inventory_summary(), 200


@inventory_bp.get("/movements")
def list_movements_route():
    """
    Movement history, newest first.

    Query params: product_id, movement_type (in | out | adjustment)
    """
    movement_type = request.args.get("movement_type") or None
    if movement_type is not None:
        try:
            enforce_choice("movement_type", movement_type, MOVEMENT_TYPES)
        except ValidationError as e:
            return error_body(e), 400

    rows = inventory_service.list_movements(
        product_id=request.args.get("product_id", type=int),
        movement_type=movement_type,
    )
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}, 200


@inventory_bp.get("/product/<int:product_id>")
def product_inventory_route(product_id: int):
    try:
        return inventory_service.get_product_inventory(product_id), 200
    except NotFoundError as e:
        return error_body(e), 404


@inventory_bp.put("/product/<int:product_id>")
def set_stock_levels_route(product_id: int):
    """
    Update stock levels.

    Body: {quantity?, min_stock?, max_stock?, location?, reason?, user_id?}
    A changed quantity is logged as an 'adjustment' movement.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400
    payload = dict(payload)
    reason = payload.pop("reason", None)
    user_id_raw = payload.pop("user_id", None)

    try:
        patch = validate_payload(
            model=Inventory,
            payload=payload,
            policy=STOCK_LEVELS_POLICY,
            partial=True,
        )
        enforce_rules_stock_levels(patch)
        if "quantity" in patch and patch["quantity"] is None:
            raise ValidationError("quantity cannot be null")
        if reason is not None:
            patch["reason"] = parse_reason(reason)
        user_id = parse_optional_id("user_id", user_id_raw)
    except ValidationError as e:
        return error_body(e), 400

    try:
        inventory = inventory_service.set_stock_levels(product_id, patch, user_id=user_id)
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to update stock levels")
        return {"error": "Internal server error"}, 500

    return {"message": "Stock levels updated", "inventory": inventory.to_dict()}, 200


@inventory_bp.post("/product/<int:product_id>/add")
def add_stock_route(product_id: int):
    """Body: {quantity, reason, user_id?}"""
    try:
        quantity, reason, user_id = _movement_payload()
    except ValidationError as e:
        return error_body(e), 400

    try:
        inventory = inventory_service.add_stock(product_id, quantity, reason, user_id=user_id)
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Stock added: product=%s quantity=%s", product_id, quantity)
    return {"message": "Stock added", "inventory": inventory.to_dict()}, 200


@inventory_bp.post("/product/<int:product_id>/remove")
def remove_stock_route(product_id: int):
    """Body: {quantity, reason, user_id?}. 409 when stock is insufficient."""
    try:
        quantity, reason, user_id = _movement_payload()
    except ValidationError as e:
        return error_body(e), 400

    try:
        inventory = inventory_service.remove_stock(product_id, quantity, reason, user_id=user_id)
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to remove stock")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Stock removed: product=%s quantity=%s", product_id, quantity)
    return {"message": "Stock removed", "inventory": inventory.to_dict()}, 200
