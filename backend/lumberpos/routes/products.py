# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/lumberpos/routes/products.py
"""
Product catalog routes.

DELETE is a soft delete: the product is marked inactive and drops out of
listings, but its sale history stays intact.
"""
from flask import Blueprint, request, current_app
from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    error_body,
    ValidationError,
    ConflictError,
    NotFoundError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "category_id",
        "unit",
        "price",
        "cost",
        "barcode",
        "dimensions",
        "is_active",
    },
    required_on_create={"name", "unit", "price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products with their stock levels.

    Query params:
    - search: matches name, description or barcode
    - category_id: int
    - active: "false" lists deactivated products (default true)
    """
    active = request.args.get("active", "true").lower() != "false"
    return products_service.list_products(
        search=request.args.get("search") or None,
        category_id=request.args.get("category_id", type=int),
        active=active,
    ), 200


@products_bp.get("/categories")
def list_categories():
    return {"items": products_service.list_categories()}, 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return error_body(e), 404
    return products_service.product_with_stock(product), 200


@products_bp.post("")
def create_product_route():
    """Create a product; its inventory row starts at quantity 0."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return error_body(e), 400

    try:
        created = products_service.create_product(patch=patch)
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return {"message": "Product created", "product": created}, 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return error_body(e), 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return {"message": "Product updated", "product": updated}, 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        products_service.deactivate_product(product_id=product_id)
    except NotFoundError as e:
        return error_body(e), 404
    return {"message": "Product deactivated"}, 200
