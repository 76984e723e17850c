# backend/lumberpos/routes/customers.py
"""Customer routes. DELETE deactivates the customer."""
from flask import Blueprint, request, current_app

from ..models import Customer
from ..models.customers import CUSTOMER_TYPES
from ..services import customers_service
from ..validation import (
    ModelValidationPolicy,
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_choice,
    error_body,
    validate_payload,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "email",
        "phone",
        "tax_id",
        "address",
        "city",
        "state",
        "zip_code",
        "customer_type",
        "is_active",
    },
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _validated_patch(partial: bool) -> dict:
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=partial)
    if "customer_type" in patch:
        enforce_choice("customer_type", patch["customer_type"], CUSTOMER_TYPES)
    email = patch.get("email")
    if email is not None and ("@" not in email or email.startswith("@") or email.endswith("@")):
        raise ValidationError("email is not a valid address")
    return patch


@customers_bp.get("")
def list_customers_route():
    """Query params: search, active ("false" lists deactivated customers)."""
    active = request.args.get("active", "true").lower() != "false"
    return customers_service.list_customers(search=request.args.get("search") or None, active=active), 200


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customers_service.get_customer(customer_id)
    except NotFoundError as e:
        return error_body(e), 404
    return customer.to_dict(), 200


@customers_bp.post("")
def create_customer_route():
    try:
        patch = _validated_patch(partial=False)
    except ValidationError as e:
        return error_body(e), 400

    try:
        customer = customers_service.create_customer(patch=patch)
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Internal server error"}, 500

    return {"message": "Customer created", "customer": customer.to_dict()}, 201


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        patch = _validated_patch(partial=True)
    except ValidationError as e:
        return error_body(e), 400

    try:
        customer = customers_service.update_customer(customer_id=customer_id, patch=patch)
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return {"error": "Internal server error"}, 500

    return {"message": "Customer updated", "customer": customer.to_dict()}, 200


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    try:
        customers_service.deactivate_customer(customer_id=customer_id)
    except NotFoundError as e:
        return error_body(e), 404
    return {"message": "Customer deactivated"}, 200


@customers_bp.get("/<int:customer_id>/purchases")
def customer_purchases_route(customer_id: int):
    try:
        sales = customers_service.list_purchases(customer_id)
    except NotFoundError as e:
        return error_body(e), 404
    return {"items": [s.to_dict() for s in sales], "count": len(sales)}, 200
