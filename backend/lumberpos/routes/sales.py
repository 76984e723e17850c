# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/lumberpos/routes/sales.py
"""
Sales API routes.

POST /api/sales creates a completed sale and takes its items out of stock in
one transaction. PUT /api/sales/<id>/status with {"status": "cancelled"}
puts a completed sale's items back into stock.
"""

from flask import Blueprint, request, current_app

from ..models.sales import PAYMENT_METHODS, SALE_STATUSES
from ..services import sales_service
from ..services.sales_service import SaleLineRequest
from ..time_utils import parse_iso_date
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_choice,
    error_body,
    parse_amount,
    parse_optional_id,
    parse_positive_quantity,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_lines(raw_items) -> list[SaleLineRequest]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")

    lines = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object", details={"line": index})
        try:
            product_id = parse_optional_id("product_id", raw.get("product_id"))
            if product_id is None:
                raise ValidationError("product_id is required")
            quantity = parse_positive_quantity("quantity", raw.get("quantity"))
        except ValidationError as e:
            raise ValidationError(f"Item {index}: {e}", details={"line": index})
        lines.append(SaleLineRequest(product_id=product_id, quantity=quantity))
    return lines


@sales_bp.post("")
def create_sale_route():
    """
    Create a sale.

    Body: {customer_id?, items: [{product_id, quantity}], payment_method,
           discount?, tax?, notes?, user_id?}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        lines = _parse_lines(data.get("items"))
        payment_method = enforce_choice("payment_method", data.get("payment_method"), PAYMENT_METHODS)
        discount = parse_amount("discount", data.get("discount"))
        tax = parse_amount("tax", data.get("tax"))
        customer_id = parse_optional_id("customer_id", data.get("customer_id"))
        user_id = parse_optional_id("user_id", data.get("user_id"))
        notes = data.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")
    except ValidationError as e:
        return error_body(e), 400

    try:
        result = sales_service.create_sale(
            lines=lines,
            payment_method=payment_method,
            customer_id=customer_id,
            discount=discount,
            tax=tax,
            notes=notes.strip() if notes else None,
            user_id=user_id,
        )
    except ValidationError as e:
        return error_body(e), 400
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return {"error": "Internal server error"}, 500

    current_app.logger.info(
        "Sale %s created: total=%s items=%s", result.sale_id, result.total_amount, result.items_count
    )
    return {"message": "Sale created", "sale": result.to_dict()}, 201


@sales_bp.get("")
def list_sales_route():
    """
    List sales, newest first.

    Query params: start_date, end_date (YYYY-MM-DD, inclusive), status, customer_id
    """
    try:
        start_date = parse_iso_date(request.args.get("start_date"))
        end_date = parse_iso_date(request.args.get("end_date"))
    except ValueError:
        return {"error": "start_date and end_date must be YYYY-MM-DD"}, 400

    status = request.args.get("status") or None
    if status is not None and status not in SALE_STATUSES:
        return {"error": f"status must be one of: {', '.join(SALE_STATUSES)}"}, 400

    sales = sales_service.list_sales(
        start_date=start_date,
        end_date=end_date,
        status=status,
        customer_id=request.args.get("customer_id", type=int),
    )
    return {"items": [s.to_dict() for s in sales], "count": len(sales)}, 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Get sale with its line items."""
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return error_body(e), 404
    return {"sale": sale.to_dict(include_items=True)}, 200


@sales_bp.put("/<int:sale_id>/status")
def update_sale_status_route(sale_id: int):
    """
    Change sale status.

    Cancelling a completed sale restores stock for every item.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        status = enforce_choice("status", data.get("status"), SALE_STATUSES)
        user_id = parse_optional_id("user_id", data.get("user_id"))
    except ValidationError as e:
        return error_body(e), 400

    try:
        sale = sales_service.update_sale_status(sale_id, status, user_id=user_id)
    except NotFoundError as e:
        return error_body(e), 404
    except ConflictError as e:
        return error_body(e), 409
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Sale %s status set to %s", sale.id, sale.status)
    return {"message": "Sale status updated", "sale": sale.to_dict()}, 200
