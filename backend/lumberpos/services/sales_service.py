"""
Sales Service - atomic sale creation and status changes

Sale creation and cancellation are the only flows that touch stock on
behalf of a sale. Both run as a single write transaction:

    create_sale:  validate lines -> insert header + items -> decrement
                  stock -> one 'out' movement per line
    cancel:       restore stock per item -> one 'in' movement per item
                  (reference_type='sale_cancellation') -> status flip

Any error rolls the whole transaction back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem
from ..models.sales import SALE_STATUSES
from ..money import MAX_PRICE, line_total, to_money
from ..time_utils import day_bounds, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry, write_transaction
from .inventory_service import (
    InsufficientStockError,
    decrement_stock,
    ensure_user_exists,
    get_locked_inventory,
    increment_stock,
    record_movement,
)


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: Decimal


@dataclass(frozen=True)
class SaleResult:
    sale_id: int
    total_amount: Decimal
    items_count: int

    def to_dict(self) -> dict:
        return {
            "id": self.sale_id,
            "total_amount": float(self.total_amount),
            "items_count": self.items_count,
        }


def _check_lines(session: Session, lines: list[SaleLineRequest]) -> dict[int, Product]:
    """
    Lock each product's inventory row and check availability.

    Quantities are summed per product so two lines for the same product
    cannot jointly oversell it. Raises on the first failing line (1-based).
    """
    products: dict[int, Product] = {}
    requested: dict[int, Decimal] = {}

    for index, line in enumerate(lines, start=1):
        product = products.get(line.product_id)
        if product is None:
            product = session.get(Product, line.product_id)
            if product is None or not product.is_active:
                raise NotFoundError(
                    f"Product {line.product_id} not found or inactive",
                    details={"line": index, "product_id": line.product_id},
                )
            products[line.product_id] = product

        inventory = get_locked_inventory(session, line.product_id)
        available = inventory.quantity if inventory is not None else Decimal("0")
        requested[line.product_id] = requested.get(line.product_id, Decimal("0")) + line.quantity

        if available < requested[line.product_id]:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}. Available: {available}",
                details={
                    "line": index,
                    "product_id": line.product_id,
                    "product_name": product.name,
                    "requested_quantity": float(requested[line.product_id]),
                    "available_quantity": float(available),
                },
            )

    return products


def create_sale(
    *,
    lines: list[SaleLineRequest],
    payment_method: str,
    customer_id: int | None = None,
    discount: Decimal = Decimal("0"),
    tax: Decimal = Decimal("0"),
    notes: str | None = None,
    user_id: int | None = None,
    session: Session | None = None,
) -> SaleResult:
    """
    Create a completed sale and take its items out of stock.

    Returns the sale id, total and item count. Raises ValidationError,
    NotFoundError or InsufficientStockError without writing anything.

    discount and tax are rounded to cents here, so the stored header always
    satisfies total = sum(line totals) - discount + tax.
    """
    if not lines:
        raise ValidationError("At least one item is required")
    for index, line in enumerate(lines, start=1):
        if line.quantity <= 0:
            raise ValidationError("quantity must be greater than zero", details={"line": index})
    if discount < 0 or tax < 0:
        raise ValidationError("discount and tax must be >= 0")
    discount = to_money(discount)
    tax = to_money(tax)

    session = session or db.session

    def _op():
        with write_transaction(session):
            if customer_id is not None and session.get(Customer, customer_id) is None:
                raise NotFoundError("Customer not found", details={"customer_id": customer_id})
            ensure_user_exists(session, user_id)

            products = _check_lines(session, lines)

            items = []
            subtotal = Decimal("0")
            for line in lines:
                unit_price = to_money(products[line.product_id].price)
                total_price = line_total(line.quantity, unit_price)
                subtotal += total_price
                items.append(SaleItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    total_price=total_price,
                ))

            total_amount = to_money(subtotal - discount + tax)
            if total_amount < 0:
                raise ValidationError(
                    "discount exceeds sale total",
                    details={"subtotal": float(subtotal), "discount": float(discount), "tax": float(tax)},
                )
            if subtotal > MAX_PRICE or total_amount > MAX_PRICE:
                raise ValidationError(
                    f"sale total cannot exceed {MAX_PRICE}",
                    details={"subtotal": float(subtotal)},
                )

            sale = Sale(
                customer_id=customer_id,
                user_id=user_id,
                total_amount=total_amount,
                discount=discount,
                tax=tax,
                payment_method=payment_method,
                status="completed",
                notes=notes,
                items=items,
            )
            session.add(sale)
            session.flush()

            for item in items:
                inventory = get_locked_inventory(session, item.product_id)
                decrement_stock(inventory, item.quantity)
                record_movement(
                    session,
                    product_id=item.product_id,
                    movement_type="out",
                    quantity=item.quantity,
                    reason="Sale",
                    user_id=user_id,
                    reference_id=sale.id,
                    reference_type="sale",
                )

            result = SaleResult(sale_id=sale.id, total_amount=total_amount, items_count=len(items))
        return result

    return run_with_retry(_op)


def _cancel_completed_sale(session: Session, sale: Sale, user_id: int | None) -> None:
    for item in sale.items:
        inventory = get_locked_inventory(session, item.product_id)
        if inventory is None:
            raise ConflictError(
                "Inventory row missing for sold product",
                details={"sale_id": sale.id, "product_id": item.product_id},
            )
        increment_stock(inventory, item.quantity)
        record_movement(
            session,
            product_id=item.product_id,
            movement_type="in",
            quantity=item.quantity,
            reason="Sale cancellation",
            user_id=user_id,
            reference_id=sale.id,
            reference_type="sale_cancellation",
        )


def update_sale_status(
    sale_id: int,
    status: str,
    user_id: int | None = None,
    session: Session | None = None,
) -> Sale:
    """
    Move a sale to a new status.

    - completed -> cancelled restores stock for every item (one 'in'
      movement each) in the same transaction as the status change
    - pending -> cancelled and pending <-> completed only change the status
    - a cancelled sale cannot change again (ConflictError)
    - setting the current status again is a no-op
    """
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")

    session = session or db.session

    def _op():
        with write_transaction(session):
            ensure_user_exists(session, user_id)
            sale = lock_for_update(session.query(Sale).filter(Sale.id == sale_id)).first()
            if sale is None:
                raise NotFoundError("Sale not found", details={"sale_id": sale_id})

            if sale.status == status:
                return sale

            if sale.status == "cancelled":
                raise ConflictError(
                    "Cancelled sales cannot change status",
                    details={"sale_id": sale.id, "status": sale.status, "requested_status": status},
                )

            if status == "cancelled":
                if sale.status == "completed":
                    _cancel_completed_sale(session, sale, user_id)
                sale.cancelled_at = utcnow()

            sale.status = status
        return sale

    return run_with_retry(_op)


def cancel_sale(sale_id: int, user_id: int | None = None, session: Session | None = None) -> Sale:
    return update_sale_status(sale_id, "cancelled", user_id=user_id, session=session)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
    customer_id: int | None = None,
) -> list[Sale]:
    """Sales newest first. Date bounds are inclusive calendar days."""
    query = db.session.query(Sale)

    lower, upper = day_bounds(start_date, end_date)
    if lower is not None:
        query = query.filter(Sale.sale_date >= lower)
    if upper is not None:
        query = query.filter(Sale.sale_date < upper)
    if status:
        query = query.filter(Sale.status == status)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)

    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()
