# Overview: Service-layer operations for stock balances and the movement audit log.

"""
Inventory invariants:

- Inventory.quantity is the live balance; it is never negative
  (enforced here and by a CHECK constraint).
- Every change to Inventory.quantity appends exactly one InventoryMovement
  per product line in the same database transaction. Movements are never
  updated or deleted.
- Movement quantities for 'in' / 'out' are positive amounts; 'adjustment'
  movements (stock counts) carry the signed delta.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Inventory, InventoryMovement, Product, User
from ..money import MAX_QUANTITY
from ..validation import ConflictError, NotFoundError
from .concurrency import lock_for_update, run_with_retry, write_transaction


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds the available balance."""


def _session(session: Session | None) -> Session:
    return session or db.session


def ensure_user_exists(session: Session, user_id: int | None) -> None:
    if user_id is None:
        return
    if session.get(User, user_id) is None:
        raise NotFoundError("User not found", details={"user_id": user_id})


def get_locked_inventory(session: Session, product_id: int) -> Inventory | None:
    return lock_for_update(
        session.query(Inventory).filter(Inventory.product_id == product_id)
    ).first()


def record_movement(
    session: Session,
    *,
    product_id: int,
    movement_type: str,
    quantity: Decimal,
    reason: str | None,
    user_id: int | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
) -> InventoryMovement:
    movement = InventoryMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity=quantity,
        reason=reason,
        user_id=user_id,
        reference_id=reference_id,
        reference_type=reference_type,
    )
    session.add(movement)
    return movement


def decrement_stock(inventory: Inventory, quantity: Decimal) -> None:
    """Caller must hold the row lock. Raises instead of going negative."""
    if inventory.quantity < quantity:
        raise InsufficientStockError(
            "Insufficient stock",
            details={
                "product_id": inventory.product_id,
                "requested_quantity": float(quantity),
                "available_quantity": float(inventory.quantity),
            },
        )
    inventory.quantity = inventory.quantity - quantity


def increment_stock(inventory: Inventory, quantity: Decimal) -> None:
    new_quantity = inventory.quantity + quantity
    if new_quantity > MAX_QUANTITY:
        raise ConflictError(
            f"Stock cannot exceed {MAX_QUANTITY}",
            details={"product_id": inventory.product_id, "available_quantity": float(inventory.quantity)},
        )
    inventory.quantity = new_quantity


def add_stock(
    product_id: int,
    quantity: Decimal,
    reason: str,
    user_id: int | None = None,
    session: Session | None = None,
) -> Inventory:
    """
    Receive stock for a product (purchase, return to shelf, correction).

    Appends an 'in' movement with reference_type='adjustment'.
    """
    session = _session(session)

    def _op():
        with write_transaction(session):
            ensure_user_exists(session, user_id)
            inventory = get_locked_inventory(session, product_id)
            if inventory is None:
                raise NotFoundError("Product not found in inventory", details={"product_id": product_id})

            increment_stock(inventory, quantity)
            record_movement(
                session,
                product_id=product_id,
                movement_type="in",
                quantity=quantity,
                reason=reason,
                user_id=user_id,
                reference_type="adjustment",
            )
        return inventory

    return run_with_retry(_op)


def remove_stock(
    product_id: int,
    quantity: Decimal,
    reason: str,
    user_id: int | None = None,
    session: Session | None = None,
) -> Inventory:
    """
    Take stock out of a product (waste, damage, correction).

    Rejected with InsufficientStockError when the balance is smaller than
    the requested amount; the balance is left untouched in that case.
    """
    session = _session(session)

    def _op():
        with write_transaction(session):
            ensure_user_exists(session, user_id)
            inventory = get_locked_inventory(session, product_id)
            if inventory is None:
                raise NotFoundError("Product not found in inventory", details={"product_id": product_id})

            decrement_stock(inventory, quantity)
            record_movement(
                session,
                product_id=product_id,
                movement_type="out",
                quantity=quantity,
                reason=reason,
                user_id=user_id,
                reference_type="adjustment",
            )
        return inventory

    return run_with_retry(_op)


def set_stock_levels(
    product_id: int,
    patch: dict,
    user_id: int | None = None,
    session: Session | None = None,
) -> Inventory:
    """
    Update min/max/location and, optionally, the counted quantity.

    A product without an inventory row gets one. A quantity change is logged
    as one 'adjustment' movement carrying the signed delta.
    """
    session = _session(session)

    def _op():
        with write_transaction(session):
            ensure_user_exists(session, user_id)
            product = session.get(Product, product_id)
            if product is None or not product.is_active:
                raise NotFoundError("Product not found", details={"product_id": product_id})

            inventory = get_locked_inventory(session, product_id)
            if inventory is None:
                inventory = Inventory(product_id=product_id, quantity=Decimal("0"), min_stock=Decimal("0"))
                session.add(inventory)
                session.flush()

            min_stock = patch.get("min_stock", inventory.min_stock)
            max_stock = patch.get("max_stock", inventory.max_stock)
            if min_stock is None:
                min_stock = Decimal("0")
            if max_stock is not None and max_stock < min_stock:
                raise ConflictError(
                    "max_stock cannot be lower than min_stock",
                    details={"min_stock": float(min_stock), "max_stock": float(max_stock)},
                )
            inventory.min_stock = min_stock
            inventory.max_stock = max_stock
            if "location" in patch:
                inventory.location = patch["location"]

            new_quantity = patch.get("quantity")
            if new_quantity is not None and new_quantity != inventory.quantity:
                delta = new_quantity - inventory.quantity
                inventory.quantity = new_quantity
                record_movement(
                    session,
                    product_id=product_id,
                    movement_type="adjustment",
                    quantity=delta,
                    reason=patch.get("reason") or "Stock count",
                    user_id=user_id,
                    reference_type="adjustment",
                )
        return inventory

    return run_with_retry(_op)


def get_product_inventory(product_id: int) -> dict:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return _inventory_row(product)


def _inventory_row(product: Product) -> dict:
    inventory = product.inventory
    row = {
        "product_id": product.id,
        "name": product.name,
        "unit": product.unit,
        "price": float(product.price),
        "category_name": product.category.name if product.category else None,
        "quantity": None,
        "min_stock": None,
        "max_stock": None,
        "location": None,
        "stock_status": None,
        "updated_at": None,
    }
    if inventory is not None:
        row.update(inventory.to_dict())
    return row


def list_inventory(search: str | None = None, low_stock: bool = False) -> dict:
    """Active products with their stock levels, low stock first then by name."""
    query = (
        db.session.query(Product)
        .outerjoin(Inventory, Inventory.product_id == Product.id)
        .filter(Product.is_active.is_(True))
    )

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.barcode.ilike(pattern)))

    if low_stock:
        query = query.filter(Inventory.quantity <= Inventory.min_stock)

    rows = [_inventory_row(p) for p in query.order_by(Product.name.asc(), Product.id.asc()).all()]
    rows.sort(key=lambda r: 0 if r["stock_status"] == "low" else 1)
    return {"items": rows, "count": len(rows)}


def list_movements(product_id: int | None = None, movement_type: str | None = None) -> list[InventoryMovement]:
    query = db.session.query(InventoryMovement)
    if product_id is not None:
        query = query.filter(InventoryMovement.product_id == product_id)
    if movement_type:
        query = query.filter(InventoryMovement.movement_type == movement_type)
    return query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc()).all()


def get_inventory_summary() -> dict:
    active = Product.is_active.is_(True)

    total_products = db.session.query(func.count(Product.id)).filter(active).scalar()

    stock = db.session.query(Inventory).join(Product, Inventory.product_id == Product.id).filter(active)
    low_stock_items = stock.filter(Inventory.quantity <= Inventory.min_stock).count()
    out_of_stock_items = stock.filter(Inventory.quantity == 0).count()

    total_value = Decimal("0")
    for inventory in stock.all():
        total_value += inventory.quantity * inventory.product.price

    return {
        "total_products": total_products,
        "low_stock_items": low_stock_items,
        "out_of_stock_items": out_of_stock_items,
        "total_inventory_value": float(total_value.quantize(Decimal("0.01"))),
    }
