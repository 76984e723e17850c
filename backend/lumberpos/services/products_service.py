# backend/lumberpos/services/products_service.py
"""
Products Service

Products are soft-deleted (is_active=False). Creating a product also
creates its inventory row with quantity 0, so every product has exactly
one stock balance from the start.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import or_

from ..extensions import db
from ..models import Category, Inventory, Product
from ..validation import ConflictError, NotFoundError

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "category_id",
    "unit",
    "price",
    "cost",
    "barcode",
    "dimensions",
    "is_active",
}

DEFAULT_LOCATION = "Main Warehouse"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise NotFoundError("Category not found", details={"category_id": category_id})


def _ensure_barcode_free(barcode: str | None, product_id: int | None = None) -> None:
    if not barcode:
        return
    query = db.session.query(Product.id).filter(Product.barcode == barcode)
    if product_id is not None:
        query = query.filter(Product.id != product_id)
    if query.first() is not None:
        raise ConflictError("Barcode already exists", details={"barcode": barcode})


def product_with_stock(p: Product) -> dict:
    data = p.to_dict()
    inventory = p.inventory
    data["quantity"] = float(inventory.quantity) if inventory else None
    data["min_stock"] = float(inventory.min_stock) if inventory else None
    data["max_stock"] = float(inventory.max_stock) if inventory and inventory.max_stock is not None else None
    data["location"] = inventory.location if inventory else None
    return data


def list_products(
    search: str | None = None,
    category_id: int | None = None,
    active: bool = True,
) -> dict:
    """
    Product listing joined with stock levels.

    search matches name, description or barcode (case-insensitive).
    """
    query = db.session.query(Product).filter(Product.is_active.is_(active))

    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.barcode.ilike(pattern),
            )
        )

    if category_id is not None:
        query = query.filter(Product.category_id == category_id)

    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    return {
        "items": [product_with_stock(p) for p in products],
        "count": len(products),
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        NotFoundError: If category_id does not exist
        ConflictError: If the barcode is already used
    """
    _ensure_category(patch.get("category_id"))
    _ensure_barcode_free(patch.get("barcode"))

    product = Product()
    apply_product_patch(product, patch)
    if product.is_active is None:
        product.is_active = True

    db.session.add(product)
    db.session.flush()

    db.session.add(Inventory(
        product_id=product.id,
        quantity=Decimal("0"),
        min_stock=Decimal("0"),
        max_stock=None,
        location=DEFAULT_LOCATION,
    ))
    db.session.commit()
    return product_with_stock(product)


def update_product(*, product_id: int, patch: dict) -> dict:
    product = get_product(product_id)

    if "category_id" in patch:
        _ensure_category(patch["category_id"])
    if "barcode" in patch:
        _ensure_barcode_free(patch["barcode"], product_id=product.id)

    apply_product_patch(product, patch)
    db.session.commit()
    return product_with_stock(product)


def deactivate_product(*, product_id: int) -> None:
    """Soft delete: the product disappears from listings and cannot be sold."""
    product = get_product(product_id)
    product.is_active = False
    db.session.commit()


def list_categories() -> list[dict]:
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return [c.to_dict() for c in categories]
