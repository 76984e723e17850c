"""Database lookups shared by the service and API tests."""

from decimal import Decimal

from lumberpos.extensions import db
from lumberpos.models import Inventory, InventoryMovement, Sale, SaleItem


def stock_of(product_id: int) -> Decimal:
    """Current balance read straight from the database."""
    db.session.expire_all()
    return db.session.query(Inventory.quantity).filter(Inventory.product_id == product_id).scalar()


def movements_for(product_id: int) -> list[InventoryMovement]:
    return (
        db.session.query(InventoryMovement)
        .filter(InventoryMovement.product_id == product_id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )


def table_counts() -> dict:
    return {
        "sales": db.session.query(Sale).count(),
        "sale_items": db.session.query(SaleItem).count(),
        "movements": db.session.query(InventoryMovement).count(),
    }
