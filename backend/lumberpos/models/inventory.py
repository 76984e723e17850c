from __future__ import annotations

from ..extensions import db
from lumberpos.money import as_json_number
from lumberpos.time_utils import to_utc_z

MOVEMENT_TYPES = ("in", "out", "adjustment")
REFERENCE_TYPES = ("sale", "sale_cancellation", "adjustment")


class Inventory(db.Model):
    """
    Live stock balance, one row per product.

    quantity is only changed by sales_service and inventory_service, which
    append an InventoryMovement in the same transaction. version_id makes
    concurrent writers to the same row fail with StaleDataError instead of
    silently overwriting each other.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    quantity = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    max_stock = db.Column(db.Numeric(10, 3), nullable=True)
    location = db.Column(db.String(120), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship(
        "Product",
        backref=db.backref("inventory", uselist=False, lazy=True),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Inventory product_id={self.product_id} quantity={self.quantity}>"

    @property
    def stock_status(self) -> str:
        if self.quantity <= self.min_stock:
            return "low"
        if self.max_stock is not None and self.quantity >= self.max_stock:
            return "high"
        return "normal"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": as_json_number(self.quantity),
            "min_stock": as_json_number(self.min_stock),
            "max_stock": as_json_number(self.max_stock),
            "location": self.location,
            "stock_status": self.stock_status,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only audit record of a stock quantity change.

    - in / out: quantity is the positive amount moved
    - adjustment: quantity is the signed delta produced by a stock count
    reference_id points at the sale for sale / sale_cancellation movements.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint(
            "movement_type IN ('in', 'out', 'adjustment')",
            name="ck_inventory_movements_type",
        ),
        db.Index("ix_inventory_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Numeric(10, 3), nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_unit": self.product.unit if self.product else None,
            "movement_type": self.movement_type,
            "quantity": as_json_number(self.quantity),
            "reason": self.reason,
            "user_id": self.user_id,
            "user_name": self.user.username if self.user else None,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "created_at": to_utc_z(self.created_at),
        }
