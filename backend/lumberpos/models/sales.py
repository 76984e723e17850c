from __future__ import annotations

from ..extensions import db
from lumberpos.money import as_json_number
from lumberpos.time_utils import to_utc_z

SALE_STATUSES = ("pending", "completed", "cancelled")
PAYMENT_METHODS = ("cash", "debit_card", "credit_card", "pix", "bank_slip")


class Sale(db.Model):
    """
    Sale header.

    INVARIANT: total_amount = sum(items.total_price) - discount + tax.
    Status moves pending <-> completed freely; cancelled is terminal.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'completed', 'cancelled')",
            name="ck_sales_status",
        ),
        db.CheckConstraint(
            "payment_method IN ('cash', 'debit_card', 'credit_card', 'pix', 'bank_slip')",
            name="ck_sales_payment_method",
        ),
        db.Index("ix_sales_status_date", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed")
    notes = db.Column(db.Text, nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} status={self.status} total={self.total_amount}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "user_id": self.user_id,
            "seller_name": self.user.username if self.user else None,
            "total_amount": as_json_number(self.total_amount),
            "discount": as_json_number(self.discount),
            "tax": as_json_number(self.tax),
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "sale_date": to_utc_z(self.sale_date),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "items_count": len(self.items),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    One product+quantity line within a sale.

    unit_price is a snapshot of Product.price at sale time; later price
    changes never touch it.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Numeric(10, 3), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_unit": self.product.unit if self.product else None,
            "dimensions": self.product.dimensions if self.product else None,
            "quantity": as_json_number(self.quantity),
            "unit_price": as_json_number(self.unit_price),
            "total_price": as_json_number(self.total_price),
        }
