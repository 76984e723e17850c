# backend/lumberpos/services/customers_service.py
"""Customer master data; email and tax_id are unique when present."""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Sale
from ..validation import ConflictError, NotFoundError

CUSTOMER_MUTABLE_FIELDS = {
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
}


def _ensure_unique(patch: dict, customer_id: int | None = None) -> None:
    clauses = []
    if patch.get("email"):
        clauses.append(Customer.email == patch["email"])
    if patch.get("tax_id"):
        clauses.append(Customer.tax_id == patch["tax_id"])
    if not clauses:
        return

    query = db.session.query(Customer).filter(or_(*clauses))
    if customer_id is not None:
        query = query.filter(Customer.id != customer_id)
    existing = query.first()
    if existing is not None:
        raise ConflictError(
            "A customer with this email or tax_id already exists",
            details={"customer_id": existing.id},
        )


def list_customers(search: str | None = None, active: bool = True) -> dict:
    query = db.session.query(Customer).filter(Customer.is_active.is_(active))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.tax_id.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    customers = query.order_by(Customer.name.asc(), Customer.id.asc()).all()
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def create_customer(*, patch: dict) -> Customer:
    _ensure_unique(patch)
    customer = Customer(**{k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS})
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    customer = get_customer(customer_id)
    _ensure_unique(patch, customer_id=customer.id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.commit()
    return customer


def deactivate_customer(*, customer_id: int) -> None:
    customer = get_customer(customer_id)
    customer.is_active = False
    db.session.commit()


def list_purchases(customer_id: int) -> list[Sale]:
    customer = get_customer(customer_id)
    return (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )
