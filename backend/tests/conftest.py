"""
Pytest fixtures for lumberpos backend tests.

Provides the application on an in-memory database, a test client, a
per-test clean database and small factories for catalog, stock,
customers and users.
"""

from decimal import Decimal

import pytest

from lumberpos import create_app
from lumberpos.config import TestConfig
from lumberpos.extensions import db
from lumberpos.models import Category, Customer, Inventory, Product, User


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Sawn Timber", description="Boards, beams and battens")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: product with an inventory row at the given quantity."""

    def _make(name="Pine Board", price="25.90", stock="100", unit="metre", min_stock="10", **kwargs):
        product = Product(name=name, unit=unit, price=Decimal(price), **kwargs)
        db_session.add(product)
        db_session.flush()
        db_session.add(Inventory(
            product_id=product.id,
            quantity=Decimal(stock),
            min_stock=Decimal(min_stock),
            location="Main Warehouse",
        ))
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Pine board at 25.90, 100 units in stock."""
    return make_product()


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Carpentry Silva", email="silva@example.com", tax_id="12345678000190",
                        customer_type="business")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def seller(db_session):
    user = User(username="ana", email="ana@lumberyard.local", role="seller")
    db_session.add(user)
    db_session.commit()
    return user
