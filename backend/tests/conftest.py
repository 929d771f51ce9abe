"""
Pytest fixtures for storefront backend tests.

Provides the application on an in-memory database, a per-test clean
database, a test client and product factories.
"""

from decimal import Decimal

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.models import Product


ADMIN_HEADERS = {"X-Authenticated-User": "manager@shop.test"}

CUSTOMER = {
    "name": "Nguyen Van A",
    "phone": "0901234567",
    "address": "12 Le Loi, District 1",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_BACKOFF': 0,
    })

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
def confirm_mode(app, monkeypatch):
    """Stock leaves the shelf when the order is confirmed, not when placed."""
    monkeypatch.setitem(app.config, 'STOCK_COMMIT_POINT', 'order_confirmed')


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for products with a given price, stock and cost basis."""
    def _make(name="Green Tea", price="100.00", stock=5, cost="60.00", is_active=True):
        product = Product(
            name=name,
            price=Decimal(price),
            stock_quantity=stock,
            cost_price=Decimal(cost),
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product_a(make_product):
    """5 in stock at 100.00."""
    return make_product(name="Product A", price="100.00", stock=5)


@pytest.fixture(scope='function')
def product_b(make_product):
    """2 in stock at 250.00."""
    return make_product(name="Product B", price="250.00", stock=2)


@pytest.fixture(scope='function')
def product_c(make_product):
    """10 in stock at 19.99."""
    return make_product(name="Product C", price="19.99", stock=10)


@pytest.fixture(scope='function')
def customer():
    """Valid checkout contact details."""
    return dict(CUSTOMER)


@pytest.fixture(scope='function')
def admin_headers():
    """Headers the identity proxy sets for a signed-in back-office user."""
    return dict(ADMIN_HEADERS)


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Live stock for a product, bypassing anything cached in the session."""
    def _stock(product_id: int) -> int:
        db_session.expire_all()
        return db_session.get(Product, product_id).stock_quantity
    return _stock
