"""
Pytest fixtures for OptiMaster backend tests.

Provides a fresh in-memory database per test, a test client, seeded
catalog rows and an authenticated user.
"""

import pytest
from sqlalchemy import select

from optimaster import create_app
from optimaster.extensions import db
from optimaster.models import Supplier, InventoryItem
from optimaster.services.auth_service import create_user


TEST_PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
}


@pytest.fixture(scope='function')
def app():
    """Create application with an empty schema."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    return db.session


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Clear Vision Lenses", mobile="555-0100", address="12 Harbour Rd")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def item_a(db_session, supplier):
    """quantity=10, cost=50.00, selling=100.00"""
    item = InventoryItem(
        name="Aviator Frame",
        category="Frames",
        sku="FR-AV-001",
        quantity=10,
        cost_price_cents=5000,
        selling_price_cents=10000,
        supplier_id=supplier.id,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session, supplier):
    """quantity=4, cost=8.00, selling=20.00"""
    item = InventoryItem(
        name="Lens Cleaner",
        category="Accessories",
        sku="AC-LC-010",
        quantity=4,
        cost_price_cents=800,
        selling_price_cents=2000,
        supplier_id=supplier.id,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def user(db_session):
    # Low bcrypt cost keeps the suite fast
    return create_user("owner@optimaster.test", "Shop Owner", TEST_PASSWORD, rounds=4)


@pytest.fixture(scope='function')
def auth_headers(client, user):
    token = get_auth_token(client, user.email, TEST_PASSWORD)
    assert token, "login failed in fixture"
    return auth_headers_for(token)


def quantity_of(item_id: int) -> int:
    """Read the committed quantity straight from the database."""
    return db.session.execute(
        select(InventoryItem.quantity).where(InventoryItem.id == item_id)
    ).scalar_one()


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers_for(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
