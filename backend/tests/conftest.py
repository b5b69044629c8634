"""
Pytest fixtures for PhonePOS backend tests.

Provides the in-memory database, test client, staff accounts with bearer
tokens, and small factories for catalog and party records.
"""

import pytest

from phonepos import create_app
from phonepos.extensions import db
from phonepos.models import Product, Role
from phonepos.services import auth_service, party_service, products_service


ADMIN_PHONE = "09111111111"
SELLER_PHONE = "09222222222"
PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    # Low bcrypt cost keeps the suite fast
    auth_service.BCRYPT_ROUNDS = 4

    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'LOG_LEVEL': 'WARNING',
        'LOW_STOCK_THRESHOLD': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Create fresh database for each test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user(name="Owner", phone=ADMIN_PHONE, password=PASSWORD, role=Role.ADMIN)


@pytest.fixture(scope='function')
def seller_user(db_session):
    return auth_service.create_user(name="Counter Staff", phone=SELLER_PHONE, password=PASSWORD, role=Role.SELLER)


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, ADMIN_PHONE, PASSWORD))


@pytest.fixture(scope='function')
def seller_headers(client, seller_user):
    return auth_headers(get_auth_token(client, SELLER_PHONE, PASSWORD))


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(stock=3, price_cents=100000, ...) -> Product."""
    counter = {"n": 0}

    def _make(name=None, *, stock=0, price_cents=100_000, cost_price_cents=80_000, barcode=None):
        counter["n"] += 1
        return products_service.create_product({
            "name": name or f"Phone {counter['n']}",
            "brand": "Acme",
            "model": f"X{counter['n']}",
            "barcode": barcode or f"88000000{counter['n']:04d}",
            "price_cents": price_cents,
            "cost_price_cents": cost_price_cents,
            "stock": stock,
        })

    return _make


@pytest.fixture(scope='function')
def supplier(db_session):
    return party_service.create_supplier({"name": "Mandalay Wholesale", "phone": "09333333333"})


@pytest.fixture(scope='function')
def customer(db_session):
    customer, _ = party_service.create_customer({"name": "Aung Aung", "phone": "09444444444"})
    return customer


def stock_of(product_id: int) -> int:
    """Fresh read of a product's stock counter."""
    db.session.expire_all()
    return db.session.get(Product, product_id).stock


def get_auth_token(client, phone: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'phone': phone,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
