"""
Pytest fixtures for storefront backend tests.

Provides the app on an in-memory database, a per-test table wipe, accounts,
catalogue rows and auth header helpers.
"""

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import Category, Product
from storefront.services import auth_service

# Minimum bcrypt cost keeps the suite fast; production uses the module default.
auth_service.BCRYPT_ROUNDS = 4

PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'JWT_SECRET': 'test-jwt-secret',
    'JWT_EXPIRES_DAYS': 7,
    'TAX_RATE_BPS': 800,
    'FREE_SHIPPING_THRESHOLD_CENTS': 5000,
    'FLAT_SHIPPING_CENTS': 1000,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
def customer(db_session):
    """Regular account that places orders."""
    return auth_service.register_user(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        password=PASSWORD,
    )


@pytest.fixture(scope='function')
def other_customer(db_session):
    """Second regular account, for ownership checks."""
    return auth_service.register_user(
        first_name="Grace",
        last_name="Hopper",
        email="grace@example.com",
        password=PASSWORD,
    )


@pytest.fixture(scope='function')
def admin(db_session):
    return auth_service.register_user(
        first_name="Site",
        last_name="Admin",
        email="admin@example.com",
        password=PASSWORD,
        role="admin",
    )


@pytest.fixture(scope='function')
def customer_headers(client, customer):
    return auth_headers(get_auth_token(client, customer.email, PASSWORD))


@pytest.fixture(scope='function')
def other_headers(client, other_customer):
    return auth_headers(get_auth_token(client, other_customer.email, PASSWORD))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email, PASSWORD))


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Skincare", slug="skincare", description="Face and body skincare products")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product(db_session, category):
    """Tracked product: 45.99 with 10 units on hand."""
    product = Product(
        name="Glow Serum",
        brand="Radiant",
        description="Vitamin C serum",
        price_cents=4599,
        category_id=category.id,
        images=["https://cdn.example.com/serum.jpg"],
        inventory_quantity=10,
        track_inventory=True,
        status="active",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cheap_product(db_session, category):
    """Tracked product: 12.50 with 5 units on hand."""
    product = Product(
        name="Lip Balm",
        brand="Radiant",
        description="Shea butter lip balm",
        price_cents=1250,
        category_id=category.id,
        inventory_quantity=5,
        track_inventory=True,
        status="active",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def untracked_product(db_session, category):
    """Made-to-order product with inventory tracking off and no stock recorded."""
    product = Product(
        name="Gift Card",
        brand="Radiant",
        description="Digital gift card",
        price_cents=2500,
        category_id=category.id,
        inventory_quantity=0,
        track_inventory=False,
        status="active",
    )
    db_session.add(product)
    db_session.commit()
    return product


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for an account."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    # Login also sets the auth cookie; drop it so later requests stay anonymous
    # unless they send the header.
    client.delete_cookie('token')
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def shipping_address(**overrides) -> dict:
    address = {
        'first_name': 'Ada',
        'last_name': 'Lovelace',
        'street': '12 Analytical Way',
        'city': 'London',
        'state': 'LN',
        'zip_code': '10001',
        'country': 'UK',
        'phone': '555-0100',
    }
    address.update(overrides)
    return address


def place_order(client, headers: dict, items: list, **extra):
    """POST /api/orders with a valid address and payment method."""
    body = {
        'items': items,
        'shipping_address': shipping_address(),
        'payment_method': 'card',
    }
    body.update(extra)
    return client.post('/api/orders', json=body, headers=headers)
