"""
Pytest fixtures for FEMENINE backend tests.

Provides an in-memory database, per-role users with ready-made
Authorization headers, and small factories for catalog/product rows.
"""

import pytest

from femenine import create_app
from femenine.extensions import db
from femenine.models import Brand, Category, Product, User
from femenine.permissions import Role
from femenine.services import session_service
from femenine.services.auth_service import hash_password

DEFAULT_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'DEFAULT_TAX_RATE': '0.19',
        'DEFAULT_TAX_INCLUDED': False,
        'PRICE_TOLERANCE': '0.01',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test (schema kept)."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


def make_user(email: str, role: Role, name: str | None = None, is_active: bool = True) -> User:
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        password_hash=hash_password(DEFAULT_PASSWORD),
        role=role,
        is_active=is_active,
    )
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    """Open a session for the user without going through /login."""
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


def get_auth_token(client, email: str, password: str = DEFAULT_PASSWORD) -> str | None:
    """Helper to get auth token through the login endpoint."""
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    if response.status_code == 200:
        return response.json.get('token')
    return None


@pytest.fixture
def admin(db_session):
    return make_user("admin@femenine.test", Role.ADMIN, name="Admin")


@pytest.fixture
def manager(db_session):
    return make_user("manager@femenine.test", Role.MANAGER, name="Manager")


@pytest.fixture
def employee(db_session):
    return make_user("employee@femenine.test", Role.EMPLOYEE, name="Employee")


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def manager_headers(manager):
    return headers_for(manager)


@pytest.fixture
def employee_headers(employee):
    return headers_for(employee)


@pytest.fixture
def make_product(db_session):
    """Factory: make_product(name=..., price_cents=..., stock=...)."""
    counter = {"n": 0}

    def _make(name="Blusa Floral", price_cents=15000, stock=10, stock_min=0, **extra):
        counter["n"] += 1
        product = Product(
            name=name,
            sku=extra.pop("sku", f"TEST-{counter['n']:04d}"),
            sale_price_cents=price_cents,
            cost_price_cents=extra.pop("cost_price_cents", None),
            stock_cached=stock,
            stock_min=stock_min,
            is_active=extra.pop("is_active", True),
            **extra,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture
def brand(db_session):
    entry = Brand(name="ZARA")
    db.session.add(entry)
    db.session.commit()
    return entry


@pytest.fixture
def category(db_session):
    entry = Category(name="BLUSAS")
    db.session.add(entry)
    db.session.commit()
    return entry
