# tests/conftest.py
"""
Pytest configuration and fixtures shared by the service and API tests.

The database URL has to be in the environment before ``backoffice`` is
imported, because the engine is created at import time.
"""

import os
import tempfile
from decimal import Decimal

_TEST_DB_DIR = tempfile.mkdtemp(prefix="backoffice-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("STRUCTURED_LOGS_ENABLED", "false")
os.environ.setdefault("FLASK_DEBUG", "false")

import pytest

from backoffice.database import Base, SessionLocal, engine
from backoffice.main import app as flask_app
from backoffice.models import City, DeliveryService, Product, ProductStatus, Role
from backoffice.observability.metrics import reset_metrics
from backoffice.services.user_service import UserService

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def clean_database():
    """Every test starts from empty tables and empty metrics."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_metrics()
    yield


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role=Role.CUSTOMER, staff=None, name=None, email=None, password=PASSWORD):
        counter["n"] += 1
        role = Role.normalize(role)
        user = UserService(db_session).create_user(
            name or f"{role.value.title()} {counter['n']}",
            email or f"{role.value}{counter['n']}@example.com",
            password,
            role=role,
            staff=staff,
        )
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    def _make_product(price="10.00", stock=10, category="Electronics", status=ProductStatus.ACTIVE, **fields):
        counter["n"] += 1
        product = Product(
            name=fields.pop("name", f"Product {counter['n']}"),
            price=Decimal(str(price)),
            stock=stock,
            category=category,
            status=status,
            sku=fields.pop("sku", f"SKU-{counter['n']:04d}"),
            images=[],
            tags=fields.pop("tags", []),
            **fields,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make_product


@pytest.fixture
def make_city(db_session):
    counter = {"n": 0}

    def _make_city(name=None, is_active=True):
        counter["n"] += 1
        city = City(name=name or f"City {counter['n']}", state="State", country="Country", is_active=is_active)
        db_session.add(city)
        db_session.commit()
        return city

    return _make_city


@pytest.fixture
def make_delivery_service(db_session):
    counter = {"n": 0}

    def _make_service(base_price="5.00", price_per_km="1.00", is_active=True, cities=()):
        counter["n"] += 1
        service = DeliveryService(
            name=f"Carrier {counter['n']}",
            base_price=Decimal(str(base_price)),
            price_per_km=Decimal(str(price_per_km)),
            estimated_days=3,
            is_active=is_active,
            cities=list(cities),
        )
        db_session.add(service)
        db_session.commit()
        return service

    return _make_service


@pytest.fixture
def sales_team(make_user):
    """A staff member with one salesman, plus an admin and a customer."""
    staff = make_user(Role.STAFF)
    return {
        "admin": make_user(Role.ADMIN),
        "staff": staff,
        "salesman": make_user(Role.SALESMAN, staff=staff),
        "customer": make_user(Role.CUSTOMER),
    }


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        response = client.post("/api/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.get_json()
        return {"Authorization": f"Bearer {response.get_json()['token']}"}

    return _login


@pytest.fixture
def order_payload():
    def _order_payload(customer, service, city, *items):
        return {
            "customerId": customer.userID,
            "deliveryServiceId": service.deliveryServiceID,
            "deliveryCityId": city.cityID,
            "shippingAddress": {"street": "1 Main St", "city": city.name, "zipCode": "10001"},
            "items": [{"productId": product.productID, "quantity": quantity} for product, quantity in items],
        }

    return _order_payload
