import math
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from ordering import create_app
from ordering.extensions import db
from ordering.model import Ingredient, Product, Promotion, User

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
    "GEOCODER_ENABLED": False,
    "ORDER_COMMIT_BACKOFF": 0,
    "STORE_LATITUDE": -33.4489,
    "STORE_LONGITUDE": -70.6693,
    "DELIVERY_TIERS": [
        {"max_km": 3, "fee": 1500},
        {"max_km": 6, "fee": 2500},
        {"max_km": 10, "fee": 3500},
    ],
    "FREE_DELIVERY_ENABLED": True,
    "FREE_DELIVERY_THRESHOLD": 15000,
    "MAX_DELIVERY_DISTANCE_KM": 10,
}


def point_at_km(km, lat=TEST_CONFIG["STORE_LATITUDE"], lng=TEST_CONFIG["STORE_LONGITUDE"]):
    """A point `km` due north of (lat, lng)."""
    return {"lat": lat + math.degrees(km / 6371.0), "lng": lng}


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def app():
    app = create_app(dict(TEST_CONFIG))
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# -- Factories ----------------------------------------------------------------


@pytest.fixture
def make_user(app):
    def _make(email="customer@example.com", role="customer", points=0, name="Test Customer", password="secret123"):
        u = User(
            email=email,
            name=name,
            phone="+56 9 1234 5678",
            role=role,
            loyalty_points=points,
            password_hash=generate_password_hash(password),
        )
        db.session.add(u)
        db.session.commit()
        return u
    return _make


@pytest.fixture
def make_product(app):
    def _make(name="Classic Burger", price=8000, available=True, stock_quantity=None):
        p = Product(name=name, price=Decimal(str(price)), available=available, stock_quantity=stock_quantity)
        db.session.add(p)
        db.session.commit()
        return p
    return _make


@pytest.fixture
def make_ingredient(app):
    def _make(name="Extra Cheese", extra_price=500, available=True):
        i = Ingredient(name=name, extra_price=Decimal(str(extra_price)), available=available)
        db.session.add(i)
        db.session.commit()
        return i
    return _make


@pytest.fixture
def make_promotion(app):
    def _make(code="SAVE10", kind="percentage", value=10, **kwargs):
        p = Promotion(
            name=kwargs.pop("name", code),
            coupon_code=code,
            kind=kind,
            value=Decimal(str(value)),
            current_uses=kwargs.pop("current_uses", 0),
            **kwargs,
        )
        db.session.add(p)
        db.session.commit()
        return p
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers
