"""Pytest fixtures for the order service tests."""

import os

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DB", "elsoug_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-elsoug-orders-0123456789")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from core.auth.jwt import create_access_token
from domain.entities.order import Address
from domain.entities.user import Actor
from services.orders import create_order


def _insert_user(db, name, roles, street):
    user_id = ObjectId()
    db.users.insert_one({
        "_id": user_id,
        "name": name,
        "phone": f"+20{str(user_id)[-10:]}",
        "roles": roles,
        "status": "active",
        "address": {"street": street},
    })
    return Actor(id=str(user_id), name=name, roles=roles, address=Address(street=street))


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    client = mongomock.MongoClient()
    yield client["elsoug_test"]
    client.close()


@pytest.fixture
def buyer(db):
    return _insert_user(db, "Mona Buyer", ["user"], "Nile Corniche 12")


@pytest.fixture
def seller(db):
    return _insert_user(db, "Hassan Farms", ["user"], "Fayoum Road 3")


@pytest.fixture
def admin(db):
    return _insert_user(db, "Admin", ["admin"], "Tahrir Square")


@pytest.fixture
def stranger(db):
    return _insert_user(db, "Someone Else", ["user"], "Alexandria Rd 9")


@pytest.fixture
def product(db, seller):
    """Product priced 100 with a delivery fee of 10."""
    product_id = db.products.insert_one({
        "seller_id": seller.id,
        "title": "Olive oil",
        "description": "Cold pressed, 1 litre",
        "price": 100.0,
        "currency": "EGP",
        "unit": "bottle",
        "images": ["https://cdn.example.com/oil.jpg"],
        "delivery_fee": 10.0,
        "is_available": True,
    }).inserted_id
    return str(product_id)


@pytest.fixture
def service(db, seller):
    service_id = db.services.insert_one({
        "provider_id": seller.id,
        "name": "Pump repair",
        "price": 300.0,
        "is_available": True,
    }).inserted_id
    return str(service_id)


@pytest.fixture
def order(db, buyer, product):
    """Pending cash order: 2 x 100 delivered for 10."""
    return create_order(db, buyer, {
        "order_type": "product",
        "product": product,
        "quantity": 2,
        "delivery_type": "delivery",
    })


@pytest.fixture
def client(db):
    from app.main import app
    from infrastructure.database.client import get_db

    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def make(actor):
        return {"Authorization": f"Bearer {create_access_token(actor.id, actor.roles)}"}
    return make
