import os
import uuid

os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SEED_DEMO_DATA", "0")

import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from auth import hash_password
from schemas import ProductCreate, User
from storage import ShopStorage

ADMIN_PASSWORD = "admin123"
SHIPPING = {"address": "1 Light St", "city": "Riyadh", "state": "RD", "zip": "11564", "country": "SA"}


@pytest.fixture
def storage():
    store = ShopStorage(mongomock.MongoClient()[f"lumina_test_{uuid.uuid4().hex}"])
    store.ensure_indexes()
    return store


@pytest.fixture
def app(storage):
    main.app.dependency_overrides[main.get_storage] = lambda: storage
    yield main.app
    main.app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_client(app, storage):
    storage.create_user(
        User(username="admin", password=hash_password(ADMIN_PASSWORD), email="admin@lumina.com", is_admin=True)
    )
    c = TestClient(app)
    resp = c.post("/api/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return c


@pytest.fixture
def user_client(app):
    c = TestClient(app)
    resp = c.post(
        "/api/register",
        json={"username": "sara", "password": "lights42", "email": "sara@example.com", "firstName": "Sara"},
    )
    assert resp.status_code == 201
    return c


def make_product(storage, **overrides):
    data = {
        "name": "Geometric Hexa Light",
        "description": "Hexagonal pendant",
        "price": 849,
        "image_url": "https://example.com/hexa.jpg",
        "category": "Pendants",
        "tags": ["modern"],
    }
    data.update(overrides)
    return storage.create_product(ProductCreate(**data))


@pytest.fixture
def product(storage):
    return make_product(storage)


@pytest.fixture
def sale_product(storage):
    return make_product(
        storage,
        name="Crystal Nova Pendant",
        description="Crystal pendant with RGB lighting",
        price=1599,
        sale_price=1299,
        is_featured=True,
    )
