from datetime import datetime, timedelta, timezone

import jwt
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

import main
from auth import JWT_ALGO, JWT_SECRET, SESSION_COOKIE


def test_data_routes_without_database():
    main.app.dependency_overrides.clear()
    client = TestClient(main.app)
    for path in ("/api/products", "/api/cart", "/api/user"):
        resp = client.get(path)
        assert resp.status_code == 503
        assert resp.json() == {"detail": "Database not configured"}


def test_database_failure_maps_to_503(client, storage, monkeypatch):
    def unreachable(**kwargs):
        raise ServerSelectionTimeoutError("no servers available")

    monkeypatch.setattr(storage, "list_products", unreachable)
    resp = client.get("/api/products")
    assert resp.status_code == 503
    assert resp.json() == {"detail": "Database unavailable"}


def test_expired_session_is_anonymous(client, user_client, storage):
    user = storage.get_user_by_username("sara")
    past = datetime.now(timezone.utc) - timedelta(days=8)
    token = jwt.encode({"sub": user["id"], "iat": past, "exp": past + timedelta(days=7)}, JWT_SECRET, algorithm=JWT_ALGO)
    resp = client.get("/api/user", headers={"Cookie": f"{SESSION_COOKIE}={token}"})
    assert resp.status_code == 401
