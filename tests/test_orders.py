from fastapi.testclient import TestClient

from conftest import SHIPPING, make_product
from schemas import ShippingAddress


def place_order(client, *lines):
    for product, qty in lines:
        client.post("/api/cart", json={"productId": product["id"], "quantity": qty})
    return client.post("/api/orders", json={"shippingAddress": SHIPPING})


def test_checkout_snapshots_cart(user_client, product, sale_product):
    resp = place_order(user_client, (product, 2), (sale_product, 1))
    assert resp.status_code == 201
    order = resp.json()
    assert order["status"] == "pending"
    assert order["email"] == "sara@example.com"
    assert order["total"] == 849 * 2 + 1299
    assert order["shippingAddress"]["city"] == "Riyadh"
    assert [(i["productId"], i["quantity"], i["unitPrice"]) for i in order["items"]] == [
        (product["id"], 2, 849),
        (sale_product["id"], 1, 1299),
    ]
    assert order["items"][1]["product"]["salePrice"] == 1299

    assert user_client.get("/api/cart").json()["items"] == []


def test_order_survives_product_edits(user_client, storage, product):
    order = place_order(user_client, (product, 1)).json()
    storage.db["product"].update_one({"name": "Geometric Hexa Light"}, {"$set": {"price": 999, "name": "Renamed"}})
    storage.delete_product(product["id"])

    fetched = user_client.get(f"/api/orders/{order['id']}").json()
    assert fetched["items"][0]["product"]["name"] == "Geometric Hexa Light"
    assert fetched["total"] == 849


def test_checkout_requires_items_and_address(user_client, product):
    resp = user_client.post("/api/orders", json={"shippingAddress": SHIPPING})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cart is empty"

    user_client.post("/api/cart", json={"productId": product["id"], "quantity": 1})
    assert user_client.post("/api/orders", json={}).status_code == 422
    partial = {**SHIPPING, "zip": ""}
    assert user_client.post("/api/orders", json={"shippingAddress": partial}).status_code == 422


def test_checkout_rejects_sold_out_items(user_client, storage, product):
    user_client.post("/api/cart", json={"productId": product["id"], "quantity": 1})
    storage.db["product"].update_one({"name": "Geometric Hexa Light"}, {"$set": {"in_stock": False}})
    resp = user_client.post("/api/orders", json={"shippingAddress": SHIPPING})
    assert resp.status_code == 400
    assert "Geometric Hexa Light" in resp.json()["detail"]
    assert len(user_client.get("/api/cart").json()["items"]) == 1


def test_order_history_is_private(app, user_client, storage, product):
    first = place_order(user_client, (product, 1)).json()
    second = place_order(user_client, (product, 3)).json()
    history = user_client.get("/api/orders").json()
    assert [o["id"] for o in history] == [second["id"], first["id"]]

    other = TestClient(app)
    other.post("/api/register", json={"username": "lina", "password": "secret1", "email": "lina@example.com"})
    assert other.get("/api/orders").json() == []
    assert other.get(f"/api/orders/{first['id']}").status_code == 404


def test_orders_require_login(client):
    assert client.get("/api/orders").status_code == 401
    assert client.post("/api/orders", json={"shippingAddress": SHIPPING}).status_code == 401


def test_zero_sale_price_falls_back_to_list_price(user_client, storage):
    odd = make_product(storage, name="Freebie", price=50, sale_price=0)
    order = place_order(user_client, (odd, 2)).json()
    assert order["total"] == 100


def test_checkout_keeps_lines_added_after_snapshot(storage, product, sale_product):
    storage.add_to_cart("u1", product["id"], 2)
    cart = storage.get_cart("u1")

    # the shopper keeps shopping while the order is being written
    storage.add_to_cart("u1", sale_product["id"], 1)
    storage.add_to_cart("u1", product["id"], 3)

    order = storage.create_order({"id": "u1", "email": "u1@example.com"}, cart, ShippingAddress(**SHIPPING))
    assert [(i["product_id"], i["quantity"]) for i in order["items"]] == [(product["id"], 2)]
    left = storage.get_cart("u1")
    assert sorted((i["product_id"], i["quantity"]) for i in left["items"]) == sorted(
        [(product["id"], 3), (sale_product["id"], 1)]
    )
