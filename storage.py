"""
Shop storage: users, products, carts and orders on top of a MongoDB database.

Lookups return serialized dicts (``id`` instead of ``_id``) or None when the
document does not exist; callers decide how to report a miss.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, serialize_doc
from schemas import ORDER_STATUSES, ProductCreate, ProductUpdate, ShippingAddress, User

logger = logging.getLogger(__name__)

USERS = "user"
PRODUCTS = "product"
CARTS = "cart"
ORDERS = "order"

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _oid(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _iexact(value: str) -> dict:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


def effective_price(product: dict) -> float:
    """Sale price when one is set, else the list price."""
    return product.get("sale_price") or product["price"]


def lines_total(lines: Iterable[dict]) -> float:
    return round(sum(effective_price(line["product"]) * line["quantity"] for line in lines), 2)


class ShopStorage:
    def __init__(self, db: Database):
        self.db = db

    def ensure_indexes(self):
        self.db[USERS].create_index("username", unique=True)
        self.db[USERS].create_index("email", unique=True)
        self.db[CARTS].create_index("user_id", unique=True)
        self.db[ORDERS].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

    def counts(self) -> Dict[str, int]:
        return {name: self.db[name].count_documents({}) for name in (USERS, PRODUCTS, ORDERS)}

    # ----------------------- Users -----------------------
    def get_user(self, user_id) -> Optional[dict]:
        oid = _oid(user_id)
        if oid is None:
            return None
        return serialize_doc(self.db[USERS].find_one({"_id": oid}))

    def get_user_by_username(self, username: str) -> Optional[dict]:
        return serialize_doc(self.db[USERS].find_one({"username": _iexact(username)}))

    def get_user_by_email(self, email: str) -> Optional[dict]:
        return serialize_doc(self.db[USERS].find_one({"email": _iexact(email)}))

    def create_user(self, user: User) -> dict:
        return create_document(self.db, USERS, user)

    def list_users(self) -> List[dict]:
        return get_documents(self.db, USERS, sort=[("created_at", ASCENDING), ("_id", ASCENDING)])

    def has_admin(self) -> bool:
        return self.db[USERS].count_documents({"is_admin": True}) > 0

    def set_admin(self, user_id, is_admin: bool) -> Optional[dict]:
        return self._update(USERS, user_id, {"is_admin": is_admin})

    def update_password(self, user_id, password_hash: str) -> Optional[dict]:
        return self._update(USERS, user_id, {"password": password_hash})

    # ----------------------- Products -----------------------
    def get_product(self, product_id) -> Optional[dict]:
        oid = _oid(product_id)
        if oid is None:
            return None
        return serialize_doc(self.db[PRODUCTS].find_one({"_id": oid}))

    def get_products(self, product_ids: Iterable[str]) -> Dict[str, dict]:
        oids = [oid for oid in (_oid(pid) for pid in product_ids) if oid is not None]
        if not oids:
            return {}
        docs = get_documents(self.db, PRODUCTS, {"_id": {"$in": oids}})
        return {d["id"]: d for d in docs}

    def list_products(self, category: Optional[str] = None, featured: bool = False, q: Optional[str] = None) -> List[dict]:
        filt = {}
        if category:
            filt["category"] = _iexact(category)
        if featured:
            filt["is_featured"] = True
        if q:
            pattern = {"$regex": re.escape(q), "$options": "i"}
            filt["$or"] = [{"name": pattern}, {"description": pattern}]
        return get_documents(self.db, PRODUCTS, filt, sort=NEWEST_FIRST)

    def create_product(self, product: ProductCreate) -> dict:
        return create_document(self.db, PRODUCTS, product)

    def update_product(self, product_id, product: ProductUpdate) -> Optional[dict]:
        existing = self.get_product(product_id)
        if existing is None:
            return None
        changes = product.model_dump()
        if changes["rating"] is None:
            changes["rating"] = existing.get("rating", 0)
        if changes["rating_count"] is None:
            changes["rating_count"] = existing.get("rating_count", 0)
        return self._update(PRODUCTS, product_id, changes)

    def delete_product(self, product_id) -> bool:
        oid = _oid(product_id)
        if oid is None:
            return False
        return self.db[PRODUCTS].delete_one({"_id": oid}).deleted_count == 1

    # ----------------------- Cart -----------------------
    def get_cart(self, user_id: str) -> Optional[dict]:
        doc = self.db[CARTS].find_one({"user_id": user_id})
        if doc is None:
            return None
        return self._enrich_cart(serialize_doc(doc))

    def empty_cart(self, user_id: str) -> dict:
        return {"user_id": user_id, "items": [], "subtotal": 0.0, "item_count": 0}

    def _enrich_cart(self, cart: dict) -> dict:
        # product data is joined at read time; lines for deleted products drop out
        stored = cart.get("items", [])
        products = self.get_products(item["product_id"] for item in stored)
        lines = []
        for item in stored:
            product = products.get(item["product_id"])
            if product is None:
                logger.debug("Skipping cart line for missing product %s", item["product_id"])
                continue
            lines.append({"product_id": item["product_id"], "quantity": item["quantity"], "product": product})
        cart["items"] = lines
        cart["subtotal"] = lines_total(lines)
        cart["item_count"] = sum(line["quantity"] for line in lines)
        return cart

    def _ensure_cart(self, user_id: str):
        now = _now()
        try:
            self.db[CARTS].update_one(
                {"user_id": user_id},
                {"$setOnInsert": {"items": [], "created_at": now, "updated_at": now}},
                upsert=True,
            )
        except DuplicateKeyError:
            # another request created the cart first
            pass

    def _bump_line(self, user_id: str, product_id: str, quantity: int) -> bool:
        result = self.db[CARTS].update_one(
            {"user_id": user_id, "items.product_id": product_id},
            {"$inc": {"items.$.quantity": quantity}, "$set": {"updated_at": _now()}},
        )
        return result.matched_count == 1

    def add_to_cart(self, user_id: str, product_id: str, quantity: int) -> dict:
        """Merge ``quantity`` into the product's line, appending the line if it is new."""
        self._ensure_cart(user_id)
        while not self._bump_line(user_id, product_id, quantity):
            pushed = self.db[CARTS].update_one(
                {"user_id": user_id, "items.product_id": {"$ne": product_id}},
                {"$push": {"items": {"product_id": product_id, "quantity": quantity}}, "$set": {"updated_at": _now()}},
            )
            if pushed.matched_count == 1:
                break
            # the line appeared after the $inc missed; merge into it on the next pass
        return self.get_cart(user_id)

    def update_cart_item(self, user_id: str, product_id: str, quantity: int) -> Optional[dict]:
        """Set a line's quantity; 0 removes it. None when the line is not in the cart."""
        if quantity == 0:
            change = {"$pull": {"items": {"product_id": product_id}}, "$set": {"updated_at": _now()}}
        else:
            change = {"$set": {"items.$.quantity": quantity, "updated_at": _now()}}
        result = self.db[CARTS].update_one({"user_id": user_id, "items.product_id": product_id}, change)
        if result.matched_count == 0:
            return None
        return self.get_cart(user_id)

    def remove_from_cart(self, user_id: str, product_id: str) -> dict:
        self.db[CARTS].update_one(
            {"user_id": user_id},
            {"$pull": {"items": {"product_id": product_id}}, "$set": {"updated_at": _now()}},
        )
        return self.get_cart(user_id) or self.empty_cart(user_id)

    def take_ordered_lines(self, user_id: str, lines: Iterable[dict]):
        """Subtract ordered quantities from the cart; lines added or topped up meanwhile stay."""
        carts = self.db[CARTS]
        for line in lines:
            carts.update_one(
                {"user_id": user_id, "items.product_id": line["product_id"]},
                {"$inc": {"items.$.quantity": -line["quantity"]}},
            )
        carts.update_one(
            {"user_id": user_id},
            {"$pull": {"items": {"quantity": {"$lte": 0}}}, "$set": {"updated_at": _now()}},
        )

    # ----------------------- Orders -----------------------
    def create_order(self, user: dict, cart: dict, shipping_address: ShippingAddress) -> dict:
        """Snapshot an enriched cart into a pending order and empty the cart."""
        items = [
            {
                "product_id": line["product_id"],
                "quantity": line["quantity"],
                "unit_price": effective_price(line["product"]),
                "product": line["product"],
            }
            for line in cart["items"]
        ]
        order = create_document(
            self.db,
            ORDERS,
            {
                "user_id": user["id"],
                "email": user["email"],
                "items": items,
                "shipping_address": shipping_address.model_dump(),
                "total": lines_total(cart["items"]),
                "status": "pending",
            },
        )
        self.take_ordered_lines(user["id"], items)
        return order

    def get_order(self, order_id) -> Optional[dict]:
        oid = _oid(order_id)
        if oid is None:
            return None
        return serialize_doc(self.db[ORDERS].find_one({"_id": oid}))

    def list_orders(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[dict]:
        filt = {}
        if user_id:
            filt["user_id"] = user_id
        if status:
            filt["status"] = status
        return get_documents(self.db, ORDERS, filt, sort=NEWEST_FIRST)

    def update_order_status(self, order_id, status: str) -> Optional[dict]:
        return self._update(ORDERS, order_id, {"status": status})

    def order_summary(self) -> Dict[str, object]:
        by_status = {status: 0 for status in ORDER_STATUSES}
        revenue = 0.0
        pipeline = [{"$group": {"_id": "$status", "count": {"$sum": 1}, "total": {"$sum": "$total"}}}]
        for row in self.db[ORDERS].aggregate(pipeline):
            by_status[row["_id"]] = row["count"]
            if row["_id"] != "cancelled":
                revenue += row["total"]
        return {"orders_by_status": by_status, "revenue": round(revenue, 2)}

    # ----------------------- Helpers -----------------------
    def _update(self, collection: str, doc_id, changes: dict) -> Optional[dict]:
        oid = _oid(doc_id)
        if oid is None:
            return None
        doc = self.db[collection].find_one_and_update(
            {"_id": oid},
            {"$set": {**changes, "updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc)
