import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Cookie, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth import (
    SESSION_COOKIE,
    clear_session_cookie,
    decode_token,
    hash_password,
    needs_rehash,
    set_session_cookie,
    verify_password,
)
from database import db
from schemas import (
    AdminFlagUpdate,
    AdminStats,
    Cart,
    CartItemRequest,
    CartQuantityUpdate,
    LoginRequest,
    Order,
    OrderCreate,
    OrderStatus,
    OrderStatusUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    PublicUser,
    RegisterRequest,
    User,
)
from seed import seed_demo_data
from storage import CARTS, ORDERS, PRODUCTS, USERS, ShopStorage

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("lumina")

SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "1") == "1"
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

_storage = ShopStorage(db) if db is not None else None


@asynccontextmanager
async def lifespan(app: FastAPI):
    if _storage is not None:
        try:
            _storage.ensure_indexes()
            if SEED_DEMO_DATA:
                seed_demo_data(_storage, ADMIN_PASSWORD)
        except PyMongoError:
            logger.exception("Database setup failed; continuing without seed data")
    yield


app = FastAPI(title="Lumina Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        elapsed = (time.perf_counter() - start) * 1000
        logger.info("%s %s %s in %.1fms", request.method, request.url.path, response.status_code, elapsed)
    return response


@app.exception_handler(PyMongoError)
async def database_error(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Database unavailable"})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


# ----------------------- Dependencies -----------------------
def get_storage() -> ShopStorage:
    if _storage is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return _storage


def get_current_user(
    session: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
    storage: ShopStorage = Depends(get_storage),
) -> Optional[dict]:
    if not session:
        return None
    payload = decode_token(session)
    if not payload:
        return None
    return storage.get_user(payload.get("sub"))


def require_user(user: Optional[dict] = Depends(get_current_user)) -> dict:
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: Optional[dict] = Depends(get_current_user)) -> dict:
    if not user or not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Not authorized")
    return user


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "Lumina Shop API running"}


@app.get("/health")
def health():
    return {"status": "OK", "time": datetime.now(timezone.utc).isoformat()}


@app.get("/schema")
def schema_overview():
    return {"collections": [USERS, PRODUCTS, CARTS, ORDERS]}


@app.get("/test")
def test_database():
    status = {
        "backend": "running",
        "database": "not-configured",
        "collections": [],
    }
    if db is None:
        return status
    try:
        status["collections"] = db.list_collection_names()
        status["database"] = "connected"
    except PyMongoError as e:
        status["database"] = f"error: {str(e)[:80]}"
    return status


# ----------------------- Auth -----------------------
@app.post("/api/register", response_model=PublicUser, status_code=201)
def register(body: RegisterRequest, response: Response, storage: ShopStorage = Depends(get_storage)):
    if storage.get_user_by_username(body.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    if storage.get_user_by_email(body.email):
        raise HTTPException(status_code=400, detail="Email already exists")
    user = User(
        username=body.username,
        password=hash_password(body.password),
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        is_admin=False,
    )
    try:
        created = storage.create_user(user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Username or email already exists")
    set_session_cookie(response, created)
    logger.info("Registered user %s", created["username"])
    return created


@app.post("/api/login", response_model=PublicUser)
def login(body: LoginRequest, response: Response, storage: ShopStorage = Depends(get_storage)):
    user = storage.get_user_by_username(body.username)
    if not user or not verify_password(body.password, user.get("password", "")):
        logger.warning("Failed login for %r", body.username)
        raise HTTPException(status_code=401, detail="Invalid username or password")
    if needs_rehash(user["password"]):
        storage.update_password(user["id"], hash_password(body.password))
        logger.info("Upgraded legacy password hash for %s", user["username"])
    set_session_cookie(response, user)
    logger.info("User %s logged in", user["username"])
    return user


@app.post("/api/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out"}


@app.get("/api/user", response_model=PublicUser)
def current_user(user: dict = Depends(require_user)):
    return user


# ----------------------- Products -----------------------
@app.get("/api/products", response_model=List[Product])
def list_products(
    category: Optional[str] = None,
    featured: bool = False,
    q: Optional[str] = None,
    storage: ShopStorage = Depends(get_storage),
):
    return storage.list_products(category=category, featured=featured, q=q)


@app.get("/api/products/{product_id}", response_model=Product)
def get_product(product_id: str, storage: ShopStorage = Depends(get_storage)):
    product = storage.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.post("/api/admin/products", response_model=Product, status_code=201)
def admin_create_product(
    body: ProductCreate, user: dict = Depends(require_admin), storage: ShopStorage = Depends(get_storage)
):
    product = storage.create_product(body)
    logger.info("Admin %s created product %s", user["username"], product["id"])
    return product


@app.put("/api/admin/products/{product_id}", response_model=Product)
def admin_update_product(
    product_id: str,
    body: ProductUpdate,
    user: dict = Depends(require_admin),
    storage: ShopStorage = Depends(get_storage),
):
    product = storage.update_product(product_id, body)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.delete("/api/admin/products/{product_id}", status_code=204)
def admin_delete_product(
    product_id: str, user: dict = Depends(require_admin), storage: ShopStorage = Depends(get_storage)
):
    if not storage.delete_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Admin %s deleted product %s", user["username"], product_id)
    return Response(status_code=204)


# ----------------------- Cart -----------------------
@app.get("/api/cart", response_model=Cart)
def get_cart(user: dict = Depends(require_user), storage: ShopStorage = Depends(get_storage)):
    return storage.get_cart(user["id"]) or storage.empty_cart(user["id"])


@app.post("/api/cart", response_model=Cart)
def add_to_cart(body: CartItemRequest, user: dict = Depends(require_user), storage: ShopStorage = Depends(get_storage)):
    product = storage.get_product(body.product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if not product.get("in_stock", True):
        raise HTTPException(status_code=400, detail="Product is out of stock")
    return storage.add_to_cart(user["id"], product["id"], body.quantity)


@app.put("/api/cart/{product_id}", response_model=Cart)
def update_cart_item(
    product_id: str,
    body: CartQuantityUpdate,
    user: dict = Depends(require_user),
    storage: ShopStorage = Depends(get_storage),
):
    cart = storage.update_cart_item(user["id"], product_id, body.quantity)
    if cart is None:
        raise HTTPException(status_code=404, detail="Item not found in cart")
    return cart


@app.delete("/api/cart/{product_id}", response_model=Cart)
def remove_from_cart(product_id: str, user: dict = Depends(require_user), storage: ShopStorage = Depends(get_storage)):
    return storage.remove_from_cart(user["id"], product_id)


# ----------------------- Orders -----------------------
@app.get("/api/orders", response_model=List[Order])
def list_orders(user: dict = Depends(require_user), storage: ShopStorage = Depends(get_storage)):
    return storage.list_orders(user_id=user["id"])


@app.get("/api/orders/{order_id}", response_model=Order)
def get_order(order_id: str, user: dict = Depends(require_user), storage: ShopStorage = Depends(get_storage)):
    order = storage.get_order(order_id)
    if not order or (order["user_id"] != user["id"] and not user.get("is_admin")):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@app.post("/api/orders", response_model=Order, status_code=201)
def create_order(body: OrderCreate, user: dict = Depends(require_user), storage: ShopStorage = Depends(get_storage)):
    cart = storage.get_cart(user["id"])
    if not cart or not cart["items"]:
        raise HTTPException(status_code=400, detail="Cart is empty")
    unavailable = [line["product"]["name"] for line in cart["items"] if not line["product"].get("in_stock", True)]
    if unavailable:
        raise HTTPException(status_code=400, detail=f"Out of stock: {', '.join(unavailable)}")
    order = storage.create_order(user, cart, body.shipping_address)
    logger.info("Order %s placed by %s for %.2f", order["id"], user["username"], order["total"])
    return order


# ----------------------- Admin -----------------------
@app.get("/api/admin/orders", response_model=List[Order])
def admin_list_orders(
    status: Optional[OrderStatus] = None,
    user: dict = Depends(require_admin),
    storage: ShopStorage = Depends(get_storage),
):
    return storage.list_orders(status=status)


@app.put("/api/admin/orders/{order_id}", response_model=Order)
def admin_update_order(
    order_id: str,
    body: OrderStatusUpdate,
    user: dict = Depends(require_admin),
    storage: ShopStorage = Depends(get_storage),
):
    order = storage.update_order_status(order_id, body.status)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    logger.info("Admin %s set order %s to %s", user["username"], order_id, body.status)
    return order


@app.get("/api/admin/users", response_model=List[PublicUser])
def admin_list_users(user: dict = Depends(require_admin), storage: ShopStorage = Depends(get_storage)):
    return storage.list_users()


@app.put("/api/admin/users/{user_id}", response_model=PublicUser)
def admin_set_user_flag(
    user_id: str,
    body: AdminFlagUpdate,
    user: dict = Depends(require_admin),
    storage: ShopStorage = Depends(get_storage),
):
    if user_id == user["id"]:
        raise HTTPException(status_code=400, detail="Cannot change your own admin status")
    updated = storage.set_admin(user_id, body.is_admin)
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Admin %s set isAdmin=%s for %s", user["username"], body.is_admin, updated["username"])
    return updated


@app.get("/api/admin/stats", response_model=AdminStats)
def admin_stats(user: dict = Depends(require_admin), storage: ShopStorage = Depends(get_storage)):
    counts = storage.counts()
    return {
        "users": counts[USERS],
        "products": counts[PRODUCTS],
        "orders": counts[ORDERS],
        **storage.order_summary(),
    }


@app.post("/api/admin/seed")
def admin_seed(user: dict = Depends(require_admin), storage: ShopStorage = Depends(get_storage)):
    result = seed_demo_data(storage, ADMIN_PASSWORD)
    return {"seeded": result["products"] > 0, "products": storage.counts()[PRODUCTS]}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
