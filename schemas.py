"""
Database Schemas for the Lumina lighting shop

Each Pydantic model maps to one MongoDB collection (collection name is the
lowercase singular: "user", "product", "cart", "order") or to a request /
response body. Storage uses snake_case field names; the JSON API speaks
camelCase through the alias generator on CamelModel.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ORDER_STATUSES = get_args(OrderStatus)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----------------------- Users -----------------------
class User(CamelModel):
    username: str = Field(..., description="Login name")
    password: str = Field(..., description="BCrypt password hash")
    email: EmailStr = Field(..., description="Email address")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_admin: bool = Field(False, description="Is admin user")


class PublicUser(CamelModel):
    """User as returned by the API; the password hash is never included."""

    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[datetime] = None


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(..., min_length=6)
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode()) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return value


class LoginRequest(CamelModel):
    username: str
    password: str


class AdminFlagUpdate(CamelModel):
    is_admin: bool


# ----------------------- Products -----------------------
class ProductBase(CamelModel):
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field(..., description="Product description")
    price: float = Field(..., ge=0, description="List price")
    sale_price: Optional[float] = Field(None, ge=0, description="Discounted price")
    image_url: str = Field(..., description="Main image URL")
    light_image_url: Optional[str] = Field(None, description="Image with the light switched on")
    category: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    features: Optional[Dict[str, Any]] = None
    is_featured: bool = False
    in_stock: bool = True
    rating: float = Field(0, ge=0, le=5, description="Average rating")
    rating_count: int = Field(0, ge=0)

    @model_validator(mode="after")
    def sale_price_not_above_price(self):
        if self.sale_price is not None and self.sale_price > self.price:
            raise ValueError("salePrice must not exceed price")
        return self


class ProductCreate(ProductBase):
    pass


class ProductUpdate(ProductBase):
    # left out -> keep the stored values
    rating: Optional[float] = Field(None, ge=0, le=5)
    rating_count: Optional[int] = Field(None, ge=0)


class Product(ProductBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ----------------------- Cart -----------------------
class CartItemRequest(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartQuantityUpdate(CamelModel):
    quantity: int = Field(..., ge=0, description="0 removes the line")


class CartLine(CamelModel):
    product_id: str
    quantity: int
    product: Product


class Cart(CamelModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    items: List[CartLine] = Field(default_factory=list)
    subtotal: float = 0.0
    item_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ----------------------- Orders -----------------------
class ShippingAddress(CamelModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class OrderCreate(CamelModel):
    shipping_address: ShippingAddress


class OrderItem(CamelModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    unit_price: float
    product: Product


class Order(CamelModel):
    id: str
    user_id: str
    email: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    total: float
    status: OrderStatus = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


# ----------------------- Admin -----------------------
class AdminStats(CamelModel):
    users: int
    products: int
    orders: int
    revenue: float
    orders_by_status: Dict[str, int]
