"""
Savra Store Schemas

Each top-level Pydantic model below maps to one MongoDB collection. The collection name is the
lowercase class name with an underscore for camel-case breaks. Example: class PromoCode ->
collection "promo_code".

Money is always an integer amount in the smallest currency unit.
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, computed_field, field_validator

ProductType = Literal["classic", "textured", "classic_mens", "textured_mens"]
OrderType = Literal["catalog", "constructor"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
Role = Literal["client", "admin"]

DEFAULT_MATERIAL = "Silver 925"
DEFAULT_RING_SIZES = ["15", "16", "17", "18", "19", "20", "21"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    name: str
    email: EmailStr
    password_hash: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Role = Field("client", description="client | admin")
    favorites: List[str] = Field(default_factory=list, description="Favorite product ids")


class Product(BaseModel):
    id: str
    name: str
    description: str = ""
    detailed_description: str = ""
    price: int = Field(..., ge=0)
    category: str
    collection: str = ""
    article: str = ""
    material: str = DEFAULT_MATERIAL
    type: ProductType = "classic"
    sizes: Optional[List[str]] = None
    images: List[str] = Field(default_factory=list)
    is_active: bool = True

    @computed_field
    @property
    def image(self) -> str:
        return self.images[0] if self.images else ""


class CartLine(BaseModel):
    product_id: str
    size: Optional[str] = None
    name: str
    image: str = ""
    quantity: int = Field(1, ge=1)
    unit_price: int = Field(..., ge=0, description="Price captured at add-to-cart time")
    order_type: OrderType = "catalog"

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class AppliedPromo(BaseModel):
    promo_id: str
    code: str
    percent: int
    discount: int = Field(..., ge=0, description="Frozen at apply time")


class Cart(BaseModel):
    cart_key: str
    lines: List[CartLine] = Field(default_factory=list)
    applied_promo: Optional[AppliedPromo] = None


class PromoCode(BaseModel):
    id: str
    code: str
    discount: int = Field(..., ge=1, le=100, description="Percent off the subtotal")
    is_active: bool = True
    usage_count: int = Field(0, ge=0)
    max_usage: Optional[int] = Field(None, ge=1)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("code")
    @classmethod
    def canonical_code(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def is_redeemable(self) -> bool:
        if not self.is_active:
            return False
        return self.max_usage is None or self.usage_count < self.max_usage


class Totals(BaseModel):
    subtotal: int
    discount: int
    delivery: int
    total: int
    installment: int


class Order(BaseModel):
    id: str
    user_id: Optional[str] = None
    lines: List[CartLine]
    subtotal: int
    discount: int = 0
    delivery: int = 0
    total: int = Field(..., ge=0)
    order_type: OrderType = "catalog"
    promo_code: Optional[str] = None
    status: OrderStatus = Field("pending", description="pending|processing|shipped|delivered|cancelled")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Identity(BaseModel):
    user_id: Optional[str] = None
    is_admin: bool = False


class AdminStats(BaseModel):
    total_orders: int
    total_revenue: int
    total_products: int
    total_users: int
    recent_orders: List[Order] = Field(default_factory=list)
