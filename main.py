import os
import logging
from typing import Optional, List

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from cart import CartEngine
from configurator import RingConfigurator, products_in_category
from errors import AuthenticationError, AuthorizationError, NotFoundError, StoreError
from orders import admin_stats, advance_status
from promos import add_promo_code, delete_promo_code, list_promo_codes
from repository import get_repository
from schemas import DEFAULT_RING_SIZES, Identity, OrderStatus, Product, ProductType, User
from security import (CurrentUser, create_token, get_current_user, hash_password, require_admin_user,
                      verify_password)

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("savra")

# Configuration
STORE_NAME = os.getenv("STORE_NAME", "Savra")
PRIMARY_CURRENCY = os.getenv("PRIMARY_CURRENCY", "RUB")
DELIVERY_THRESHOLD = int(os.getenv("DELIVERY_THRESHOLD", "5000"))
DELIVERY_FEE = int(os.getenv("DELIVERY_FEE", "500"))
INSTALLMENT_MONTHS = int(os.getenv("INSTALLMENT_MONTHS", "12"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

app = FastAPI(title="Savra Store API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in ALLOWED_ORIGINS] if ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def load_engine(repository, cart_key: str) -> CartEngine:
    return CartEngine(repository.get_cart(cart_key), delivery_threshold=DELIVERY_THRESHOLD,
                      delivery_fee=DELIVERY_FEE, installment_months=INSTALLMENT_MONTHS)


def cart_view(engine: CartEngine):
    return {
        "cart_key": engine.cart.cart_key,
        "items": [l.model_dump() for l in engine.lines],
        "item_count": engine.item_count,
        "promo": engine.cart.applied_promo.model_dump() if engine.cart.applied_promo else None,
        "totals": engine.totals().model_dump(),
    }


def get_active_product(repository, product_id: str) -> Product:
    product = repository.get_product(product_id)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")
    return product


def user_view(user_id: str, user: User):
    return {"id": user_id, "name": user.name, "email": user.email, "phone": user.phone,
            "avatar_url": user.avatar_url, "role": user.role}


# Health and config
@app.get("/")
def root():
    return {"name": STORE_NAME, "status": "ok"}


@app.get("/config")
def get_config():
    return {
        "storeName": STORE_NAME,
        "currency": PRIMARY_CURRENCY,
        "delivery": {"freeAbove": DELIVERY_THRESHOLD, "fee": DELIVERY_FEE},
        "installmentMonths": INSTALLMENT_MONTHS,
    }


# Auth
class RegisterDTO(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None


class LoginDTO(BaseModel):
    email: EmailStr
    password: str


class ProfileDTO(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


@app.post("/auth/register")
def register(data: RegisterDTO, repository=Depends(get_repository)):
    if repository.find_user_id_by_email(data.email):
        raise StoreError("Email already in use")
    user = User(name=data.name, email=data.email, phone=data.phone,
                password_hash=hash_password(data.password), role="client")
    user_id = repository.create_user(user)
    logger.info("Registered user %s", user_id)
    return {"token": create_token(user_id, user), "user": user_view(user_id, user)}


@app.post("/auth/login")
def login(data: LoginDTO, repository=Depends(get_repository)):
    user_id = repository.find_user_id_by_email(data.email)
    user = repository.get_user(user_id) if user_id else None
    if not user or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    return {"token": create_token(user_id, user), "user": user_view(user_id, user)}


@app.get("/auth/me")
def me(current: CurrentUser = Depends(get_current_user)):
    return user_view(current.id, current.user)


@app.put("/auth/me")
def update_me(data: ProfileDTO, current: CurrentUser = Depends(get_current_user), repository=Depends(get_repository)):
    user = repository.update_user(current.id, data.model_dump(exclude_none=True))
    return user_view(current.id, user)


# Products
class ProductDTO(BaseModel):
    name: str
    description: str = ""
    detailed_description: str = ""
    price: int = Field(..., ge=0)
    category: str
    collection: str = ""
    article: str = ""
    material: Optional[str] = None
    type: ProductType = "classic"
    sizes: Optional[List[str]] = None
    images: List[str] = []


class ProductUpdateDTO(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    detailed_description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    collection: Optional[str] = None
    article: Optional[str] = None
    material: Optional[str] = None
    type: Optional[ProductType] = None
    sizes: Optional[List[str]] = None
    images: Optional[List[str]] = None


@app.get("/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None, type: Optional[ProductType] = None,
                  repository=Depends(get_repository)):
    items = repository.list_products()
    if q:
        items = [p for p in items if q.lower() in p.name.lower()]
    if category:
        items = [p for p in items if p.category == category]
    if type:
        items = [p for p in items if p.type == type]
    return items


@app.get("/products/{product_id}")
def get_product(product_id: str, repository=Depends(get_repository)):
    return get_active_product(repository, product_id)


@app.post("/admin/products")
def create_product(data: ProductDTO, admin: CurrentUser = Depends(require_admin_user),
                   repository=Depends(get_repository)):
    fields = data.model_dump(exclude_none=True)
    fields.setdefault("sizes", list(DEFAULT_RING_SIZES))
    product = Product(id=repository.new_id(), **fields)
    repository.save_product(product)
    logger.info("Product %s created by %s", product.id, admin.id)
    return product


@app.put("/admin/products/{product_id}")
def update_product(product_id: str, data: ProductUpdateDTO, admin: CurrentUser = Depends(require_admin_user),
                   repository=Depends(get_repository)):
    product = repository.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    changes = data.model_dump(exclude_unset=True)
    # sizes may be cleared with an explicit null; other nulls mean "leave as is"
    changes = {k: v for k, v in changes.items() if v is not None or k == "sizes"}
    updated = Product.model_validate(product.model_dump() | changes)
    repository.save_product(updated)
    return updated


@app.delete("/admin/products/{product_id}")
def delete_product(product_id: str, admin: CurrentUser = Depends(require_admin_user),
                   repository=Depends(get_repository)):
    product = repository.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    # soft delete: orders and carts keep referring to the id
    product.is_active = False
    repository.save_product(product)
    return {"id": product_id, "deleted": True}


# Cart
class CartAddDTO(BaseModel):
    cart_key: str
    product_id: str
    quantity: int = 1
    size: Optional[str] = None


class CartUpdateDTO(BaseModel):
    cart_key: str
    product_id: str
    size: Optional[str] = None
    quantity: int


class CartLineDTO(BaseModel):
    cart_key: str
    product_id: str
    size: Optional[str] = None


class CartKeyDTO(BaseModel):
    cart_key: str


class PromoApplyDTO(BaseModel):
    cart_key: str
    code: str


@app.get("/cart")
def cart_get(cart_key: str, repository=Depends(get_repository)):
    return cart_view(load_engine(repository, cart_key))


@app.post("/cart/add")
def cart_add(data: CartAddDTO, repository=Depends(get_repository)):
    engine = load_engine(repository, data.cart_key)
    product = get_active_product(repository, data.product_id)
    engine.add_item(product, quantity=data.quantity, size=data.size)
    repository.save_cart(engine.cart)
    return cart_view(engine)


@app.post("/cart/update")
def cart_update(data: CartUpdateDTO, repository=Depends(get_repository)):
    engine = load_engine(repository, data.cart_key)
    engine.update_quantity(data.product_id, data.size, data.quantity)
    repository.save_cart(engine.cart)
    return cart_view(engine)


@app.post("/cart/remove")
def cart_remove(data: CartLineDTO, repository=Depends(get_repository)):
    engine = load_engine(repository, data.cart_key)
    engine.remove_item(data.product_id, data.size)
    repository.save_cart(engine.cart)
    return cart_view(engine)


@app.post("/cart/clear")
def cart_clear(data: CartKeyDTO, repository=Depends(get_repository)):
    engine = load_engine(repository, data.cart_key)
    engine.clear()
    repository.save_cart(engine.cart)
    return cart_view(engine)


@app.post("/cart/promo")
def cart_apply_promo(data: PromoApplyDTO, repository=Depends(get_repository)):
    engine = load_engine(repository, data.cart_key)
    engine.apply_promo_code(data.code, repository.list_promo_codes())
    repository.save_cart(engine.cart)
    return cart_view(engine)


@app.delete("/cart/promo")
def cart_remove_promo(cart_key: str, repository=Depends(get_repository)):
    engine = load_engine(repository, cart_key)
    engine.remove_promo_code()
    repository.save_cart(engine.cart)
    return cart_view(engine)


# Ring constructor
class ConstructorDTO(BaseModel):
    cart_key: str
    category: str
    product_id: str
    size: str
    quantity: int = 1


@app.get("/constructor/products")
def constructor_products(category: str = "all", repository=Depends(get_repository)):
    return products_in_category(category, repository.list_products())


@app.post("/constructor/add")
def constructor_add(data: ConstructorDTO, repository=Depends(get_repository)):
    engine = load_engine(repository, data.cart_key)
    wizard = RingConfigurator()
    wizard.select_category(data.category)
    wizard.select_product(get_active_product(repository, data.product_id))
    wizard.select_size(data.size)
    wizard.complete(engine, quantity=data.quantity)
    repository.save_cart(engine.cart)
    return cart_view(engine)


# Checkout
@app.post("/checkout")
def checkout(data: CartKeyDTO, current: CurrentUser = Depends(get_current_user),
             repository=Depends(get_repository)):
    engine = load_engine(repository, data.cart_key)
    order = engine.submit_order(repository, user_id=current.id)
    repository.save_cart(engine.cart)
    return order


# Orders
class OrderStatusDTO(BaseModel):
    status: OrderStatus


@app.get("/orders")
def list_orders(current: CurrentUser = Depends(get_current_user), repository=Depends(get_repository)):
    if current.user.role == "admin":
        return repository.list_orders()
    return repository.list_orders(user_id=current.id)


@app.get("/orders/{order_id}")
def get_order(order_id: str, current: CurrentUser = Depends(get_current_user), repository=Depends(get_repository)):
    order = repository.get_order(order_id)
    if not order:
        raise NotFoundError()
    if current.user.role != "admin" and order.user_id != current.id:
        raise AuthorizationError()
    return order


@app.post("/admin/orders/{order_id}/status")
def update_order_status(order_id: str, data: OrderStatusDTO, admin: CurrentUser = Depends(require_admin_user),
                        repository=Depends(get_repository)):
    order = repository.get_order(order_id)
    if not order:
        raise NotFoundError()
    repository.save_order(advance_status(order, data.status))
    return order


# Favorites
@app.get("/favorites")
def get_favorites(current: CurrentUser = Depends(get_current_user), repository=Depends(get_repository)):
    favorites = repository.get_favorites(current.id)
    return {"items": list(favorites), "count": len(favorites)}


@app.post("/favorites/{product_id}")
def toggle_favorite(product_id: str, current: CurrentUser = Depends(get_current_user),
                    repository=Depends(get_repository)):
    favorites = repository.get_favorites(current.id)
    is_favorite = favorites.toggle(product_id)
    repository.save_favorites(current.id, favorites)
    return {"product_id": product_id, "favorite": is_favorite, "count": len(favorites)}


@app.delete("/favorites/{product_id}")
def remove_favorite(product_id: str, current: CurrentUser = Depends(get_current_user),
                    repository=Depends(get_repository)):
    favorites = repository.get_favorites(current.id)
    favorites.remove(product_id)
    repository.save_favorites(current.id, favorites)
    return {"items": list(favorites), "count": len(favorites)}


@app.delete("/favorites")
def clear_favorites(current: CurrentUser = Depends(get_current_user), repository=Depends(get_repository)):
    favorites = repository.get_favorites(current.id)
    favorites.clear()
    repository.save_favorites(current.id, favorites)
    return {"items": [], "count": 0}


# Promo codes (admin)
class PromoCodeDTO(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = Field(..., min_length=1)
    discount: int = Field(..., ge=1, le=100)
    is_active: bool = True
    max_usage: Optional[int] = Field(None, ge=1)


@app.get("/admin/promo-codes")
def get_promo_codes(admin: CurrentUser = Depends(require_admin_user), repository=Depends(get_repository)):
    return list_promo_codes(repository)


@app.post("/admin/promo-codes")
def create_promo_code(data: PromoCodeDTO, current: CurrentUser = Depends(get_current_user),
                      repository=Depends(get_repository)):
    return add_promo_code(current.identity, repository, data.code, data.discount,
                          is_active=data.is_active, max_usage=data.max_usage)


@app.delete("/admin/promo-codes/{promo_id}")
def remove_promo_code(promo_id: str, current: CurrentUser = Depends(get_current_user),
                      repository=Depends(get_repository)):
    delete_promo_code(current.identity, repository, promo_id)
    return {"id": promo_id, "deleted": True}


# Admin analytics
@app.get("/admin/analytics")
def analytics(admin: CurrentUser = Depends(require_admin_user), repository=Depends(get_repository)):
    return admin_stats(repository)


# Sample seed endpoint (dev only)
SEED_PRODUCTS = [
    {"name": "Classic Band", "price": 4200, "category": "rings", "type": "classic",
     "description": "Smooth polished band", "article": "SV-001"},
    {"name": "Hammered Band", "price": 5800, "category": "rings", "type": "textured",
     "description": "Hand-hammered surface", "article": "SV-002"},
    {"name": "Signet Ring", "price": 10250, "category": "rings", "type": "classic_mens",
     "description": "Heavy men's signet", "article": "SV-003"},
    {"name": "Bark Ring", "price": 7600, "category": "rings", "type": "textured_mens",
     "description": "Bark-textured men's ring", "article": "SV-004"},
    {"name": "Twisted Chain", "price": 3900, "category": "chains", "type": "classic",
     "description": "Fine twisted chain", "article": "SV-101"},
]


@app.post("/dev/seed")
def seed(repository=Depends(get_repository)):
    if not repository.find_user_id_by_email("admin@savra.store"):
        admin = User(name="Admin", email="admin@savra.store", password_hash=hash_password("admin123"), role="admin")
        repository.create_user(admin)
    if repository.count_products() == 0:
        for p in SEED_PRODUCTS:
            sizes = list(DEFAULT_RING_SIZES) if p["category"] == "rings" else None
            repository.save_product(Product(id=repository.new_id(), sizes=sizes, **p))
    if repository.find_promo_code("SAVRA10") is None:
        add_promo_code(Identity(is_admin=True), repository, "SAVRA10", 10)
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
