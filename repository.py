"""
Persistence for the store.

Two interchangeable repositories share one method set: `MongoRepository` (pymongo, used when
DATABASE_URL is configured) and `InMemoryRepository` (development and tests). Mongo documents are
validated into the typed models from `schemas` as they are read, so raw dicts never leave this module.
"""
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel

from database import db
from favorites import Favorites
from schemas import Cart, Order, Product, PromoCode, User


M = TypeVar("M", bound=BaseModel)


def from_document(model: Type[M], doc: Dict[str, Any]) -> M:
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return model.model_validate(data)


def to_document(item: BaseModel) -> Dict[str, Any]:
    data = item.model_dump()
    item_id = data.pop("id", None)
    if item_id:
        data["_id"] = doc_key(item_id)
    return data


def doc_key(id_str: str) -> Union[ObjectId, str]:
    """Ids minted by `new_id` are ObjectIds; any other id is stored as a plain string _id."""
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return id_str


class InMemoryRepository:
    """Process-local storage. Every read hands out a copy so callers never alias stored state."""

    def __init__(self):
        self.products: Dict[str, Product] = {}
        self.promo_codes: Dict[str, PromoCode] = {}
        self.orders: Dict[str, Order] = {}
        self.carts: Dict[str, Cart] = {}
        self.users: Dict[str, User] = {}

    def new_id(self) -> str:
        return uuid.uuid4().hex

    # Products
    def list_products(self, active_only: bool = True) -> List[Product]:
        items = [p for p in self.products.values() if p.is_active or not active_only]
        return [p.model_copy(deep=True) for p in items]

    def get_product(self, product_id: str) -> Optional[Product]:
        p = self.products.get(product_id)
        return p.model_copy(deep=True) if p else None

    def save_product(self, product: Product) -> Product:
        self.products[product.id] = product.model_copy(deep=True)
        return product

    def count_products(self) -> int:
        return sum(1 for p in self.products.values() if p.is_active)

    # Promo codes
    def list_promo_codes(self) -> List[PromoCode]:
        items = sorted(self.promo_codes.values(), key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in items]

    def get_promo_code(self, promo_id: str) -> Optional[PromoCode]:
        p = self.promo_codes.get(promo_id)
        return p.model_copy(deep=True) if p else None

    def find_promo_code(self, code: str) -> Optional[PromoCode]:
        code = code.strip().upper()
        for p in self.promo_codes.values():
            if p.code == code:
                return p.model_copy(deep=True)
        return None

    def save_promo_code(self, promo: PromoCode) -> PromoCode:
        self.promo_codes[promo.id] = promo.model_copy(deep=True)
        return promo

    def delete_promo_code(self, promo_id: str) -> bool:
        return self.promo_codes.pop(promo_id, None) is not None

    def increment_promo_usage(self, promo_id: str) -> None:
        p = self.promo_codes.get(promo_id)
        if p is not None:
            p.usage_count += 1

    # Orders
    def save_order(self, order: Order) -> Order:
        self.orders[order.id] = order.model_copy(deep=True)
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        o = self.orders.get(order_id)
        return o.model_copy(deep=True) if o else None

    def list_orders(self, user_id: Optional[str] = None, limit: int = 100) -> List[Order]:
        items = [o for o in self.orders.values() if user_id is None or o.user_id == user_id]
        items.sort(key=lambda o: o.created_at, reverse=True)
        return [o.model_copy(deep=True) for o in items[:limit]]

    def count_orders(self) -> int:
        return len(self.orders)

    def total_revenue(self) -> int:
        return sum(o.total for o in self.orders.values() if o.status != "cancelled")

    # Carts
    def get_cart(self, cart_key: str) -> Cart:
        cart = self.carts.get(cart_key)
        return cart.model_copy(deep=True) if cart else Cart(cart_key=cart_key)

    def save_cart(self, cart: Cart) -> None:
        self.carts[cart.cart_key] = cart.model_copy(deep=True)

    # Users
    def create_user(self, user: User) -> str:
        user_id = self.new_id()
        self.users[user_id] = user.model_copy(deep=True)
        return user_id

    def get_user(self, user_id: str) -> Optional[User]:
        u = self.users.get(user_id)
        return u.model_copy(deep=True) if u else None

    def find_user_id_by_email(self, email: str) -> Optional[str]:
        for user_id, u in self.users.items():
            if u.email.lower() == email.lower():
                return user_id
        return None

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        u = self.users.get(user_id)
        if u is None:
            return None
        self.users[user_id] = u.model_copy(update=fields)
        return self.get_user(user_id)

    def count_users(self) -> int:
        return len(self.users)

    # Favorites
    def get_favorites(self, user_id: str) -> Favorites:
        user = self.users.get(user_id)
        return Favorites(user.favorites if user else [])

    def save_favorites(self, user_id: str, favorites: Favorites) -> None:
        self.update_user(user_id, {"favorites": list(favorites)})


class MongoRepository:
    """Same contract as InMemoryRepository, backed by the pymongo database from `database`."""

    def __init__(self, db):
        self.db = db

    def new_id(self) -> str:
        return str(ObjectId())

    def _find_by_id(self, collection: str, item_id: str) -> Optional[Dict[str, Any]]:
        return self.db[collection].find_one({"_id": doc_key(item_id)})

    def _upsert(self, collection: str, item: BaseModel) -> None:
        doc = to_document(item)
        doc["updated_at"] = datetime.now(timezone.utc)
        self.db[collection].replace_one({"_id": doc["_id"]}, doc, upsert=True)

    # Products
    def list_products(self, active_only: bool = True) -> List[Product]:
        query = {"is_active": True} if active_only else {}
        cursor = self.db["product"].find(query).sort("_id", -1)
        return [from_document(Product, d) for d in cursor]

    def get_product(self, product_id: str) -> Optional[Product]:
        doc = self._find_by_id("product", product_id)
        return from_document(Product, doc) if doc else None

    def save_product(self, product: Product) -> Product:
        self._upsert("product", product)
        return product

    def count_products(self) -> int:
        return self.db["product"].count_documents({"is_active": True})

    # Promo codes
    def list_promo_codes(self) -> List[PromoCode]:
        cursor = self.db["promo_code"].find({}).sort("created_at", -1)
        return [from_document(PromoCode, d) for d in cursor]

    def get_promo_code(self, promo_id: str) -> Optional[PromoCode]:
        doc = self._find_by_id("promo_code", promo_id)
        return from_document(PromoCode, doc) if doc else None

    def find_promo_code(self, code: str) -> Optional[PromoCode]:
        doc = self.db["promo_code"].find_one({"code": code.strip().upper()})
        return from_document(PromoCode, doc) if doc else None

    def save_promo_code(self, promo: PromoCode) -> PromoCode:
        self._upsert("promo_code", promo)
        return promo

    def delete_promo_code(self, promo_id: str) -> bool:
        return self.db["promo_code"].delete_one({"_id": doc_key(promo_id)}).deleted_count > 0

    def increment_promo_usage(self, promo_id: str) -> None:
        self.db["promo_code"].update_one({"_id": doc_key(promo_id)}, {"$inc": {"usage_count": 1}})

    # Orders
    def save_order(self, order: Order) -> Order:
        self._upsert("order", order)
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        doc = self._find_by_id("order", order_id)
        return from_document(Order, doc) if doc else None

    def list_orders(self, user_id: Optional[str] = None, limit: int = 100) -> List[Order]:
        query = {"user_id": user_id} if user_id else {}
        cursor = self.db["order"].find(query).sort("created_at", -1).limit(limit)
        return [from_document(Order, d) for d in cursor]

    def count_orders(self) -> int:
        return self.db["order"].count_documents({})

    def total_revenue(self) -> int:
        pipeline = [
            {"$match": {"status": {"$ne": "cancelled"}}},
            {"$group": {"_id": None, "total": {"$sum": "$total"}}},
        ]
        result = list(self.db["order"].aggregate(pipeline))
        return result[0]["total"] if result else 0

    # Carts
    def get_cart(self, cart_key: str) -> Cart:
        doc = self.db["cart"].find_one({"cart_key": cart_key})
        if not doc:
            return Cart(cart_key=cart_key)
        doc.pop("_id", None)
        return Cart.model_validate(doc)

    def save_cart(self, cart: Cart) -> None:
        payload = cart.model_dump() | {"updated_at": datetime.now(timezone.utc)}
        self.db["cart"].update_one({"cart_key": cart.cart_key}, {"$set": payload}, upsert=True)

    # Users
    def create_user(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        result = self.db["user"].insert_one(user.model_dump() | {"created_at": now, "updated_at": now})
        return str(result.inserted_id)

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self._find_by_id("user", user_id)
        return from_document(User, doc) if doc else None

    def find_user_id_by_email(self, email: str) -> Optional[str]:
        doc = self.db["user"].find_one({"email": {"$regex": f"^{re.escape(email)}$", "$options": "i"}}, {"_id": 1})
        return str(doc["_id"]) if doc else None

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        self.db["user"].update_one({"_id": doc_key(user_id)}, {"$set": fields | {"updated_at": datetime.now(timezone.utc)}})
        return self.get_user(user_id)

    def count_users(self) -> int:
        return self.db["user"].count_documents({})

    # Favorites
    def get_favorites(self, user_id: str) -> Favorites:
        user = self.get_user(user_id)
        return Favorites(user.favorites if user else [])

    def save_favorites(self, user_id: str, favorites: Favorites) -> None:
        self.update_user(user_id, {"favorites": list(favorites)})


_memory_repository = InMemoryRepository()


def get_repository():
    """FastAPI dependency: Mongo when DATABASE_URL is set, otherwise a process-wide in-memory store."""
    if db is not None:
        return MongoRepository(db)
    return _memory_repository
