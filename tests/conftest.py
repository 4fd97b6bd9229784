import mongomock
import pytest
from fastapi.testclient import TestClient

from main import app
from repository import InMemoryRepository, MongoRepository, get_repository
from schemas import Product, PromoCode, User
from security import create_token


@pytest.fixture(params=["memory", "mongo"])
def repo(request):
    if request.param == "mongo":
        return MongoRepository(mongomock.MongoClient()["savra_test"])
    return InMemoryRepository()


@pytest.fixture
def client(repo):
    app.dependency_overrides[get_repository] = lambda: repo
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_product(repo, product_id, price, **kwargs):
    fields = {"name": f"Ring {product_id}", "category": "rings"} | kwargs
    return repo.save_product(Product(id=product_id, price=price, **fields))


def make_promo(repo, code="SAVRA10", discount=10, **kwargs):
    return repo.save_promo_code(PromoCode(id=repo.new_id(), code=code, discount=discount, **kwargs))


def auth_headers(repo, role="client", email=None):
    user = User(name=role.title(), email=email or f"{role}@savra.store", password_hash="unused", role=role)
    user_id = repo.create_user(user)
    return {"Authorization": f"Bearer {create_token(user_id, user)}"}, user_id
