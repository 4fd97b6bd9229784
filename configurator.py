"""
Build-your-own-ring wizard: category -> model -> size, then into the cart as a constructor line.

Each step is only available once the previous one holds a value, and choosing an earlier step
again resets everything after it.
"""
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Tuple

from errors import ConfiguratorError
from schemas import Product

CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "all": ("classic", "textured", "classic_mens", "textured_mens"),
    "classic": ("classic", "classic_mens"),
    "textured": ("textured", "textured_mens"),
    "mens": ("classic_mens", "textured_mens"),
}

MIN_RING_SIZE = Decimal("10")
MAX_RING_SIZE = Decimal("30")
RING_SIZE_STEP = Decimal("0.5")


def products_in_category(category: str, products: Iterable[Product]) -> List[Product]:
    if category not in CATEGORIES:
        raise ConfiguratorError(f"Unknown category: {category}")
    types = CATEGORIES[category]
    return [p for p in products if p.type in types]


def is_valid_ring_size(size: str) -> bool:
    try:
        value = Decimal(size)
    except (InvalidOperation, TypeError):
        return False
    if not value.is_finite():
        return False
    return MIN_RING_SIZE <= value <= MAX_RING_SIZE and value % RING_SIZE_STEP == 0


class RingConfigurator:
    def __init__(self):
        self.category: Optional[str] = None
        self.product: Optional[Product] = None
        self.size: Optional[str] = None

    def select_category(self, category: str) -> None:
        if category not in CATEGORIES:
            raise ConfiguratorError(f"Unknown category: {category}")
        self.category = category
        self.product = None
        self.size = None

    def select_product(self, product: Product) -> None:
        if self.category is None:
            raise ConfiguratorError("Choose a category first")
        if product.type not in CATEGORIES[self.category]:
            raise ConfiguratorError(f"{product.name} is not in category {self.category}")
        self.product = product
        self.size = None

    def select_size(self, size: str) -> None:
        if self.product is None:
            raise ConfiguratorError("Choose a ring first")
        size = size.strip()
        if not (is_valid_ring_size(size) or size in (self.product.sizes or [])):
            raise ConfiguratorError(f"Invalid ring size: {size}")
        self.size = size

    @property
    def is_ready(self) -> bool:
        return bool(self.category and self.product and self.size)

    def complete(self, engine, quantity: int = 1):
        """Add the configured ring to the cart and return the resulting cart line."""
        if not self.is_ready:
            raise ConfiguratorError("Configuration is incomplete")
        return engine.add_item(self.product, quantity=quantity, size=self.size, order_type="constructor")
