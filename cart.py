"""
Cart & pricing engine.

A `CartEngine` owns one `Cart` for the duration of a request: it merges lines by (product id, size),
applies a percentage promo code, computes totals and turns the cart into an order at checkout.

The promo discount is frozen when the code is applied. Later cart changes do not recompute it;
the total is clamped at zero instead.
"""
import logging
from typing import Iterable, Optional

from errors import EmptyCartError, InvalidQuantityError, InvalidSizeError, PromoCodeNotFoundError
from promos import find_redeemable
from schemas import AppliedPromo, Cart, CartLine, Order, OrderType, Product, PromoCode, Totals, utcnow

logger = logging.getLogger("savra")

DELIVERY_THRESHOLD = 5000
DELIVERY_FEE = 500
INSTALLMENT_MONTHS = 12


def compute_totals(subtotal: int, discount: int = 0, delivery_threshold: int = DELIVERY_THRESHOLD,
                   delivery_fee: int = DELIVERY_FEE, installment_months: int = INSTALLMENT_MONTHS) -> Totals:
    # free delivery only strictly above the threshold
    delivery = 0 if subtotal > delivery_threshold else delivery_fee
    total = max(subtotal - discount + delivery, 0)
    return Totals(
        subtotal=subtotal,
        discount=discount,
        delivery=delivery,
        total=total,
        installment=total // installment_months if installment_months > 0 else total,
    )


class CartEngine:
    def __init__(self, cart: Cart, delivery_threshold: int = DELIVERY_THRESHOLD,
                 delivery_fee: int = DELIVERY_FEE, installment_months: int = INSTALLMENT_MONTHS):
        self.cart = cart
        self.delivery_threshold = delivery_threshold
        self.delivery_fee = delivery_fee
        self.installment_months = installment_months

    @property
    def lines(self):
        return self.cart.lines

    def find_line(self, product_id: str, size: Optional[str] = None) -> Optional[CartLine]:
        for line in self.cart.lines:
            if line.product_id == product_id and line.size == size:
                return line
        return None

    def add_item(self, product: Product, quantity: int = 1, size: Optional[str] = None,
                 order_type: OrderType = "catalog") -> CartLine:
        if quantity <= 0:
            raise InvalidQuantityError()
        if product.sizes and not size:
            raise InvalidSizeError()
        line = self.find_line(product.id, size)
        if line is not None:
            line.quantity += quantity
            return line
        line = CartLine(
            product_id=product.id,
            size=size,
            name=product.name,
            image=product.image,
            quantity=quantity,
            unit_price=product.price,
            order_type=order_type,
        )
        self.cart.lines.append(line)
        return line

    def update_quantity(self, product_id: str, size: Optional[str], quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id, size)
            return
        line = self.find_line(product_id, size)
        if line is not None:
            line.quantity = quantity

    def remove_item(self, product_id: str, size: Optional[str] = None) -> None:
        self.cart.lines = [l for l in self.cart.lines if not (l.product_id == product_id and l.size == size)]

    def clear(self) -> None:
        self.cart.lines = []
        self.cart.applied_promo = None

    @property
    def subtotal(self) -> int:
        return sum(l.line_total for l in self.cart.lines)

    @property
    def item_count(self) -> int:
        return sum(l.quantity for l in self.cart.lines)

    def apply_promo_code(self, code: str, promo_catalog: Iterable[PromoCode]) -> int:
        """Attach a redeemable promo code and return the discount it grants.

        Usage counters are left alone here; they only move when an order is submitted.
        """
        promo = find_redeemable(code, promo_catalog)
        if promo is None:
            logger.warning("Rejected promo code %r", code)
            raise PromoCodeNotFoundError()
        applied = self.cart.applied_promo
        if applied is not None and applied.promo_id == promo.id:
            return applied.discount
        discount = self.subtotal * promo.discount // 100
        self.cart.applied_promo = AppliedPromo(promo_id=promo.id, code=promo.code,
                                               percent=promo.discount, discount=discount)
        return discount

    def remove_promo_code(self) -> None:
        self.cart.applied_promo = None

    def totals(self) -> Totals:
        discount = self.cart.applied_promo.discount if self.cart.applied_promo else 0
        return compute_totals(self.subtotal, discount, self.delivery_threshold,
                              self.delivery_fee, self.installment_months)

    def submit_order(self, repository, user_id: Optional[str] = None) -> Order:
        if not self.cart.lines:
            raise EmptyCartError()
        applied = self.cart.applied_promo
        if applied is not None:
            promo = repository.get_promo_code(applied.promo_id)
            if promo is None or not promo.is_redeemable:
                raise PromoCodeNotFoundError("Promo code is no longer available")

        totals = self.totals()
        order_type = "constructor" if any(l.order_type == "constructor" for l in self.cart.lines) else "catalog"
        now = utcnow()
        order = Order(
            id=repository.new_id(),
            user_id=user_id,
            lines=[l.model_copy() for l in self.cart.lines],
            subtotal=totals.subtotal,
            discount=totals.discount,
            delivery=totals.delivery,
            total=totals.total,
            order_type=order_type,
            promo_code=applied.code if applied else None,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        repository.save_order(order)
        if applied is not None:
            repository.increment_promo_usage(applied.promo_id)
        self.clear()
        logger.info("Order %s submitted: total=%s promo=%s", order.id, order.total, order.promo_code)
        return order
