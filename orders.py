import logging

from errors import InvalidStatusTransitionError
from schemas import AdminStats, Order, OrderStatus, utcnow

logger = logging.getLogger("savra")

STATUS_FLOW = ("pending", "processing", "shipped", "delivered")
TERMINAL_STATUSES = ("delivered", "cancelled")


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    if new == "cancelled":
        return True
    return STATUS_FLOW.index(new) == STATUS_FLOW.index(current) + 1


def advance_status(order: Order, status: OrderStatus) -> Order:
    if not can_transition(order.status, status):
        raise InvalidStatusTransitionError(f"Cannot move order from {order.status} to {status}")
    logger.info("Order %s: %s -> %s", order.id, order.status, status)
    order.status = status
    order.updated_at = utcnow()
    return order


def admin_stats(repository, recent: int = 5) -> AdminStats:
    return AdminStats(
        total_orders=repository.count_orders(),
        total_revenue=repository.total_revenue(),
        total_products=repository.count_products(),
        total_users=repository.count_users(),
        recent_orders=repository.list_orders(limit=recent),
    )
