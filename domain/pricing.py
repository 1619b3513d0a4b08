# domain/pricing.py
import logging

from domain.entities.order import Order, OrderItem, DiscountType

logger = logging.getLogger(__name__)


def line_total(item: OrderItem) -> float:
    return item.price * item.quantity


def recompute(order: Order) -> Order:
    """Recompute item totals, subtotal and total amount of an order in place.

    The result depends only on items, fees and discount, so calling it twice
    without changing those fields yields the same total. The total is clamped
    at zero when the discount exceeds the amount due.

    Args:
        order (Order): Order whose totals should be refreshed.

    Returns:
        Order: The same order instance, for chaining.
    """
    subtotal = 0.0
    for item in order.items:
        item.total_price = line_total(item)
        subtotal += item.total_price

    total = subtotal + order.delivery_fee + order.service_fee

    discount = order.discount
    if discount.amount > 0:
        if discount.type == DiscountType.PERCENTAGE:
            total -= total * discount.amount / 100
        else:
            total -= discount.amount

    order.subtotal = subtotal
    order.total_amount = max(0.0, total)
    logger.debug(f"Recomputed totals for order {order.order_number or order.id}: "
                 f"subtotal={order.subtotal}, total_amount={order.total_amount}")
    return order
