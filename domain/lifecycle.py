# domain/lifecycle.py
"""Order lifecycle: legal status transitions and who may request them.

Both rules are held as data. ``ALLOWED_TRANSITIONS`` answers "can an order go
from A to B", ``STATUS_PERMISSIONS`` answers "which party may ask for B". The
two checks are independent; ``check_transition`` runs them in order.

``refunded`` and ``disputed`` have no incoming edges here. They are set by
administrative or payment flows outside the lifecycle engine and, like
``completed`` and ``cancelled``, have no outgoing edges.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set

from core.errors import ForbiddenError, InvalidTransitionError
from domain.entities.order import (
    Order, OrderStatus, PaymentMethod, PaymentStatus, StatusHistoryEntry, Cancellation, RefundStatus, utc_now
)
from domain.entities.user import Actor

logger = logging.getLogger(__name__)


class PartyRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
    OrderStatus.DISPUTED: frozenset(),
}

_ANY_PARTY = frozenset({PartyRole.BUYER, PartyRole.SELLER, PartyRole.ADMIN})

STATUS_PERMISSIONS: Dict[OrderStatus, FrozenSet[PartyRole]] = {
    OrderStatus.CONFIRMED: frozenset({PartyRole.SELLER, PartyRole.ADMIN}),
    OrderStatus.PROCESSING: frozenset({PartyRole.SELLER, PartyRole.ADMIN}),
    OrderStatus.SHIPPED: frozenset({PartyRole.SELLER, PartyRole.ADMIN}),
    OrderStatus.DELIVERED: frozenset({PartyRole.BUYER, PartyRole.ADMIN}),
    OrderStatus.COMPLETED: _ANY_PARTY,
    OrderStatus.CANCELLED: _ANY_PARTY,
}

# Checked on its own so that a future table change cannot make these cancellable.
NON_CANCELLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.COMPLETED})

STATUS_MESSAGES: Dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "Your order has been confirmed",
    OrderStatus.PROCESSING: "Your order is being prepared",
    OrderStatus.SHIPPED: "Your order has been shipped",
    OrderStatus.DELIVERED: "The order has been delivered",
    OrderStatus.COMPLETED: "The order has been completed",
    OrderStatus.CANCELLED: "The order has been cancelled",
}


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in ALLOWED_TRANSITIONS.get(OrderStatus(current), frozenset())


def party_roles(order: Order, actor: Actor) -> Set[PartyRole]:
    """Return every role the actor holds with respect to the order."""
    roles = set()
    if actor.id == order.buyer_id:
        roles.add(PartyRole.BUYER)
    if actor.id == order.seller_id:
        roles.add(PartyRole.SELLER)
    if actor.is_admin:
        roles.add(PartyRole.ADMIN)
    return roles


def ensure_party(order: Order, actor: Actor, action: str = "access this order") -> Set[PartyRole]:
    roles = party_roles(order, actor)
    if not roles:
        logger.warning(f"Actor {actor.id} is not a party to order {order.id}")
        raise ForbiddenError(f"Not authorized to {action}")
    return roles


def check_transition(order: Order, actor: Actor, target_status: str) -> Set[PartyRole]:
    """Validate a requested status change without touching the order.

    Raises:
        ForbiddenError: If the actor is not a party, or the party may not set the target.
        InvalidTransitionError: If the target is not reachable from the current status.

    Returns:
        Set[PartyRole]: The actor's roles on the order.
    """
    roles = ensure_party(order, actor, "update this order")
    current = OrderStatus(order.status)
    try:
        target = OrderStatus(target_status)
    except ValueError:
        raise InvalidTransitionError(current.value, str(target_status))

    if not is_valid_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)

    if target == OrderStatus.CANCELLED and current in NON_CANCELLABLE_STATUSES:
        raise InvalidTransitionError(current.value, target.value, "Cannot cancel delivered or completed orders")

    allowed = STATUS_PERMISSIONS.get(target, frozenset())
    if not roles & allowed:
        names = " or ".join(sorted(role.value for role in allowed)) or "nobody"
        raise ForbiddenError(f"Only {names} can change the status to {target.value}")
    return roles


def apply_transition(order: Order, actor: Actor, target_status: str, note: Optional[str] = None,
                     now: Optional[datetime] = None) -> StatusHistoryEntry:
    """Move an already-validated order to ``target_status`` and record it.

    Mutates status, the status timestamps, payment (cash orders become paid on
    completion) and the cancellation record, then appends a history entry.
    """
    now = now or utc_now()
    target = OrderStatus(target_status)
    order.status = target
    order.updated_at = now

    if target == OrderStatus.CONFIRMED:
        order.confirmed_at = now
    elif target == OrderStatus.DELIVERED:
        order.delivered_at = now
        order.delivery.actual_delivery_time = now
    elif target == OrderStatus.COMPLETED:
        order.completed_at = now
        if order.payment.method == PaymentMethod.CASH:
            order.payment.status = PaymentStatus.PAID
            order.payment.paid_amount = order.total_amount
            order.payment.paid_at = now
    elif target == OrderStatus.CANCELLED:
        order.cancelled_at = now
        if order.cancellation is None:
            order.cancellation = Cancellation(reason=note, cancelled_by=actor.id,
                                              refund_amount=0, refund_status=RefundStatus.PROCESSED)

    entry = StatusHistoryEntry(status=target, timestamp=now, note=note, updated_by=actor.id)
    order.status_history.append(entry)
    logger.debug(f"Order {order.id} moved to {target.value} by {actor.id}")
    return entry


def notification_recipients(order: Order, actor: Actor) -> List[str]:
    """Return the parties to tell about a change made by ``actor``.

    The buyer hears about seller changes and the seller about buyer changes;
    changes made by an admin who is neither party go to both.
    """
    if actor.id == order.seller_id:
        return [order.buyer_id]
    if actor.id == order.buyer_id:
        return [order.seller_id]
    return [order.buyer_id, order.seller_id]
