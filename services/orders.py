# services/orders.py
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional, Callable

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from app.config.settings import settings
from core.errors import (
    BaseError, NotFoundError, ValidationError, ForbiddenError, InvalidOperationError, InvalidTransitionError,
    UnavailableError, ConflictError, InternalServerError
)
from core.utils.pagination import paginate_results
from core.utils.validation import validate_object_id, validate_required_fields
from domain.entities.order import (
    Order, OrderItem, OrderStatus, OrderType, PaymentMethod, PaymentStatus, PaymentInfo, DeliveryInfo,
    DeliveryType, Discount, Rating, Cancellation, RefundStatus, StatusHistoryEntry, utc_now
)
from domain.entities.user import Actor
from domain.events import OrderCreated, OrderStatusChanged
from domain.lifecycle import (
    PartyRole, apply_transition, check_transition, ensure_party, notification_recipients, party_roles
)
from domain.pricing import recompute
from domain.schemas.order import OrderCreate
from services.catalog import find_listing
from services.events import publisher
from services.notifications import register_order_notifications

logger = logging.getLogger(__name__)

ORDER_NUMBER_COUNTER = "order_number"
PRICING_EDITABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.CONFIRMED)

# Mutators validate the loaded order, change it in place and return the
# history entry to append, if any.
OrderMutator = Callable[[Order], Optional[StatusHistoryEntry]]

register_order_notifications(publisher)


def _load_order(db: Database, order_id: str) -> Order:
    validate_object_id(order_id, "order_id")
    document = db.orders.find_one({"_id": ObjectId(order_id)})
    if not document:
        logger.warning(f"Order with ID {order_id} not found")
        raise NotFoundError(f"Order with ID {order_id} not found")
    return Order.from_document(document)


def next_order_number(db: Database, now: Optional[datetime] = None) -> str:
    """Allocate the next order number from an atomic counter.

    The sequence is global, so numbers stay unique even when the date prefix repeats.
    """
    now = now or utc_now()
    counter = db.counters.find_one_and_update(
        {"_id": ORDER_NUMBER_COUNTER},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return f"ORD-{now:%Y%m%d}-{counter['seq']:06d}"


def _update_with_retry(db: Database, order_id: str, mutate: OrderMutator, fields: List[str], action: str) -> Order:
    """Apply ``mutate`` to the stored order under an optimistic version check.

    The order is reloaded and ``mutate`` re-run on every attempt, so a change
    that became illegal because of a concurrent write is rejected rather than
    overwritten. ``fields`` are the top-level fields written back.

    Raises:
        ConflictError: If every attempt lost the race.
    """
    attempts = settings.ORDER_UPDATE_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        order = _load_order(db, order_id)
        expected_version = order.version
        entry = mutate(order)
        order.updated_at = utc_now()

        document = order.to_document()
        update: Dict[str, Any] = {
            "$set": {field: document[field] for field in fields + ["updated_at"]},
            "$inc": {"version": 1},
        }
        if entry is not None:
            update["$push"] = {"status_history": entry.model_dump()}

        result = db.orders.update_one({"_id": ObjectId(order_id), "version": expected_version}, update)
        if result.matched_count == 1:
            order.version = expected_version + 1
            return order
        logger.warning(f"Version conflict on order {order_id} during {action} "
                       f"(attempt {attempt}/{attempts}, expected version {expected_version})")
    raise ConflictError(f"Order {order_id} was modified concurrently, please retry")


def create_order(db: Database, actor: Actor, order_data: Dict[str, Any]) -> Order:
    """Place an order for a product or service on behalf of the buyer.

    Args:
        db (Database): MongoDB database instance.
        actor (Actor): The buyer.
        order_data (Dict[str, Any]): Fields of OrderCreate.

    Returns:
        Order: The stored order with its order number.

    Raises:
        ValidationError: If the request is malformed or the listing reference is missing.
        NotFoundError: If the product or service does not exist.
        UnavailableError: If the listing is marked unavailable.
        InvalidOperationError: If the buyer owns the listing.
        InternalServerError: For database failures.
    """
    logger.debug(f"Creating order for buyer {actor.id}, data: {order_data}")
    try:
        try:
            request = OrderCreate(**order_data)
        except ValueError as ve:
            raise ValidationError(f"Invalid order data: {str(ve)}")

        order_type = OrderType(request.order_type)
        listing_field = "product" if order_type == OrderType.PRODUCT else "service"
        validate_required_fields(request.model_dump(), [listing_field], f"{order_type.value} orders")
        listing_id = getattr(request, listing_field)

        listing = find_listing(db, order_type.value, listing_id)
        if not listing.is_available:
            raise UnavailableError(f"{order_type.value.capitalize()} is not available")
        if listing.owner_id == actor.id:
            raise InvalidOperationError("You cannot order your own items")

        quantity = (request.quantity or 1) if order_type == OrderType.PRODUCT else 1
        delivery_type = DeliveryType(request.delivery_type)
        now = utc_now()
        order = Order(
            buyer_id=actor.id,
            seller_id=listing.owner_id,
            order_type=order_type,
            listing_id=listing.id,
            items=[OrderItem(product_id=listing.id, quantity=quantity, price=listing.price,
                             product_snapshot=listing.snapshot())],
            delivery_fee=listing.delivery_fee if delivery_type != DeliveryType.PICKUP else 0,
            service_fee=settings.SERVICE_FEE,
            currency=listing.currency if listing.currency in ("EGP", "USD") else settings.DEFAULT_CURRENCY,
            delivery=DeliveryInfo(
                type=delivery_type,
                address=request.delivery_address or actor.address,
                coordinates=request.coordinates,
                recipient_name=request.recipient_name or actor.name,
                recipient_phone=request.recipient_phone,
                preferred_time=request.preferred_time,
            ),
            payment=PaymentInfo(method=request.payment_method or PaymentMethod.CASH),
            status=OrderStatus.PENDING,
            status_history=[StatusHistoryEntry(status=OrderStatus.PENDING, timestamp=now,
                                               note="Order placed", updated_by=actor.id)],
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )
        recompute(order)
        order.order_number = next_order_number(db, now)

        result = db.orders.insert_one(order.to_document())
        order.id = str(result.inserted_id)
        logger.info(f"Order created successfully - ID: {order.id}, number: {order.order_number}, "
                    f"buyer: {actor.id}, seller: {order.seller_id}, total: {order.total_amount}")
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in create_order: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to create order: {str(pe)}")

    publisher.publish(db, OrderCreated(
        order_id=order.id,
        order_number=order.order_number,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        actor_id=actor.id,
        actor_name=actor.name,
        order_type=order.order_type,
        total_amount=order.total_amount,
    ))
    return order


def get_order(db: Database, order_id: str, actor: Actor) -> Order:
    """Retrieve an order visible to its buyer, its seller or an admin.

    Raises:
        ValidationError: If order_id is invalid.
        NotFoundError: If order is not found.
        ForbiddenError: If the actor is not a party to the order.
        InternalServerError: For database failures.
    """
    logger.debug(f"Fetching order with ID: {order_id} for actor: {actor.id}")
    try:
        order = _load_order(db, order_id)
        ensure_party(order, actor, "view this order")
        logger.info(f"Order retrieved successfully - ID: {order_id}, actor: {actor.id}")
        return order
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in get_order: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to get order: {str(pe)}")


def _paginate_orders(db: Database, query: Dict[str, Any], page: int, page_size: int) -> Dict[str, Any]:
    result = paginate_results(db.orders, query, page, page_size)
    result["data"] = [Order.from_document(document) for document in result["data"]]
    return result


def _status_filter(status: Optional[str]) -> str:
    try:
        return OrderStatus(status).value
    except ValueError:
        raise ValidationError(f"Invalid status filter: {status}")


def get_my_orders(db: Database, actor: Actor, role: Optional[str] = None, status: Optional[str] = None,
                  order_type: Optional[str] = None, page: int = 1, page_size: int = 10) -> Dict[str, Any]:
    """Retrieve the actor's orders as buyer, seller or both, newest first.

    Args:
        db (Database): MongoDB database instance.
        actor (Actor): The requesting user.
        role (str, optional): "buyer" or "seller" to restrict the side.
        status (str, optional): Only orders in this status.
        order_type (str, optional): "product" or "service".
        page (int): Page number.
        page_size (int): Items per page.

    Returns:
        Dict[str, Any]: Page of orders with paging metadata.
    """
    logger.debug(f"Fetching orders for actor {actor.id}, role={role}, status={status}, order_type={order_type}")
    if role == PartyRole.BUYER.value:
        query: Dict[str, Any] = {"buyer_id": actor.id}
    elif role == PartyRole.SELLER.value:
        query = {"seller_id": actor.id}
    elif role is None:
        query = {"$or": [{"buyer_id": actor.id}, {"seller_id": actor.id}]}
    else:
        raise ValidationError(f"Invalid role filter: {role}")
    if status:
        query["status"] = _status_filter(status)
    if order_type:
        query["order_type"] = order_type

    try:
        result = _paginate_orders(db, query, page, page_size)
        logger.info(f"Retrieved {len(result['data'])} of {result['total']} orders for actor: {actor.id}")
        return result
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in get_my_orders: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to get orders: {str(pe)}")


def get_all_orders(db: Database, actor: Actor, status: Optional[str] = None, payment_status: Optional[str] = None,
                   order_type: Optional[str] = None, start_date: Optional[datetime] = None,
                   end_date: Optional[datetime] = None, page: int = 1, page_size: int = 10) -> Dict[str, Any]:
    """Retrieve all orders with optional filters (admin only)."""
    if not actor.is_admin:
        raise ForbiddenError("Only admins can list all orders")
    query: Dict[str, Any] = {}
    if status:
        query["status"] = _status_filter(status)
    if payment_status:
        query["payment.status"] = payment_status
    if order_type:
        query["order_type"] = order_type
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date
        if end_date:
            query["created_at"]["$lte"] = end_date

    try:
        result = _paginate_orders(db, query, page, page_size)
        logger.info(f"Admin {actor.id} retrieved {len(result['data'])} of {result['total']} orders")
        return result
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in get_all_orders: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to get orders: {str(pe)}")


def _publish_status_change(db: Database, order: Order, actor: Actor, previous_status: str,
                           note: Optional[str]) -> None:
    publisher.publish(db, OrderStatusChanged(
        order_id=order.id,
        order_number=order.order_number,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        actor_id=actor.id,
        actor_name=actor.name,
        previous_status=previous_status,
        status=order.status,
        note=note,
        recipients=notification_recipients(order, actor),
    ))


_TRANSITION_FIELDS = ["status", "confirmed_at", "delivered_at", "completed_at", "cancelled_at",
                      "delivery", "payment", "cancellation"]


def transition_order_status(db: Database, order_id: str, actor: Actor, target_status: str,
                            note: Optional[str] = None) -> Order:
    """Move an order to ``target_status`` if the table and the role policy allow it.

    Status, status timestamps and the new history entry are written in one
    version-guarded update. The other party is notified after the write.

    Args:
        db (Database): MongoDB database instance.
        order_id (str): ID of the order.
        actor (Actor): The buyer, seller or admin requesting the change.
        target_status (str): Requested next status.
        note (str, optional): Note kept in the status history.

    Returns:
        Order: The updated order.

    Raises:
        ValidationError: If order_id is invalid.
        NotFoundError: If the order does not exist.
        ForbiddenError: If the actor may not make this change.
        InvalidTransitionError: If the change is not allowed from the current status.
        ConflictError: If concurrent updates kept winning.
        InternalServerError: For database failures.
    """
    logger.debug(f"Transition requested on order {order_id} to {target_status} by {actor.id}")
    previous: Dict[str, str] = {}

    def mutate(order: Order) -> StatusHistoryEntry:
        check_transition(order, actor, target_status)
        previous["status"] = order.status
        return apply_transition(order, actor, target_status, note)

    try:
        order = _update_with_retry(db, order_id, mutate, _TRANSITION_FIELDS, "status transition")
        logger.info(f"Order {order_id} status changed {previous['status']} -> {order.status} by {actor.id}")
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in transition_order_status: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to update order status: {str(pe)}")

    _publish_status_change(db, order, actor, previous["status"], note)
    return order


def cancel_order(db: Database, order_id: str, actor: Actor, reason: str, refund_amount: float = 0) -> Order:
    """Cancel an order that has not started processing and record why.

    Only pending or confirmed orders can be cancelled this way.

    Raises:
        ForbiddenError: If the actor is not a party to the order.
        InvalidTransitionError: If the order is past confirmation.
        ValidationError: If the refund exceeds the order total.
    """
    logger.debug(f"Cancellation requested on order {order_id} by {actor.id}, reason: {reason}")
    previous: Dict[str, str] = {}

    def mutate(order: Order) -> StatusHistoryEntry:
        ensure_party(order, actor, "cancel this order")
        if not order.can_be_cancelled:
            raise InvalidTransitionError(order.status, OrderStatus.CANCELLED.value,
                                         "Order can only be cancelled while pending or confirmed")
        if refund_amount > order.total_amount:
            raise ValidationError(f"Refund amount {refund_amount} exceeds order total {order.total_amount}")
        check_transition(order, actor, OrderStatus.CANCELLED.value)
        previous["status"] = order.status
        order.cancellation = Cancellation(
            reason=reason,
            cancelled_by=actor.id,
            refund_amount=refund_amount,
            refund_status=RefundStatus.PENDING if refund_amount > 0 else RefundStatus.PROCESSED,
        )
        return apply_transition(order, actor, OrderStatus.CANCELLED.value, reason)

    try:
        order = _update_with_retry(db, order_id, mutate, _TRANSITION_FIELDS, "cancellation")
        logger.info(f"Order {order_id} cancelled by {actor.id}, refund: {refund_amount}")
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in cancel_order: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to cancel order: {str(pe)}")

    _publish_status_change(db, order, actor, previous["status"], reason)
    return order


def update_payment(db: Database, order_id: str, actor: Actor, payment_status: str,
                   transaction_id: Optional[str] = None, paid_amount: Optional[float] = None) -> Order:
    """Record a payment status change reported by a party or an admin.

    The order status is never touched here.
    """
    logger.debug(f"Payment update on order {order_id} by {actor.id}: {payment_status}")
    try:
        new_status = PaymentStatus(payment_status)
    except ValueError:
        raise ValidationError(f"Invalid payment status: {payment_status}")

    def mutate(order: Order) -> None:
        ensure_party(order, actor, "update payment status")
        payment = order.payment
        payment.status = new_status
        if transaction_id:
            payment.transaction_id = transaction_id
        if new_status == PaymentStatus.PAID:
            payment.paid_at = utc_now()
            payment.paid_amount = order.total_amount if paid_amount is None else paid_amount
        else:
            payment.paid_at = None
            if paid_amount is not None:
                payment.paid_amount = paid_amount
        return None

    try:
        order = _update_with_retry(db, order_id, mutate, ["payment"], "payment update")
        logger.info(f"Payment status of order {order_id} set to {new_status.value} by {actor.id}")
        return order
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in update_payment: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to update payment: {str(pe)}")


def update_pricing(db: Database, order_id: str, actor: Actor, delivery_fee: Optional[float] = None,
                   service_fee: Optional[float] = None, discount: Optional[Dict[str, Any]] = None) -> Order:
    """Change fees or discount of an order and recompute its totals.

    Only the seller or an admin may do this, and only before processing starts.
    """
    logger.debug(f"Pricing update on order {order_id} by {actor.id}: delivery_fee={delivery_fee}, "
                 f"service_fee={service_fee}, discount={discount}")
    try:
        new_discount = Discount(**discount) if isinstance(discount, dict) else discount
    except ValueError as ve:
        raise ValidationError(f"Invalid discount: {str(ve)}")
    if (delivery_fee is not None and delivery_fee < 0) or (service_fee is not None and service_fee < 0):
        raise ValidationError("Fees cannot be negative")

    def mutate(order: Order) -> None:
        roles = ensure_party(order, actor, "change order pricing")
        if not roles & {PartyRole.SELLER, PartyRole.ADMIN}:
            raise ForbiddenError("Only the seller or an admin can change order pricing")
        if order.status not in PRICING_EDITABLE_STATUSES:
            raise InvalidOperationError(f"Pricing cannot change once an order is {order.status}")
        if delivery_fee is not None:
            order.delivery_fee = delivery_fee
        if service_fee is not None:
            order.service_fee = service_fee
        if new_discount is not None:
            order.discount = new_discount
        recompute(order)
        return None

    try:
        order = _update_with_retry(db, order_id, mutate,
                                   ["items", "subtotal", "delivery_fee", "service_fee", "discount", "total_amount"],
                                   "pricing update")
        logger.info(f"Pricing of order {order_id} updated by {actor.id}: total={order.total_amount}")
        return order
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in update_pricing: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to update pricing: {str(pe)}")


def _add_rating(db: Database, order_id: str, actor: Actor, field: str, rater: PartyRole,
                rating: int, review: Optional[str]) -> Order:
    order = _load_order(db, order_id)
    if rater not in party_roles(order, actor):
        raise ForbiddenError(f"Only the {rater.value} can add this rating")
    if order.status != OrderStatus.COMPLETED:
        raise InvalidOperationError("Can only rate completed orders")
    if getattr(order, field) is not None:
        raise InvalidOperationError("Order already rated")
    try:
        new_rating = Rating(rating=rating, review=review)
    except ValueError as ve:
        raise ValidationError(f"Invalid rating: {str(ve)}")

    now = utc_now()
    result = db.orders.update_one(
        {"_id": ObjectId(order_id), "status": OrderStatus.COMPLETED.value, field: None},
        {"$set": {field: new_rating.model_dump(), "updated_at": now}, "$inc": {"version": 1}},
    )
    if result.matched_count == 0:
        raise InvalidOperationError("Order already rated")

    setattr(order, field, new_rating)
    order.updated_at = now
    order.version += 1
    logger.info(f"{field} added to order {order_id} by {actor.id}: {rating}")
    return order


def add_customer_rating(db: Database, order_id: str, actor: Actor, rating: int, review: Optional[str] = None) -> Order:
    """Let the buyer rate a completed order once."""
    try:
        return _add_rating(db, order_id, actor, "customer_rating", PartyRole.BUYER, rating, review)
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in add_customer_rating: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to add rating: {str(pe)}")


def add_seller_rating(db: Database, order_id: str, actor: Actor, rating: int, review: Optional[str] = None) -> Order:
    """Let the seller rate the buyer of a completed order once."""
    try:
        return _add_rating(db, order_id, actor, "seller_rating", PartyRole.SELLER, rating, review)
    except BaseError:
        raise
    except PyMongoError as pe:
        logger.error(f"Database operation failed in add_seller_rating: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to add rating: {str(pe)}")


_NON_REVENUE_STATUSES = (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)


def get_order_stats(db: Database, actor: Actor) -> Dict[str, Any]:
    """Summarize orders by status and type; admins see everything, others their own orders."""
    match: Dict[str, Any] = {} if actor.is_admin else {
        "$or": [{"buyer_id": actor.id}, {"seller_id": actor.id}]
    }
    try:
        by_status = list(db.orders.aggregate([
            {"$match": match},
            {"$group": {"_id": "$status", "count": {"$sum": 1}, "revenue": {"$sum": "$total_amount"}}},
        ]))
        by_type = list(db.orders.aggregate([
            {"$match": match},
            {"$group": {"_id": "$order_type", "count": {"$sum": 1}}},
        ]))
        recent = list(db.orders.find(match).sort([("created_at", DESCENDING)]).limit(5))
    except PyMongoError as pe:
        logger.error(f"Database operation failed in get_order_stats: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Failed to compute order statistics: {str(pe)}")

    orders_by_status = {group["_id"]: group["count"] for group in by_status}
    revenue_groups = [group for group in by_status if group["_id"] not in _NON_REVENUE_STATUSES]
    revenue_orders = sum(group["count"] for group in revenue_groups)
    total_revenue = sum(group["revenue"] for group in revenue_groups)

    stats = {
        "summary": {
            "total_orders": sum(orders_by_status.values()),
            "total_revenue": total_revenue,
            "average_order_value": total_revenue / revenue_orders if revenue_orders else 0,
            "pending_orders": orders_by_status.get(OrderStatus.PENDING.value, 0),
            "completed_orders": orders_by_status.get(OrderStatus.COMPLETED.value, 0),
            "cancelled_orders": orders_by_status.get(OrderStatus.CANCELLED.value, 0),
        },
        "orders_by_status": orders_by_status,
        "orders_by_type": {group["_id"]: group["count"] for group in by_type},
        "recent_orders": [Order.from_document(document) for document in recent],
        "generated_at": utc_now(),
    }
    logger.info(f"Order statistics computed for {actor.id}: {stats['summary']['total_orders']} orders")
    return stats
