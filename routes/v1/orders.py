# routes/v1/orders.py
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, Query
from pymongo.database import Database

from app.middleware.rate_limit import limiter
from core.auth.auth import get_current_actor
from core.errors import BaseError, InternalServerError
from domain.entities.user import Actor
from domain.schemas.order import (
    OrderCreate, OrderStatusUpdate, PaymentUpdate, PricingUpdate, CancelRequest, RatingCreate,
    OrderResponse, OrderPage, OrderStats
)
from infrastructure.database.client import get_db
from services.orders import (
    create_order, get_order, get_my_orders, get_all_orders, transition_order_status, cancel_order,
    update_payment, update_pricing, add_customer_rating, add_seller_rating, get_order_stats
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=OrderResponse, status_code=201, summary="Create a new order")
@limiter.limit("5/minute")
def create_order_route(
    request: Request,
    order_data: OrderCreate,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Place an order for a product or service as the authenticated buyer."""
    try:
        order = create_order(db, actor, order_data.model_dump(exclude_unset=True))
        logger.info(f"Order created by user {actor.id}: {order.id}")
        return order
    except BaseError as be:
        logger.error(f"Failed to create order for {actor.id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to create order: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.get("", response_model=OrderPage, summary="List all orders (admin only)")
@limiter.limit("10/minute")
def list_orders_route(
    request: Request,
    status: Optional[str] = Query(None, description="Filter by order status"),
    payment_status: Optional[str] = Query(None, description="Filter by payment status"),
    order_type: Optional[str] = Query(None, description="product or service"),
    start_date: Optional[datetime] = Query(None, description="Created at or after"),
    end_date: Optional[datetime] = Query(None, description="Created at or before"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        result = get_all_orders(db, actor, status, payment_status, order_type, start_date, end_date,
                                page, page_size)
        logger.info(f"Admin {actor.id} listed orders: page {page}, total {result['total']}")
        return result
    except BaseError as be:
        logger.error(f"Failed to list orders for {actor.id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to list orders: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.get("/my-orders", response_model=OrderPage, summary="List the current user's orders")
@limiter.limit("10/minute")
def my_orders_route(
    request: Request,
    role: Optional[str] = Query(None, description="buyer or seller; both when omitted"),
    status: Optional[str] = Query(None, description="Filter by order status"),
    order_type: Optional[str] = Query(None, description="product or service"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        return get_my_orders(db, actor, role, status, order_type, page, page_size)
    except BaseError as be:
        logger.error(f"Failed to list orders of {actor.id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to list orders of {actor.id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.get("/stats", response_model=OrderStats, summary="Order statistics")
@limiter.limit("10/minute")
def order_stats_route(
    request: Request,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Statistics over all orders for admins, over the caller's own orders otherwise."""
    try:
        return get_order_stats(db, actor)
    except BaseError as be:
        logger.error(f"Failed to compute order stats for {actor.id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to compute order stats: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order by ID")
@limiter.limit("10/minute")
def get_order_route(
    request: Request,
    order_id: str,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        return get_order(db, order_id, actor)
    except BaseError as be:
        logger.error(f"Failed to retrieve order {order_id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to retrieve order {order_id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.put("/{order_id}/status", response_model=OrderResponse, summary="Change order status")
@limiter.limit("10/minute")
def update_status_route(
    request: Request,
    order_id: str,
    update: OrderStatusUpdate,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Move the order along its lifecycle; the other party is notified."""
    try:
        order = transition_order_status(db, order_id, actor, update.status, update.note)
        logger.info(f"Order {order_id} moved to {order.status} by {actor.id}")
        return order
    except BaseError as be:
        logger.error(f"Failed to update status of order {order_id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to update status of order {order_id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.put("/{order_id}/payment", response_model=OrderResponse, summary="Update payment status")
@limiter.limit("10/minute")
def update_payment_route(
    request: Request,
    order_id: str,
    update: PaymentUpdate,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        return update_payment(db, order_id, actor, update.payment_status.value, update.transaction_id,
                              update.paid_amount)
    except BaseError as be:
        logger.error(f"Failed to update payment of order {order_id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to update payment of order {order_id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.put("/{order_id}/pricing", response_model=OrderResponse, summary="Update fees and discount")
@limiter.limit("10/minute")
def update_pricing_route(
    request: Request,
    order_id: str,
    update: PricingUpdate,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Change fees or discount before processing starts (seller or admin)."""
    try:
        return update_pricing(db, order_id, actor, update.delivery_fee, update.service_fee, update.discount)
    except BaseError as be:
        logger.error(f"Failed to update pricing of order {order_id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to update pricing of order {order_id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.post("/{order_id}/cancel", response_model=OrderResponse, summary="Cancel an order")
@limiter.limit("5/minute")
def cancel_order_route(
    request: Request,
    order_id: str,
    cancel: CancelRequest,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        order = cancel_order(db, order_id, actor, cancel.reason, cancel.refund_amount)
        logger.info(f"Order {order_id} cancelled by {actor.id}")
        return order
    except BaseError as be:
        logger.error(f"Failed to cancel order {order_id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to cancel order {order_id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.post("/{order_id}/rating/customer", response_model=OrderResponse, summary="Rate the order as buyer")
@limiter.limit("5/minute")
def customer_rating_route(
    request: Request,
    order_id: str,
    rating: RatingCreate,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        return add_customer_rating(db, order_id, actor, rating.rating, rating.review)
    except BaseError as be:
        logger.error(f"Failed to rate order {order_id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to rate order {order_id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.post("/{order_id}/rating/seller", response_model=OrderResponse, summary="Rate the buyer as seller")
@limiter.limit("5/minute")
def seller_rating_route(
    request: Request,
    order_id: str,
    rating: RatingCreate,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        return add_seller_rating(db, order_id, actor, rating.rating, rating.review)
    except BaseError as be:
        logger.error(f"Failed to rate order {order_id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to rate order {order_id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")
