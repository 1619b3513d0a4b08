# services/notifications.py
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import OperationFailure

from core.errors import NotFoundError, ValidationError, ForbiddenError, InternalServerError
from core.utils.pagination import paginate_results
from core.utils.validation import validate_object_id
from domain.entities.notification import Notification
from domain.entities.order import OrderStatus
from domain.events import OrderCreated, OrderStatusChanged
from domain.lifecycle import STATUS_MESSAGES
from services.events import EventPublisher

logger = logging.getLogger(__name__)

STATUS_UPDATE_TITLE = "Order status update"
NEW_ORDER_TITLE = "New order"


def notify(db: Database, recipient_id: str, title: str, message: str, notification_type: str,
           related_order: Optional[str] = None, data: Optional[Dict[str, Any]] = None,
           sender_id: Optional[str] = None) -> str:
    """Store a notification for a single recipient.

    Args:
        db (Database): MongoDB database instance.
        recipient_id (str): ID of the user to notify.
        title (str): Short title, at most 100 characters.
        message (str): Body text, at most 500 characters.
        notification_type (str): One of the known notification types.
        related_order (str, optional): ID of the order the notification is about.
        data (dict, optional): Extra payload for clients.
        sender_id (str, optional): ID of the user whose action caused it.

    Returns:
        str: ID of the stored notification.

    Raises:
        ValidationError: If the notification content is invalid.
        InternalServerError: If the insert fails.
    """
    try:
        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            title=title,
            message=message,
            type=notification_type,
            related_order=related_order,
            data=data or {},
        )
    except ValueError as ve:
        logger.error(f"Invalid notification for recipient {recipient_id}: {str(ve)}")
        raise ValidationError(f"Invalid notification: {str(ve)}")

    try:
        result = db.notifications.insert_one(notification.model_dump(exclude={"id"}))
        notification_id = str(result.inserted_id)
        logger.info(f"Notification {notification_id} ({notification_type}) stored for {recipient_id}")
        return notification_id
    except OperationFailure as of:
        logger.error(f"Database operation failed in notify: {str(of)}", exc_info=True)
        raise InternalServerError(f"Failed to store notification: {str(of)}")


def notify_order_created(db: Database, event: OrderCreated) -> None:
    buyer = event.actor_name or "a customer"
    notify(
        db,
        recipient_id=event.seller_id,
        sender_id=event.buyer_id,
        title=NEW_ORDER_TITLE,
        message=f"You have a new order from {buyer}",
        notification_type="order_created",
        related_order=event.order_id,
        data={"order_id": event.order_id, "order_number": event.order_number,
              "order_type": event.order_type, "buyer_name": event.actor_name},
    )


def notify_order_status_changed(db: Database, event: OrderStatusChanged) -> None:
    message = STATUS_MESSAGES.get(OrderStatus(event.status), f"Order status changed to {event.status}")
    for recipient_id in event.recipients:
        notify(
            db,
            recipient_id=recipient_id,
            sender_id=event.actor_id,
            title=STATUS_UPDATE_TITLE,
            message=message,
            notification_type=f"order_{event.status}",
            related_order=event.order_id,
            data={"order_id": event.order_id, "order_number": event.order_number,
                  "status": event.status, "previous_status": event.previous_status,
                  "updated_by": event.actor_name or event.actor_id},
        )


def register_order_notifications(publisher: EventPublisher) -> None:
    publisher.subscribe(OrderCreated, notify_order_created)
    publisher.subscribe(OrderStatusChanged, notify_order_status_changed)


def get_notifications_by_user(db: Database, user_id: str, unread_only: bool = False,
                              page: int = 1, page_size: int = 10) -> Dict[str, Any]:
    """Retrieve a page of notifications for a user, newest first.

    Args:
        db (Database): MongoDB database instance.
        user_id (str): ID of the recipient.
        unread_only (bool): Only return unread notifications.
        page (int): Page number.
        page_size (int): Items per page.

    Returns:
        Dict[str, Any]: Page of Notification objects with paging metadata and the unread count.

    Raises:
        ValidationError: If user_id or paging parameters are invalid.
        InternalServerError: For database failures.
    """
    logger.debug(f"Fetching notifications for user_id: {user_id}, unread_only={unread_only}")
    validate_object_id(user_id, "user_id")
    query: Dict[str, Any] = {"recipient_id": user_id}
    if unread_only:
        query["is_read"] = False
    try:
        result = paginate_results(db.notifications, query, page, page_size)
        result["data"] = [Notification.from_document(doc) for doc in result["data"]]
        result["unread"] = db.notifications.count_documents({"recipient_id": user_id, "is_read": False})
        logger.info(f"Retrieved {len(result['data'])} notifications for user: {user_id}")
        return result
    except OperationFailure as of:
        logger.error(f"Database operation failed in get_notifications_by_user: {str(of)}", exc_info=True)
        raise InternalServerError(f"Failed to get notifications: {str(of)}")


def mark_notification_read(db: Database, notification_id: str, user_id: str) -> Notification:
    """Mark a notification as read by its recipient.

    Raises:
        ValidationError: If an ID is invalid.
        NotFoundError: If the notification does not exist.
        ForbiddenError: If the user is not the recipient.
        InternalServerError: For database failures.
    """
    try:
        validate_object_id(notification_id, "notification_id")
        validate_object_id(user_id, "user_id")

        notification = db.notifications.find_one({"_id": ObjectId(notification_id)})
        if not notification:
            raise NotFoundError(f"Notification with ID {notification_id} not found")
        if notification["recipient_id"] != user_id:
            raise ForbiddenError("You can only update your own notifications")

        if not notification.get("is_read"):
            read_at = datetime.now(timezone.utc)
            db.notifications.update_one({"_id": ObjectId(notification_id)},
                                        {"$set": {"is_read": True, "read_at": read_at}})
            notification.update(is_read=True, read_at=read_at)
        logger.info(f"Notification marked read: {notification_id}")
        return Notification.from_document(notification)
    except (ValidationError, NotFoundError, ForbiddenError):
        raise
    except OperationFailure as of:
        logger.error(f"Database operation failed in mark_notification_read: {str(of)}", exc_info=True)
        raise InternalServerError(f"Failed to update notification: {str(of)}")
