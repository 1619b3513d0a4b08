# routes/v1/notifications.py
import logging

from fastapi import APIRouter, Depends, Request, Query
from pymongo.database import Database

from app.middleware.rate_limit import limiter
from core.auth.auth import get_current_actor
from core.errors import BaseError, InternalServerError
from domain.entities.user import Actor
from domain.schemas.notification import NotificationResponse, NotificationPage
from infrastructure.database.client import get_db
from services.notifications import get_notifications_by_user, mark_notification_read

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=NotificationPage, summary="List the current user's notifications")
@limiter.limit("20/minute")
def list_notifications_route(
    request: Request,
    unread_only: bool = Query(False, description="Only unread notifications"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        return get_notifications_by_user(db, actor.id, unread_only, page, page_size)
    except BaseError as be:
        logger.error(f"Failed to list notifications of {actor.id}: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to list notifications of {actor.id}: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")


@router.put("/{notification_id}/read", response_model=NotificationResponse, summary="Mark a notification read")
@limiter.limit("20/minute")
def mark_read_route(
    request: Request,
    notification_id: str,
    db: Database = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    try:
        notification = mark_notification_read(db, notification_id, actor.id)
        logger.info(f"Notification {notification_id} read by {actor.id}")
        return notification
    except BaseError as be:
        logger.error(f"Failed to mark notification {notification_id} read: {be.detail}")
        raise
    except Exception as e:
        logger.error(f"Failed to mark notification {notification_id} read: {str(e)}", exc_info=True)
        raise InternalServerError("Internal server error")
