# infrastructure/database/indexes.py
import logging
from typing import Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from infrastructure.database.client import get_db

logger = logging.getLogger(__name__)


def create_indexes(db: Optional[Database] = None):
    """Create indexes for MongoDB collections."""
    db = db if db is not None else get_db()
    try:
        # Users collection
        db.users.create_index([("phone", ASCENDING)], unique=True, sparse=True, name="unique_user_phone_idx")
        db.users.create_index([("status", ASCENDING)])

        # Products and services collections
        db.products.create_index([("seller_id", ASCENDING)])
        db.products.create_index([("is_available", ASCENDING)])
        db.services.create_index([("provider_id", ASCENDING)])
        db.services.create_index([("is_available", ASCENDING)])

        # Orders collection
        db.orders.create_index([("order_number", ASCENDING)], unique=True, name="unique_order_number_idx")
        db.orders.create_index([("buyer_id", ASCENDING), ("created_at", DESCENDING)])
        db.orders.create_index([("seller_id", ASCENDING), ("created_at", DESCENDING)])
        db.orders.create_index([("status", ASCENDING)])
        db.orders.create_index([("payment.status", ASCENDING)])
        db.orders.create_index([("created_at", DESCENDING)])

        # Notifications collection
        db.notifications.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])
        db.notifications.create_index([("recipient_id", ASCENDING), ("is_read", ASCENDING)])

        logger.info("Database indexes created successfully")
    except Exception as e:
        logger.error(f"Failed to create database indexes: {str(e)}", exc_info=True)
        raise
