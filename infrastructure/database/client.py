# infrastructure/database/client.py
import logging
from functools import lru_cache

from pymongo import MongoClient
from pymongo.database import Database

from app.config.settings import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> MongoClient:
    """Create the process-wide MongoDB client; pymongo pools connections internally."""
    try:
        client = MongoClient(settings.MONGO_URI, tz_aware=True)
        logger.info("MongoDB client created")
        return client
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {str(e)}", exc_info=True)
        raise


def get_db() -> Database:
    """Get the application database; used as a FastAPI dependency."""
    return get_client()[settings.MONGO_DB]
