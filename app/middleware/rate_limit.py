# app/middleware/rate_limit.py
import logging

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.config.settings import settings
from core.errors import InternalServerError

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def setup_rate_limit(app):
    """Attach the shared limiter and its 429 handler to the FastAPI application.

    Args:
        app: The FastAPI application instance.

    Raises:
        InternalServerError: If rate limiting setup fails due to configuration or runtime issues.
    """
    try:
        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
        logger.info(f"Rate limiting initialized (enabled={settings.RATE_LIMIT_ENABLED})")
    except AttributeError as ae:
        logger.error(f"AttributeError during rate limit setup: {str(ae)}", exc_info=True)
        raise InternalServerError(f"Failed to setup rate limiting: Invalid app instance - {str(ae)}")
    except Exception as e:
        logger.error(f"Unexpected error during rate limit setup: {str(e)}", exc_info=True)
        raise InternalServerError(f"Failed to setup rate limiting: {str(e)}")
