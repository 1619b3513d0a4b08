# core/logging/setup.py
import logging
import logging.config

from fastapi import FastAPI

from app.config.settings import settings
from app.middleware.logging import LoggingMiddleware
from core.errors import InternalServerError

logger = logging.getLogger("elsoug_app")


def build_logging_config(log_file: str) -> dict:
    """Return the dictConfig used by the API process."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.FileHandler",
                "filename": log_file,
                "level": "DEBUG",
                "formatter": "default",
            },
            "console": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "default",
            },
        },
        "loggers": {
            "elsoug_app": {
                "level": "DEBUG",
                "handlers": ["file", "console"],
                "propagate": False,
            },
            "services": {
                "level": "DEBUG",
                "handlers": ["file", "console"],
                "propagate": False,
            },
        },
        "root": {
            "level": "INFO",
            "handlers": ["console"],
        },
    }


def setup_logging(app: FastAPI) -> None:
    """Set up logging configuration and request logging for the application."""
    try:
        logging.config.dictConfig(build_logging_config(settings.LOG_FILE))
        app.add_middleware(LoggingMiddleware)
        logger.info("Logging setup completed")
    except ValueError as ve:
        logger.error(f"Invalid config: {str(ve)}", exc_info=True)
        raise InternalServerError(f"Invalid logging configuration: {str(ve)}")
    except PermissionError as pe:
        logger.error(f"Permission denied: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Permission denied: {str(pe)}")
    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        raise InternalServerError(f"Unexpected error: {str(e)}")
