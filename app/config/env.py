# app/config/env.py
import logging
import os
from typing import Optional

from dotenv import load_dotenv

from core.errors import ValidationError

logger = logging.getLogger(__name__)

load_dotenv()

_SECRET_MARKERS = ("SECRET", "PASSWORD", "TOKEN")


def get_env_var(name: str, default: Optional[str] = None) -> str:
    """Read a required environment variable, falling back to ``default``.

    Raises:
        ValidationError: If the variable is unset and no default is provided.
    """
    value = os.getenv(name, default)
    if value is None:
        logger.error(f"Environment variable '{name}' is not set and no default provided")
        raise ValidationError(f"Environment variable '{name}' is required but not set")
    shown = "***" if any(marker in name.upper() for marker in _SECRET_MARKERS) else value
    logger.debug(f"Retrieved environment variable: {name} = {shown}")
    return value
