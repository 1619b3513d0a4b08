# core/auth/jwt.py
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from app.config.settings import settings
from core.errors import ValidationError, UnauthorizedError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def create_access_token(user_id: str, roles: list[str], expires_minutes: Optional[int] = None) -> str:
    """Create an access token for a user.

    Args:
        user_id (str): Unique identifier of the user as a string.
        roles (list[str]): List of roles assigned to the user.
        expires_minutes (int, optional): Lifetime override, defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: Encoded JWT access token.

    Raises:
        ValidationError: If the user id or roles are malformed.
    """
    if not user_id or not isinstance(user_id, str):
        raise ValidationError("user_id must be a non-empty string")
    if not isinstance(roles, list) or not all(isinstance(role, str) for role in roles):
        raise ValidationError("roles must be a list of strings")

    now = datetime.now(timezone.utc)
    lifetime = settings.ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    to_encode = {
        "sub": user_id,
        "roles": roles,
        "exp": now + timedelta(minutes=lifetime),
        "iat": now
    }
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)
    logger.info(f"Access token created for user {user_id}")
    return encoded_jwt


def decode_token(token: str, secret_key: Optional[str] = None) -> dict:
    """Decode a JWT token and return its payload.

    Raises:
        UnauthorizedError: If the token is expired, tampered with or malformed.
    """
    if not token or not isinstance(token, str):
        raise UnauthorizedError("Token must be a non-empty string")
    try:
        payload = jwt.decode(token, secret_key or settings.SECRET_KEY, algorithms=[ALGORITHM])
        logger.debug(f"Token decoded successfully for user: {payload.get('sub')}")
        return payload
    except ExpiredSignatureError:
        logger.warning("Token has expired")
        raise UnauthorizedError("Token has expired")
    except InvalidTokenError:
        logger.warning("Invalid token format or signature")
        raise UnauthorizedError("Invalid token")
