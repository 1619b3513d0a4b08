# core/auth/auth.py
import logging

from bson import ObjectId
from fastapi import Depends, Header
from pymongo.database import Database
from pymongo.errors import PyMongoError

from core.errors import UnauthorizedError
from domain.entities.user import User, Actor
from infrastructure.database.client import get_db
from .jwt import decode_token

logger = logging.getLogger(__name__)


def get_current_user(token: str, db: Database) -> User:
    """Retrieve the user a bearer token was issued to.

    Args:
        token (str): JWT token from the Authorization header.
        db (Database): MongoDB database instance.

    Returns:
        User: The active user.

    Raises:
        UnauthorizedError: If the token is invalid or the user is unknown or inactive.
    """
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id or not ObjectId.is_valid(user_id):
        logger.error(f"Invalid subject in token payload: {user_id}")
        raise UnauthorizedError("Could not validate credentials")

    try:
        document = db.users.find_one({"_id": ObjectId(user_id)})
    except PyMongoError as pe:
        logger.error(f"Database operation failed during authentication: {str(pe)}", exc_info=True)
        raise UnauthorizedError(f"Database error during authentication: {str(pe)}")
    if document is None:
        logger.error(f"No user found for ID: {user_id}")
        raise UnauthorizedError("Could not validate credentials")

    user = User.from_document(document)
    if user.status != "active":
        logger.warning(f"Inactive user attempted access: {user_id}")
        raise UnauthorizedError("User account is not active")
    logger.debug(f"User validated: {user_id}")
    return user


def get_token(authorization: str = Header(None)) -> str:
    """Extract the token from the Authorization header.

    Raises:
        UnauthorizedError: If the header is missing or is not a bearer token.
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing or invalid authorization header")
        raise UnauthorizedError("Invalid authorization header")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise UnauthorizedError("Empty token provided")
    return token


def get_current_actor(token: str = Depends(get_token), db: Database = Depends(get_db)) -> Actor:
    """FastAPI dependency resolving the authenticated actor of a request."""
    return Actor.from_user(get_current_user(token, db))
