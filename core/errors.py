# core/errors.py
import logging
from typing import Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)

class BaseError(HTTPException):
    """Base class for custom HTTP exceptions.

    Args:
        status_code (int): HTTP status code for the error.
        detail (str): Detailed message describing the error.
    """
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)
        logger.error(f"Error occurred: {detail} (Status: {status_code})")

class NotFoundError(BaseError):
    """Exception raised for resources that cannot be found.

    Args:
        detail (str, optional): Specific detail about what was not found. Defaults to "Item not found".
    """

    def __init__(self, detail: Optional[str] = "Item not found"):
        super().__init__(status_code=404, detail=detail)

class ValidationError(BaseError):
    """Exception raised for invalid input data.

    Args:
        detail (str, optional): Specific detail about the validation failure. Defaults to "Invalid input".
    """

    def __init__(self, detail: Optional[str] = "Invalid input"):
        super().__init__(status_code=400, detail=detail)

class UnauthorizedError(BaseError):
    """Exception raised for unauthenticated access attempts.

    Args:
        detail (str, optional): Specific detail about the authentication failure. Defaults to "Unauthorized".
    """

    def __init__(self, detail: Optional[str] = "Unauthorized"):
        super().__init__(status_code=401, detail=detail)

class ForbiddenError(BaseError):
    """Exception raised when the actor lacks the role or ownership for an operation.

    Args:
        detail (str, optional): Specific detail about the missing permission. Defaults to "Forbidden".
    """

    def __init__(self, detail: Optional[str] = "Forbidden"):
        super().__init__(status_code=403, detail=detail)

class InvalidTransitionError(BaseError):
    """Exception raised when an order status change is not allowed from its current status.

    Args:
        current_status (str): Status the order is in.
        requested_status (str): Status that was requested.
        detail (str, optional): Overrides the generated message.
    """

    def __init__(self, current_status: str, requested_status: str, detail: Optional[str] = None):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            status_code=400,
            detail=detail or f"Cannot change status from {current_status} to {requested_status}"
        )

class InvalidOperationError(BaseError):
    """Exception raised for semantically invalid requests (self-purchase, double rating, ...).

    Args:
        detail (str, optional): Specific detail about the invalid operation. Defaults to "Invalid operation".
    """

    def __init__(self, detail: Optional[str] = "Invalid operation"):
        super().__init__(status_code=400, detail=detail)

class UnavailableError(BaseError):
    """Exception raised when a listing cannot currently be ordered.

    Args:
        detail (str, optional): Specific detail about the unavailable listing. Defaults to "Listing is not available".
    """

    def __init__(self, detail: Optional[str] = "Listing is not available"):
        super().__init__(status_code=400, detail=detail)

class ConflictError(BaseError):
    """Exception raised when a concurrent modification keeps winning over an update.

    Args:
        detail (str, optional): Specific detail about the conflict. Defaults to "Resource was modified concurrently".
    """

    def __init__(self, detail: Optional[str] = "Resource was modified concurrently"):
        super().__init__(status_code=409, detail=detail)

class InternalServerError(BaseError):
    """Exception raised for unexpected server-side errors.

    Args:
        detail (str, optional): Specific detail about the server error. Defaults to "Internal server error".
    """

    def __init__(self, detail: Optional[str] = "Internal server error"):
        super().__init__(status_code=500, detail=detail)
