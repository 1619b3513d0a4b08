# core/utils/pagination.py
import logging
from typing import List, Dict, Any, Optional, Tuple

from pydantic import BaseModel, Field
from pymongo import DESCENDING
from pymongo.collection import Collection
from pymongo.errors import OperationFailure

from core.errors import ValidationError, InternalServerError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class PaginationParams(BaseModel):
    """Parameters for pagination."""
    page: int = Field(1, ge=1, description="Page number (must be >= 1)")
    page_size: int = Field(10, ge=1, le=MAX_PAGE_SIZE, description="Number of items per page")


class Pagination:
    """Skip/limit arithmetic for a page request."""

    def __init__(self, page: int = 1, page_size: int = 10):
        """Initialize pagination with page and page_size.

        Raises:
            ValidationError: If page or page_size is invalid.
        """
        try:
            params = PaginationParams(page=page, page_size=page_size)
        except ValueError as ve:
            logger.error(f"Validation error initializing pagination: {str(ve)}")
            raise ValidationError(f"Invalid pagination parameters: page={page}, page_size={page_size}")
        self.page = params.page
        self.page_size = params.page_size
        self.skip = (self.page - 1) * self.page_size

    def wrap(self, data: List[Any], total: int) -> Dict[str, Any]:
        """Wrap one page of results with paging metadata."""
        return {
            "data": data,
            "total": total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": (total + self.page_size - 1) // self.page_size
        }


def paginate_results(db_collection: Collection, filter: Dict[str, Any], page: int = 1, page_size: int = 10,
                     sort: Optional[List[Tuple[str, int]]] = None) -> Dict[str, Any]:
    """Paginate database query results, newest first unless ``sort`` is given.

    Args:
        db_collection (Collection): MongoDB collection to query.
        filter (Dict[str, Any]): Filter criteria for the query.
        page (int): Page number, defaults to 1.
        page_size (int): Items per page, defaults to 10.
        sort (list, optional): pymongo sort keys, e.g. [("created_at", -1)].

    Returns:
        Dict[str, Any]: Raw documents under "data" plus total, page, page_size and total_pages.

    Raises:
        ValidationError: If filter, page, or page_size is invalid.
        InternalServerError: If database query fails.
    """
    if not isinstance(filter, dict):
        raise ValidationError("Filter must be a dictionary")
    pagination = Pagination(page, page_size)
    try:
        total = db_collection.count_documents(filter)
        cursor = db_collection.find(filter).sort(sort or [("created_at", DESCENDING)])
        results = list(cursor.skip(pagination.skip).limit(pagination.page_size))
        logger.debug(f"Paginated {db_collection.name}: page={pagination.page}, returned={len(results)}, total={total}")
        return pagination.wrap(results, total)
    except OperationFailure as of:
        logger.error(f"Database operation failed paginating results: {str(of)}", exc_info=True)
        raise InternalServerError(f"Failed to paginate database results: {str(of)}")
