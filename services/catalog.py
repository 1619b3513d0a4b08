# services/catalog.py
import logging

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import OperationFailure

from core.errors import NotFoundError, ValidationError, InternalServerError
from core.utils.validation import validate_object_id
from domain.entities.listing import Listing
from domain.entities.order import OrderType

logger = logging.getLogger(__name__)

_COLLECTIONS = {
    OrderType.PRODUCT: "products",
    OrderType.SERVICE: "services",
}


def find_listing(db: Database, order_type: str, listing_id: str) -> Listing:
    """Look up the product or service an order refers to.

    Args:
        db (Database): MongoDB database instance.
        order_type (str): "product" or "service".
        listing_id (str): ID of the product or service.

    Returns:
        Listing: Price, owner and availability of the listing.

    Raises:
        ValidationError: If order_type or listing_id is invalid.
        NotFoundError: If no such listing exists.
        InternalServerError: For database failures.
    """
    try:
        kind = OrderType(order_type)
    except ValueError:
        raise ValidationError(f"Invalid order type: {order_type}")
    validate_object_id(listing_id, f"{kind.value}_id")

    try:
        document = db[_COLLECTIONS[kind]].find_one({"_id": ObjectId(listing_id)})
    except OperationFailure as of:
        logger.error(f"Database operation failed in find_listing: {str(of)}", exc_info=True)
        raise InternalServerError(f"Failed to look up {kind.value}: {str(of)}")

    if not document:
        logger.warning(f"{kind.value.capitalize()} with ID {listing_id} not found")
        raise NotFoundError(f"{kind.value.capitalize()} not found")
    listing = Listing.from_document(kind, document)
    logger.debug(f"Resolved {kind.value} {listing_id}: price={listing.price}, owner={listing.owner_id}, "
                 f"available={listing.is_available}")
    return listing
