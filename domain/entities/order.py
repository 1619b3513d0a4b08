# domain/entities/order.py
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class OrderType(str, Enum):
    PRODUCT = "product"
    SERVICE = "service"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    MOBILE_WALLET = "mobile_wallet"
    BANK_TRANSFER = "bank_transfer"
    BARTER = "barter"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial_refund"


class DeliveryType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"
    SHIPPING = "shipping"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class RefundStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _OrderPart(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)


class ProductSnapshot(_OrderPart):
    """Listing details copied at order time so old orders stay readable."""
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    unit: Optional[str] = None


class OrderItem(_OrderPart):
    product_id: str = Field(..., description="ID of the ordered listing as a string")
    quantity: int = Field(..., ge=1, description="Quantity ordered, at least 1")
    price: float = Field(..., ge=0, description="Unit price at order time")
    total_price: float = Field(0, ge=0, description="price * quantity, refreshed by pricing")
    product_snapshot: ProductSnapshot = Field(default_factory=ProductSnapshot)


class Discount(_OrderPart):
    """Overshooting discounts are allowed; pricing clamps the total at zero."""
    amount: float = Field(0, ge=0, description="Percentage or fixed amount")
    type: DiscountType = Field(DiscountType.FIXED, description="How amount is applied")
    code: Optional[str] = Field(None, description="Coupon code if applicable")
    reason: Optional[str] = Field(None, description="Reason for the discount")


class Address(_OrderPart):
    street: Optional[str] = None
    landmark: Optional[str] = None
    building_number: Optional[str] = None
    floor: Optional[str] = None
    apartment: Optional[str] = None
    notes: Optional[str] = None


class PreferredTime(_OrderPart):
    date: Optional[datetime] = None
    time_slot: Optional[str] = Field(None, description="e.g. morning, afternoon, evening")


class DeliveryInfo(_OrderPart):
    type: DeliveryType = DeliveryType.PICKUP
    address: Optional[Address] = None
    coordinates: Optional[List[float]] = Field(None, description="[longitude, latitude]")
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    preferred_time: Optional[PreferredTime] = None
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    instructions: Optional[str] = None

    @field_validator("coordinates")
    def validate_coordinates(cls, value):
        if value is None:
            return value
        if len(value) != 2:
            raise ValueError("Coordinates must be [longitude, latitude]")
        lon, lat = value
        if not -180 <= lon <= 180 or not -90 <= lat <= 90:
            raise ValueError(f"Coordinates out of range: {value}")
        return value


class PaymentInfo(_OrderPart):
    method: PaymentMethod = PaymentMethod.CASH
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = None
    paid_amount: float = Field(0, ge=0)
    paid_at: Optional[datetime] = None


class StatusHistoryEntry(_OrderPart):
    status: OrderStatus
    timestamp: datetime = Field(default_factory=utc_now)
    note: Optional[str] = None
    updated_by: Optional[str] = Field(None, description="ID of the actor that made the change")


class Rating(_OrderPart):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = None
    rated_at: datetime = Field(default_factory=utc_now)


class Cancellation(_OrderPart):
    reason: Optional[str] = None
    cancelled_by: str
    refund_amount: float = Field(0, ge=0)
    refund_status: RefundStatus = RefundStatus.PROCESSED


class Order(_OrderPart):
    """Entity representing an order in the marketplace.

    Parties and items are fixed at creation. Status, history and the status
    timestamps change only through the lifecycle engine; totals change only
    through the pricing calculator.
    """
    id: Optional[str] = Field(None, description="Unique identifier of the order as a string")
    order_number: Optional[str] = Field(None, description="Human-readable unique order number")
    version: int = Field(1, ge=1, description="Optimistic concurrency counter")
    buyer_id: str = Field(..., description="ID of the buyer as a string")
    seller_id: str = Field(..., description="ID of the seller or service provider as a string")
    order_type: OrderType = Field(..., description="Whether a product or a service was ordered")
    listing_id: str = Field(..., description="ID of the ordered product or service")
    items: List[OrderItem] = Field(..., min_length=1)
    subtotal: float = Field(0, ge=0)
    delivery_fee: float = Field(0, ge=0)
    service_fee: float = Field(0, ge=0)
    discount: Discount = Field(default_factory=Discount)
    total_amount: float = Field(0, ge=0)
    currency: str = Field("EGP", pattern="^(EGP|USD)$")
    delivery: DeliveryInfo = Field(default_factory=DeliveryInfo)
    payment: PaymentInfo = Field(default_factory=PaymentInfo)
    status: OrderStatus = OrderStatus.PENDING
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    notes: Optional[str] = None
    customer_rating: Optional[Rating] = None
    seller_rating: Optional[Rating] = None
    cancellation: Optional[Cancellation] = None
    created_at: datetime = Field(default_factory=utc_now, description="Creation time (UTC)")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update time (UTC)")
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("id", "buyer_id", "seller_id", "listing_id", mode="before")
    def validate_id_format(cls, value):
        """Validate that ID fields are non-empty strings."""
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ValueError(f"ID must be a non-empty string, got: {value}")
        return value

    @model_validator(mode="after")
    def validate_parties(self):
        if self.buyer_id == self.seller_id:
            raise ValueError("Buyer and seller must be different users")
        return self

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Order":
        """Build an Order from a raw MongoDB document."""
        data = dict(document)
        data["id"] = str(data.pop("_id")) if "_id" in data else data.get("id")
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        """Dump the order for storage, without the id."""
        return self.model_dump(mode="python", exclude={"id"})

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED,
                               OrderStatus.REFUNDED, OrderStatus.DISPUTED)

    @property
    def is_active(self) -> bool:
        return self.status not in (OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REFUNDED)

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.CONFIRMED)

    @property
    def can_be_rated(self) -> bool:
        return self.status == OrderStatus.COMPLETED and self.customer_rating is None
