# domain/schemas/order.py
from datetime import datetime
from typing import Optional, List, Dict

from pydantic import BaseModel, Field, computed_field, field_validator

from domain.entities.order import (
    Order, OrderType, PaymentMethod, PaymentStatus, DeliveryType, Address, PreferredTime, Discount
)


class OrderCreate(BaseModel):
    order_type: OrderType = Field(..., description="product or service")
    product: Optional[str] = Field(None, description="ID of the product, required for product orders")
    service: Optional[str] = Field(None, description="ID of the service, required for service orders")
    quantity: Optional[int] = Field(None, ge=1, description="Quantity, defaults to 1 and is always 1 for services")
    delivery_type: DeliveryType = Field(DeliveryType.PICKUP, description="pickup, delivery or shipping")
    delivery_address: Optional[Address] = Field(None, description="Defaults to the buyer's profile address")
    coordinates: Optional[List[float]] = Field(None, description="[longitude, latitude] of the delivery point")
    recipient_name: Optional[str] = Field(None, description="Who receives the order")
    recipient_phone: Optional[str] = Field(None, description="Phone of the recipient")
    preferred_time: Optional[PreferredTime] = Field(None, description="Requested delivery window")
    payment_method: Optional[PaymentMethod] = Field(None, description="Defaults to cash")
    notes: Optional[str] = Field(None, max_length=1000, description="Buyer notes for the seller")

    @field_validator("product", "service", mode="before")
    def validate_id_format(cls, value):
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ValueError("ID must be a non-empty string if provided")
        return value

    @field_validator("notes", "recipient_name", "recipient_phone")
    def validate_optional_strings(cls, value):
        if value is not None and not value.strip():
            raise ValueError("Field must be a non-empty string if provided")
        return value


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1, description="Requested next status")
    note: Optional[str] = Field(None, max_length=500, description="Optional note kept in the status history")


class PaymentUpdate(BaseModel):
    payment_status: PaymentStatus = Field(..., description="New payment status")
    transaction_id: Optional[str] = Field(None, description="Gateway or wallet transaction ID")
    paid_amount: Optional[float] = Field(None, ge=0, description="Amount received, defaults to the order total")


class PricingUpdate(BaseModel):
    delivery_fee: Optional[float] = Field(None, ge=0, description="New delivery fee")
    service_fee: Optional[float] = Field(None, ge=0, description="New service fee")
    discount: Optional[Discount] = Field(None, description="New discount")


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Why the order is cancelled")
    refund_amount: float = Field(0, ge=0, description="Amount to refund to the buyer")


class RatingCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5, description="Rating between 1 and 5")
    review: Optional[str] = Field(None, max_length=1000, description="Optional review text")


class OrderResponse(Order):
    """Order as returned over HTTP, with the derived flags clients display."""
    id: str = Field(..., description="Unique identifier of the order as a string")

    @computed_field
    @property
    def total_items(self) -> int:
        return super().total_items

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return super().is_terminal

    @computed_field
    @property
    def is_active(self) -> bool:
        return super().is_active

    @computed_field
    @property
    def can_be_cancelled(self) -> bool:
        return super().can_be_cancelled

    @computed_field
    @property
    def can_be_rated(self) -> bool:
        return super().can_be_rated


class OrderPage(BaseModel):
    data: List[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class OrderSummary(BaseModel):
    total_orders: int = 0
    total_revenue: float = 0
    average_order_value: float = 0
    pending_orders: int = 0
    completed_orders: int = 0
    cancelled_orders: int = 0


class OrderStats(BaseModel):
    summary: OrderSummary
    orders_by_status: Dict[str, int]
    orders_by_type: Dict[str, int]
    recent_orders: List[OrderResponse]
    generated_at: datetime
