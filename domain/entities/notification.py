# domain/entities/notification.py
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator

NOTIFICATION_TYPES = [
    "order_created",
    "order_confirmed",
    "order_processing",
    "order_shipped",
    "order_delivered",
    "order_completed",
    "order_cancelled",
    "payment_received",
    "payment_failed",
    "system_update",
]


class Notification(BaseModel):
    """Entity representing a notification in the marketplace."""
    id: Optional[str] = Field(None, description="Unique identifier of the notification as a string")
    recipient_id: str = Field(..., description="ID of the user receiving the notification as a string")
    sender_id: Optional[str] = Field(None, description="ID of the user whose action caused the notification")
    title: str = Field(..., max_length=100, description="Short title of the notification")
    message: str = Field(..., max_length=500, description="Message content of the notification")
    type: str = Field(..., description="Type of notification")
    related_order: Optional[str] = Field(None, description="ID of the related order as a string")
    data: Dict[str, Any] = Field(default_factory=dict, description="Extra payload for clients")
    is_read: bool = Field(False, description="Whether the recipient has read the notification")
    read_at: Optional[datetime] = Field(None, description="Time the notification was read (UTC)")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation time (UTC)")

    @field_validator("id", "recipient_id", "sender_id", "related_order", mode="before")
    def validate_id_format(cls, value):
        """Validate that ID fields are valid strings."""
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ValueError(f"ID must be a non-empty string, got: {value}")
        return value

    @field_validator("type")
    def validate_type(cls, value):
        """Ensure type is valid."""
        if value not in NOTIFICATION_TYPES:
            raise ValueError(f"Type must be one of {NOTIFICATION_TYPES}, got: {value}")
        return value

    @field_validator("title", "message")
    def validate_text(cls, value):
        """Ensure title and message are non-empty strings."""
        if not value or not value.strip():
            raise ValueError("Title and message must be non-empty strings")
        return value.strip()

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Notification":
        data = dict(document)
        data["id"] = str(data.pop("_id")) if "_id" in data else data.get("id")
        return cls(**data)
