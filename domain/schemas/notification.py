# domain/schemas/notification.py
from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: str = Field(..., description="Unique identifier of the notification as a string")
    recipient_id: str = Field(..., description="ID of the user receiving the notification")
    sender_id: Optional[str] = Field(None, description="ID of the user whose action caused it")
    title: str = Field(..., description="Short title of the notification")
    message: str = Field(..., description="Message content of the notification")
    type: str = Field(..., description="Type of notification")
    related_order: Optional[str] = Field(None, description="ID of the related order")
    data: Dict[str, Any] = Field(default_factory=dict, description="Extra payload")
    is_read: bool = Field(..., description="Whether the notification was read")
    read_at: Optional[datetime] = Field(None, description="Read time (UTC)")
    created_at: datetime = Field(..., description="Creation time (UTC)")


class NotificationPage(BaseModel):
    data: List[NotificationResponse]
    total: int
    unread: int
    page: int
    page_size: int
    total_pages: int
