# domain/events.py
"""Order events published after the change is stored."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.order import utc_now


class OrderEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    order_number: Optional[str] = None
    buyer_id: str
    seller_id: str
    actor_id: str
    actor_name: Optional[str] = None
    occurred_at: datetime = Field(default_factory=utc_now)

    @property
    def event_type(self) -> str:
        return type(self).__name__


class OrderCreated(OrderEvent):
    order_type: str
    total_amount: float


class OrderStatusChanged(OrderEvent):
    previous_status: str
    status: str
    note: Optional[str] = None
    recipients: List[str] = Field(default_factory=list)
