# domain/entities/listing.py
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator

from domain.entities.order import OrderType, ProductSnapshot


class Listing(BaseModel):
    """A product or service as the order service sees it.

    Products store their owner as ``seller_id`` and services as
    ``provider_id``; both end up in ``owner_id``.
    """
    id: str = Field(..., description="ID of the product or service as a string")
    kind: OrderType = Field(..., description="product or service")
    owner_id: str = Field(..., description="ID of the seller or provider")
    title: str = Field(..., description="Title of the listing")
    description: Optional[str] = Field(None, description="Description of the listing")
    price: float = Field(..., ge=0, description="Unit price")
    currency: Optional[str] = Field(None, description="Currency of the price")
    unit: Optional[str] = Field(None, description="Sale unit, e.g. kg or piece")
    images: List[str] = Field(default_factory=list, description="Image URLs")
    delivery_fee: float = Field(0, ge=0, description="Fee charged when the listing is delivered")
    is_available: bool = Field(True, description="Whether the listing can be ordered")

    @field_validator("id", "owner_id", mode="before")
    def validate_id_format(cls, value):
        if value is not None and not isinstance(value, str):
            value = str(value)
        if not value or not value.strip():
            raise ValueError(f"ID must be a non-empty string, got: {value}")
        return value

    @classmethod
    def from_document(cls, kind: OrderType, document: Dict[str, Any]) -> "Listing":
        owner_field = "seller_id" if kind == OrderType.PRODUCT else "provider_id"
        return cls(
            id=document["_id"],
            kind=kind,
            owner_id=document[owner_field],
            title=document.get("title") or document.get("name", ""),
            description=document.get("description"),
            price=document["price"],
            currency=document.get("currency"),
            unit=document.get("unit"),
            images=document.get("images") or [],
            delivery_fee=document.get("delivery_fee", 0),
            is_available=document.get("is_available", True),
        )

    def snapshot(self) -> ProductSnapshot:
        return ProductSnapshot(
            title=self.title,
            description=self.description,
            image=self.images[0] if self.images else None,
            unit=self.unit,
        )
