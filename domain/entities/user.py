# domain/entities/user.py
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator

from domain.entities.order import Address


class User(BaseModel):
    id: Optional[str] = Field(None, description="Unique identifier of the user as a string")
    name: str = Field(..., description="Display name of the user")
    phone: Optional[str] = Field(None, description="Phone number of the user")
    email: Optional[str] = Field(None, description="Email address of the user")
    roles: List[str] = Field(default_factory=lambda: ["user"], description="Roles assigned to the user")
    status: str = Field("active", description="Status of the user (active/inactive)")
    address: Optional[Address] = Field(None, description="Default delivery address")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation time (UTC)")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc),
                                 description="Last update time (UTC)")

    @field_validator("name")
    def validate_name(cls, value):
        if not value or not value.strip():
            raise ValueError("Name must be a non-empty string")
        return value.strip()

    @field_validator("roles")
    def validate_roles(cls, value):
        if not value or not all(isinstance(r, str) and r.strip() for r in value):
            raise ValueError("Roles must be a non-empty list of strings")
        return value

    @field_validator("status")
    def validate_status(cls, value):
        valid_statuses = ["active", "inactive"]
        if value not in valid_statuses:
            raise ValueError(f"Status must be one of {valid_statuses}, got: {value}")
        return value

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "User":
        data = dict(document)
        data["id"] = str(data.pop("_id")) if "_id" in data else data.get("id")
        return cls(**data)


class Actor(BaseModel):
    """Authenticated identity performing an operation."""
    id: str = Field(..., description="ID of the authenticated user")
    name: Optional[str] = Field(None, description="Display name, used in notification texts")
    roles: List[str] = Field(default_factory=lambda: ["user"])
    address: Optional[Address] = None

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, name=user.name, roles=user.roles, address=user.address)
