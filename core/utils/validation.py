# core/utils/validation.py
from typing import Any, Dict, Optional
from bson import ObjectId
from core.errors import ValidationError

def validate_object_id(value: str, field_name: str) -> None:
    """Validate that a string is a valid MongoDB ObjectId."""
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {field_name} format: {value}")

def validate_required_fields(data: Dict[str, Any], required_fields: list[str], context: Optional[str] = None) -> None:
    """Validate that all required fields are present and non-empty."""
    for field in required_fields:
        if not data.get(field):
            suffix = f" for {context}" if context else ""
            raise ValidationError(f"{field} is required{suffix}")
