# devicehub/core/utils.py
from datetime import date, datetime, time
from typing import Any, Optional

from beanie import PydanticObjectId
from bson import ObjectId

from devicehub.core.errors import ValidationFailed


def parse_object_id(value: Any, label: str = "ID") -> PydanticObjectId:
    """Turns a path/body id into an ObjectId, 400 on a malformed value."""
    if isinstance(value, ObjectId):
        return PydanticObjectId(value)
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationFailed(f"Invalid {label}")
    return PydanticObjectId(value)


def to_datetime(value: date) -> datetime:
    """Calendar date as stored in MongoDB: midnight, naive UTC."""
    if isinstance(value, datetime):
        return datetime.combine(value.date(), time.min)
    return datetime.combine(value, time.min)


def as_date(value: Any) -> Any:
    """Inverse of to_datetime. Used as a `before` validator on response schemas."""
    if isinstance(value, datetime):
        return value.date()
    return value


def as_str_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
