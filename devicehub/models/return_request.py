# devicehub/models/return_request.py
from typing import Optional
from datetime import date, datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, field_validator, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING

from devicehub.core.clock import utcnow
from devicehub.core.utils import as_date, as_str_id
from devicehub.models.common import DocumentResponse
from devicehub.models.enum import DeviceCondition


class ReturnRequest(Document):
    """Closes an active loan. One per borrow request."""
    borrow_request_id: PydanticObjectId
    # Denormalised from the borrow request for scoped listings
    user_id: PydanticObjectId
    device_id: PydanticObjectId
    return_date: datetime
    device_condition: DeviceCondition
    notes: Optional[str] = None
    processed_by: PydanticObjectId
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "return_requests"
        indexes = [
            IndexModel([("borrow_request_id", ASCENDING)], name="return_borrow_unique_index", unique=True),
            IndexModel([("user_id", ASCENDING)], name="return_user_index"),
            IndexModel([("device_condition", ASCENDING)], name="return_condition_index"),
            IndexModel([("created_at", DESCENDING)], name="return_created_at_index"),
        ]

    class Create(BaseModel):
        borrow_request_id: str
        device_condition: DeviceCondition
        notes: Optional[str] = Field(None, max_length=2000)

        @model_validator(mode="after")
        def notes_required_when_damaged(self):
            if self.notes is not None:
                self.notes = self.notes.strip() or None
            if self.device_condition == DeviceCondition.DAMAGED and not self.notes:
                raise ValueError("Notes are required when the device is damaged")
            return self

    class Response(DocumentResponse):
        borrow_request_id: str
        user_id: str
        device_id: str
        return_date: date
        device_condition: DeviceCondition
        notes: Optional[str] = None
        processed_by: str
        created_at: datetime

        @field_validator("borrow_request_id", "user_id", "device_id", "processed_by", mode="before")
        @classmethod
        def stringify_ids(cls, value):
            return as_str_id(value)

        @field_validator("return_date", mode="before")
        @classmethod
        def calendar_dates(cls, value):
            return as_date(value)
