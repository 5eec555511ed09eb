# devicehub/models/borrow.py
from typing import Optional
from datetime import date, datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel, ASCENDING, DESCENDING

from devicehub.core.clock import utcnow
from devicehub.core.utils import as_date, as_str_id
from devicehub.models.common import DocumentResponse, non_blank
from devicehub.models.enum import BorrowStatus


class BorrowRequest(Document):
    """A user's request to hold a device for an inclusive range of calendar days.

    start_date/end_date are stored as midnight datetimes. Records are never
    deleted; status only moves through the lifecycle table.
    """
    device_id: PydanticObjectId
    user_id: PydanticObjectId
    approved_by: Optional[PydanticObjectId] = None
    start_date: datetime
    end_date: datetime
    reason: str
    status: BorrowStatus = Field(default=BorrowStatus.PENDING)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "borrow_requests"
        indexes = [
            IndexModel(
                [("device_id", ASCENDING), ("status", ASCENDING), ("start_date", ASCENDING)],
                name="borrow_device_status_start_index",
            ),
            IndexModel([("user_id", ASCENDING)], name="borrow_user_index"),
            IndexModel([("status", ASCENDING), ("end_date", ASCENDING)], name="borrow_status_end_index"),
            IndexModel([("created_at", DESCENDING)], name="borrow_created_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        device_id: str
        start_date: date
        end_date: date
        reason: str = Field(..., max_length=1000)

        check_reason = field_validator("reason", mode="before")(non_blank)

    class StatusUpdate(BaseModel):
        # Kept as a plain string so an unknown value is reported as "Invalid status"
        status: str

    class Response(DocumentResponse):
        device_id: str
        user_id: str
        approved_by: Optional[str] = None
        start_date: date
        end_date: date
        reason: str
        status: BorrowStatus
        created_at: datetime
        updated_at: datetime

        @field_validator("device_id", "user_id", "approved_by", mode="before")
        @classmethod
        def stringify_ids(cls, value):
            return as_str_id(value)

        @field_validator("start_date", "end_date", mode="before")
        @classmethod
        def calendar_dates(cls, value):
            return as_date(value)
