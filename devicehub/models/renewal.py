# devicehub/models/renewal.py
from typing import Optional
from datetime import date, datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel, ASCENDING, DESCENDING

from devicehub.core.clock import utcnow
from devicehub.core.utils import as_date, as_str_id
from devicehub.models.common import DocumentResponse, non_blank
from devicehub.models.enum import RenewalStatus


class RenewalRequest(Document):
    borrow_request_id: PydanticObjectId
    user_id: PydanticObjectId
    current_end_date: datetime
    requested_end_date: datetime
    reason: str
    status: RenewalStatus = Field(default=RenewalStatus.PENDING)
    reviewed_by: Optional[PydanticObjectId] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "renewal_requests"
        indexes = [
            IndexModel([("borrow_request_id", ASCENDING), ("status", ASCENDING)], name="renewal_borrow_status_index"),
            IndexModel([("user_id", ASCENDING)], name="renewal_user_index"),
            IndexModel([("created_at", DESCENDING)], name="renewal_created_at_index"),
        ]

    class Create(BaseModel):
        borrow_request_id: str
        requested_end_date: date
        reason: str = Field(..., max_length=1000)

        check_reason = field_validator("reason", mode="before")(non_blank)

    class StatusUpdate(BaseModel):
        status: str

    class Response(DocumentResponse):
        borrow_request_id: str
        user_id: str
        current_end_date: date
        requested_end_date: date
        reason: str
        status: RenewalStatus
        reviewed_by: Optional[str] = None
        reviewed_at: Optional[datetime] = None
        created_at: datetime

        @field_validator("borrow_request_id", "user_id", "reviewed_by", mode="before")
        @classmethod
        def stringify_ids(cls, value):
            return as_str_id(value)

        @field_validator("current_end_date", "requested_end_date", mode="before")
        @classmethod
        def calendar_dates(cls, value):
            return as_date(value)
