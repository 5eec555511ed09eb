# devicehub/models/notification.py
from typing import Optional
from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field, field_validator
from pymongo import IndexModel, ASCENDING, DESCENDING

from devicehub.core.clock import utcnow
from devicehub.core.utils import as_str_id
from devicehub.models.common import DocumentResponse
from devicehub.models.enum import NotificationType


class Notification(Document):
    user_id: PydanticObjectId
    type: NotificationType = Field(default=NotificationType.INFO)
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool = Field(default=False)
    related_request_id: Optional[PydanticObjectId] = None
    related_device_id: Optional[PydanticObjectId] = None
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "notifications"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("is_read", ASCENDING)], name="notification_user_read_index"),
            IndexModel([("created_at", DESCENDING)], name="notification_created_at_index"),
        ]

    class Response(DocumentResponse):
        type: NotificationType
        title: str
        message: str
        link: Optional[str] = None
        is_read: bool
        related_request_id: Optional[str] = None
        related_device_id: Optional[str] = None
        created_at: datetime

        @field_validator("related_request_id", "related_device_id", mode="before")
        @classmethod
        def stringify_ids(cls, value):
            return as_str_id(value)
