# devicehub/models/audit.py
from typing import Optional, Dict, Any
from datetime import datetime

from beanie import Document
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING

from devicehub.core.clock import utcnow
from devicehub.models.common import DocumentResponse
from devicehub.models.enum import AuditAction, AuditObjectType


class AuditActor(BaseModel):
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class AuditChanges(BaseModel):
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class AuditLog(Document):
    action: AuditAction
    object_type: AuditObjectType
    object_id: str
    actor: AuditActor = Field(default_factory=AuditActor)
    changes: AuditChanges = Field(default_factory=AuditChanges)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "audit_logs"
        indexes = [
            IndexModel([("object_type", ASCENDING), ("object_id", ASCENDING)], name="audit_object_index"),
            IndexModel([("actor.user_id", ASCENDING)], name="audit_actor_index"),
            IndexModel([("timestamp", DESCENDING)], name="audit_timestamp_index"),
        ]

    class Response(DocumentResponse):
        action: AuditAction
        object_type: AuditObjectType
        object_id: str
        actor: AuditActor
        changes: AuditChanges
        metadata: Dict[str, Any]
        timestamp: datetime
