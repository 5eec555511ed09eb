# devicehub/core/audit.py
import logging
from typing import Any, Dict, Optional

from pymongo.errors import PyMongoError

from devicehub.models.audit import AuditLog, AuditActor, AuditChanges
from devicehub.models.enum import AuditAction, AuditObjectType
from devicehub.models.user import User

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("password", "hash", "token", "secret", "api_key")
REDACTED = "[REDACTED]"


def sanitize(data: Any) -> Any:
    """Copy of `data` with values under sensitive-looking keys masked."""
    if isinstance(data, dict):
        cleaned = {}
        for key, value in data.items():
            if any(marker in str(key).lower() for marker in SENSITIVE_KEYS):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = sanitize(value)
        return cleaned
    if isinstance(data, list):
        return [sanitize(item) for item in data]
    return data


def snapshot(document) -> Dict[str, Any]:
    """JSON-safe dump of a document for the before/after fields."""
    return document.model_dump(mode="json", exclude={"revision_id"})


async def record(
    action: AuditAction,
    object_type: AuditObjectType,
    object_id: Any,
    actor: Optional[User] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    entry = AuditLog(
        action=action,
        object_type=object_type,
        object_id=str(object_id),
        actor=AuditActor(
            user_id=str(actor.id) if actor else None,
            email=actor.email if actor else None,
            role=actor.role.value if actor else None,
        ),
        changes=AuditChanges(before=sanitize(before), after=sanitize(after)),
        metadata=sanitize(metadata or {}),
    )
    try:
        await entry.insert()
    except PyMongoError as e:
        # Audit failures never fail the audited operation
        logger.error(f"Failed to write audit entry {action.value} {object_type.value}/{object_id}: {e}")
        return None
    logger.debug(f"Audit: {action.value} {object_type.value}/{object_id} by {entry.actor.email}")
    return entry
