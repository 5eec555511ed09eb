# devicehub/api/endpoints/audit.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from devicehub.api.responses import dump_many, ok
from devicehub.core.policy import Action
from devicehub.core.security import require_action
from devicehub.models.audit import AuditLog
from devicehub.models.enum import AuditAction, AuditObjectType
from devicehub.models.user import User

router = APIRouter(tags=["Audit"])

require_auditor = require_action(Action.VIEW_AUDIT)


@router.get("", summary="Search the audit trail (admin)")
async def read_audit_logs(
    object_type: Optional[AuditObjectType] = Query(None),
    object_id: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    current_user: User = Depends(require_auditor),
):
    query = {}
    if object_type:
        query["object_type"] = object_type.value
    if object_id:
        query["object_id"] = object_id
    if actor_id:
        query["actor.user_id"] = actor_id
    if action:
        query["action"] = action.value
    entries = await AuditLog.find(query).sort("-timestamp").limit(limit).to_list()
    return ok(dump_many(AuditLog.Response, entries))


@router.get("/object/{object_type}/{object_id}", summary="History of one object (admin)")
async def read_object_history(
    object_type: AuditObjectType,
    object_id: str,
    current_user: User = Depends(require_auditor),
):
    entries = await AuditLog.find(
        {"object_type": object_type.value, "object_id": object_id}
    ).sort("-timestamp").to_list()
    return ok(dump_many(AuditLog.Response, entries))
