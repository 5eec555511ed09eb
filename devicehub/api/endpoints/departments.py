# devicehub/api/endpoints/departments.py
from fastapi import APIRouter, Body, Depends, status
from loguru import logger

from devicehub.api.responses import dump, dump_many, ok
from devicehub.core import audit
from devicehub.core.clock import utcnow
from devicehub.core.errors import Conflict, ValidationFailed
from devicehub.core.lookups import get_department_or_404
from devicehub.core.policy import Action
from devicehub.core.security import get_current_active_user, require_action
from devicehub.models.department import Department
from devicehub.models.device import Device
from devicehub.models.enum import AuditAction, AuditObjectType
from devicehub.models.user import User

router = APIRouter(tags=["Departments"])

require_department_admin = require_action(Action.MANAGE_DEPARTMENTS)


@router.get("/names", summary="Department names (public, used by the signup form)")
async def read_department_names():
    departments = await Department.find_all().sort("+name").to_list()
    return ok(dump_many(Department.NameResponse, departments))


@router.get("")
async def read_departments(current_user: User = Depends(get_current_active_user)):
    departments = await Department.find_all().sort("+name").to_list()
    return ok(dump_many(Department.Response, departments))


@router.get("/{department_id}")
async def read_department(department_id: str, current_user: User = Depends(get_current_active_user)):
    department = await get_department_or_404(department_id)
    return ok(dump(Department.Response, department))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_department(
    department_in: Department.Create = Body(...),
    current_user: User = Depends(require_department_admin),
):
    if await Department.find_one({"code": department_in.code}):
        raise Conflict("Department code already exists")
    department = Department(name=department_in.name, code=department_in.code)
    await department.insert()
    logger.info(f"'{current_user.email}' created department {department.code}.")
    await audit.record(AuditAction.CREATE, AuditObjectType.DEPARTMENT, department.id, current_user,
                       after=audit.snapshot(department))
    return ok(dump(Department.Response, department), "Department created")


@router.put("/{department_id}")
async def update_department(
    department_id: str,
    department_in: Department.Update = Body(...),
    current_user: User = Depends(require_department_admin),
):
    department = await get_department_or_404(department_id)
    before = audit.snapshot(department)
    if department_in.code and department_in.code != department.code:
        if await Department.find_one({"code": department_in.code}):
            raise Conflict("Department code already exists")
        department.code = department_in.code
    if department_in.name:
        department.name = department_in.name
    department.updated_at = utcnow()
    await department.save()
    await audit.record(AuditAction.UPDATE, AuditObjectType.DEPARTMENT, department.id, current_user,
                       before=before, after=audit.snapshot(department))
    return ok(dump(Department.Response, department), "Department updated")


@router.delete("/{department_id}")
async def delete_department(
    department_id: str,
    current_user: User = Depends(require_department_admin),
):
    department = await get_department_or_404(department_id)
    in_use = (
        await User.find_one({"department_id": department.id})
        or await Device.find_one({"department_id": department.id})
    )
    if in_use:
        raise ValidationFailed("Cannot delete department with assigned users or devices")
    before = audit.snapshot(department)
    await department.delete()
    await audit.record(AuditAction.DELETE, AuditObjectType.DEPARTMENT, department_id, current_user, before=before)
    return ok(message="Department deleted")
