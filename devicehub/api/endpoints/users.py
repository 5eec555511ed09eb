# devicehub/api/endpoints/users.py
from fastapi import APIRouter, Body, Depends, Query, Request, status
from loguru import logger

from devicehub.api.responses import dump, dump_many, ok
from devicehub.core import audit
from devicehub.core.clock import utcnow
from devicehub.core.errors import Conflict, Forbidden, ValidationFailed
from devicehub.core.lookups import get_department_or_404, get_user_or_404
from devicehub.core.policy import Action, authorize, can_assign_role, is_admin
from devicehub.core.rate_limiter import limiter
from devicehub.core.security import get_current_active_user, get_password_hash, require_admin
from devicehub.models.borrow import BorrowRequest
from devicehub.models.enum import AuditAction, AuditObjectType, BLOCKING_STATUSES
from devicehub.models.user import User

router = APIRouter(tags=["Users"])


@router.get("", summary="List users (admin)")
async def read_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(200, ge=1, le=1000),
    current_user: User = Depends(require_admin),
):
    users = await User.find_all(skip=skip, limit=limit).sort("+name").to_list()
    return ok(dump_many(User.Response, users))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a user (admin)")
@limiter.limit("30/hour")
async def create_user_by_admin(
    request: Request,
    user_in: User.AdminCreate = Body(...),
    current_user: User = Depends(require_admin),
):
    if not can_assign_role(current_user, user_in.role):
        raise Forbidden("Admins can only create user accounts")
    if await User.find_one({"email": user_in.email}):
        raise Conflict("Email already exists")
    department_id = None
    if user_in.department_id:
        department_id = (await get_department_or_404(user_in.department_id)).id

    user = User(
        name=user_in.name,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        department_id=department_id,
        role=user_in.role,
        must_change_password=True,
    )
    await user.insert()
    logger.info(f"'{current_user.email}' created user '{user.email}' with role {user.role.value}.")
    await audit.record(AuditAction.CREATE, AuditObjectType.USER, user.id, current_user, after=audit.snapshot(user))
    return ok(dump(User.Response, user), "User created")


@router.get("/{user_id}", summary="Get a user")
async def read_user(user_id: str, current_user: User = Depends(get_current_active_user)):
    user = await get_user_or_404(user_id)
    authorize(current_user, Action.VIEW_USER, user.id)
    return ok(dump(User.Response, user))


@router.put("/{user_id}", summary="Update a user")
async def update_user(
    user_id: str,
    user_in: User.Update = Body(...),
    current_user: User = Depends(get_current_active_user),
):
    user = await get_user_or_404(user_id)
    authorize(current_user, Action.EDIT_USER, user.id)
    before = audit.snapshot(user)

    if user_in.role is not None and user_in.role != user.role:
        if not is_admin(current_user):
            raise Forbidden("You cannot change your own role")
        if not can_assign_role(current_user, user_in.role) or not can_assign_role(current_user, user.role):
            raise Forbidden("Admins cannot assign admin or superuser roles")
        user.role = user_in.role
    if user_in.name is not None:
        user.name = user_in.name
    if "department_id" in user_in.model_fields_set:
        user.department_id = (
            (await get_department_or_404(user_in.department_id)).id if user_in.department_id else None
        )

    user.updated_at = utcnow()
    await user.save()
    await audit.record(AuditAction.UPDATE, AuditObjectType.USER, user.id, current_user,
                       before=before, after=audit.snapshot(user))
    return ok(dump(User.Response, user), "User updated")


@router.patch("/{user_id}/password", summary="Reset a user's password (superuser)")
async def reset_password(
    user_id: str,
    payload: User.PasswordReset = Body(...),
    current_user: User = Depends(get_current_active_user),
):
    authorize(current_user, Action.RESET_PASSWORD)
    user = await get_user_or_404(user_id)
    user.hashed_password = get_password_hash(payload.new_password)
    user.must_change_password = True
    user.updated_at = utcnow()
    await user.save()
    logger.info(f"'{current_user.email}' reset the password of '{user.email}'.")
    await audit.record(AuditAction.PASSWORD_RESET, AuditObjectType.USER, user.id, current_user)
    return ok(message="Password reset")


@router.patch("/{user_id}/status", summary="Lock or unlock an account (superuser)")
async def toggle_user_status(
    user_id: str,
    payload: User.StatusUpdate = Body(...),
    current_user: User = Depends(get_current_active_user),
):
    authorize(current_user, Action.TOGGLE_USER_STATUS)
    user = await get_user_or_404(user_id)
    if user.id == current_user.id:
        raise ValidationFailed("You cannot change your own account status")

    user.is_active = payload.is_active
    user.updated_at = utcnow()
    await user.save()
    action = AuditAction.ACCOUNT_UNLOCK if payload.is_active else AuditAction.ACCOUNT_LOCK
    logger.info(f"'{current_user.email}' set is_active={payload.is_active} for '{user.email}'.")
    await audit.record(action, AuditObjectType.USER, user.id, current_user)
    return ok(dump(User.Response, user), "Account unlocked" if payload.is_active else "Account locked")


@router.delete("/{user_id}", summary="Delete a user (superuser)")
async def delete_user(user_id: str, current_user: User = Depends(get_current_active_user)):
    authorize(current_user, Action.DELETE_USER)
    user = await get_user_or_404(user_id)
    if user.id == current_user.id:
        raise ValidationFailed("You cannot delete your own account")
    open_request = await BorrowRequest.find_one(
        {"user_id": user.id, "status": {"$in": [s.value for s in BLOCKING_STATUSES]}}
    )
    if open_request:
        raise ValidationFailed("Cannot delete user with open borrow requests")

    before = audit.snapshot(user)
    await user.delete()
    logger.info(f"'{current_user.email}' deleted user '{before['email']}'.")
    await audit.record(AuditAction.DELETE, AuditObjectType.USER, user_id, current_user, before=before)
    return ok(message="User deleted")
