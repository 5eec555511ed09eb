# devicehub/api/endpoints/auth.py
from datetime import timedelta

from fastapi import APIRouter, Body, Depends, Request, status
from loguru import logger

from devicehub.api.responses import dump, ok
from devicehub.core import audit
from devicehub.core.clock import utcnow
from devicehub.core.config import ACCESS_TOKEN_EXPIRE_MINUTES, REMEMBER_ME_EXPIRE_MINUTES
from devicehub.core.errors import Conflict, Forbidden, Unauthorized, ValidationFailed
from devicehub.core.lookups import get_or_404
from devicehub.core.rate_limiter import limiter
from devicehub.core.security import (
    create_user_token,
    get_current_active_user,
    get_current_user,
    get_password_hash,
    verify_password,
)
from devicehub.models.department import Department
from devicehub.models.enum import AuditAction, AuditObjectType
from devicehub.models.user import User, UserRole

router = APIRouter(tags=["Authentication"])


def _session_payload(user: User, remember_me: bool = False) -> dict:
    minutes = REMEMBER_ME_EXPIRE_MINUTES if remember_me else ACCESS_TOKEN_EXPIRE_MINUTES
    return {
        "token": create_user_token(user, timedelta(minutes=minutes)),
        "user": dump(User.Response, user),
        "must_change_password": user.must_change_password,
    }


@router.post("/login")
@limiter.limit("10/minute")
async def login(request: Request, credentials: User.Login = Body(...)):
    user = await User.find_one({"email": credentials.email})
    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Failed login for '{credentials.email}'.")
        raise Unauthorized("Invalid email or password")
    if not user.is_active:
        raise Forbidden("Account is locked. Please contact an administrator.")

    user.last_login_at = utcnow()
    await user.save()
    logger.info(f"User '{user.email}' logged in.")
    return ok(_session_payload(user, credentials.remember_me), "Login successful")


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def signup(request: Request, user_in: User.Signup = Body(...)):
    department = await get_or_404(Department, user_in.department_id, "Department")
    if await User.find_one({"email": user_in.email}):
        raise Conflict("Email already registered")

    user = User(
        name=user_in.name,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        department_id=department.id,
        role=UserRole.USER,
    )
    await user.insert()
    logger.info(f"New user signed up: '{user.email}'.")
    await audit.record(AuditAction.CREATE, AuditObjectType.USER, user.id, user, after=audit.snapshot(user))
    return ok(_session_payload(user), "Account created")


@router.get("/me")
async def read_me(current_user: User = Depends(get_current_user)):
    # Locked accounts may still see their own profile
    return ok(dump(User.Response, current_user))


@router.post("/change-password")
async def change_password(
    payload: User.ChangePassword = Body(...),
    current_user: User = Depends(get_current_active_user),
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise ValidationFailed("Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise ValidationFailed("New password must be different from the current password")

    current_user.hashed_password = get_password_hash(payload.new_password)
    current_user.must_change_password = False
    current_user.updated_at = utcnow()
    await current_user.save()
    await audit.record(AuditAction.PASSWORD_RESET, AuditObjectType.USER, current_user.id, current_user,
                       metadata={"self_service": True})
    return ok(message="Password changed")
