# devicehub/api/api.py
from fastapi import APIRouter

from devicehub.api.endpoints import (
    audit,
    auth,
    borrow,
    departments,
    devices,
    health,
    notifications,
    renewals,
    returns,
    users,
)

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(auth.router, prefix="/auth")
api_router.include_router(users.router, prefix="/users")
api_router.include_router(departments.router, prefix="/departments")
api_router.include_router(devices.router, prefix="/devices")
api_router.include_router(borrow.router, prefix="/borrow")
api_router.include_router(renewals.router, prefix="/renewals")
api_router.include_router(returns.router, prefix="/returns")
api_router.include_router(notifications.router, prefix="/notifications")
api_router.include_router(audit.router, prefix="/audit")
