# devicehub/api/endpoints/health.py
from fastapi import APIRouter
from loguru import logger
from pymongo.errors import PyMongoError

from devicehub.api.responses import ok
from devicehub.db.database import ping_db

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    try:
        database = "ok" if await ping_db() else "not_initialized"
    except PyMongoError as e:
        logger.error(f"MongoDB ping failed: {e}")
        database = "unavailable"
    return ok({"status": "ok", "database": database})
