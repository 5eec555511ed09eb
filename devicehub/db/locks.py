# devicehub/db/locks.py
import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from devicehub.core.clock import utcnow
from devicehub.core.config import DEVICE_LOCK_TIMEOUT_SECONDS, DEVICE_LOCK_STALE_SECONDS
from devicehub.core.errors import Conflict
from devicehub.models.lock import DeviceLock

logger = logging.getLogger(__name__)

_INITIAL_BACKOFF = 0.02
_MAX_BACKOFF = 0.25


@asynccontextmanager
async def device_lock(
    device_id: ObjectId,
    timeout: Optional[float] = None,
    stale_after: Optional[float] = None,
):
    """Serialise check-then-write sequences on one device across workers.

    Acquire inserts a document keyed by the device id; a duplicate key means
    someone else holds it. Locks older than `stale_after` seconds belong to a
    crashed worker and are taken over.
    """
    timeout = DEVICE_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    stale_after = DEVICE_LOCK_STALE_SECONDS if stale_after is None else stale_after
    collection = DeviceLock.get_motor_collection()
    owner = uuid.uuid4().hex
    deadline = time.monotonic() + timeout
    backoff = _INITIAL_BACKOFF

    while True:
        try:
            await collection.insert_one({"_id": device_id, "owner": owner, "acquired_at": utcnow()})
            break
        except DuplicateKeyError:
            stale_before = utcnow() - timedelta(seconds=stale_after)
            taken_over = await collection.delete_one({"_id": device_id, "acquired_at": {"$lt": stale_before}})
            if taken_over.deleted_count:
                logger.warning(f"Removed stale lock on device {device_id}")
                continue
            if time.monotonic() >= deadline:
                logger.warning(f"Timed out waiting for lock on device {device_id}")
                raise Conflict("Device is busy, please retry")
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, _MAX_BACKOFF)

    logger.debug(f"Lock acquired on device {device_id} by {owner}")
    try:
        yield
    finally:
        await collection.delete_one({"_id": device_id, "owner": owner})
        logger.debug(f"Lock released on device {device_id} by {owner}")
