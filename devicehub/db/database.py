# devicehub/db/database.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

import motor.motor_asyncio
from beanie import init_beanie

from devicehub.core.config import MONGODB_URL, DATABASE_NAME, MONGODB_TRANSACTIONS
from devicehub.models.user import User
from devicehub.models.department import Department
from devicehub.models.device import Device
from devicehub.models.borrow import BorrowRequest
from devicehub.models.renewal import RenewalRequest
from devicehub.models.return_request import ReturnRequest
from devicehub.models.notification import Notification
from devicehub.models.audit import AuditLog
from devicehub.models.lock import DeviceLock

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [
    User,
    Department,
    Device,
    BorrowRequest,
    RenewalRequest,
    ReturnRequest,
    Notification,
    AuditLog,
    DeviceLock,
]

_client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None


async def init_db(client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None):
    """Connect to MongoDB and initialise Beanie for every document model."""
    global _client
    logger.info("Connecting to MongoDB...")
    _client = client or motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL)
    database = _client[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info("Beanie initialization complete for all models.")
    return database


def get_client() -> Optional[motor.motor_asyncio.AsyncIOMotorClient]:
    return _client


async def ping_db() -> bool:
    if _client is None:
        return False
    await _client.admin.command("ping")
    return True


def close_db():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed.")


async def compare_and_set(model, document_id, expected: dict, changes: dict, session=None) -> bool:
    """Apply `changes` only while the stored document still matches `expected`."""
    result = await model.get_motor_collection().update_one(
        {"_id": document_id, **expected},
        {"$set": changes},
        session=session,
    )
    return result.modified_count == 1


@asynccontextmanager
async def transaction():
    """Yields a session bound to a multi-document transaction, or None.

    Transactions need a replica set, so they are opt-in via MONGODB_TRANSACTIONS.
    Without them every write is still guarded by the device lock and
    compare-and-set status updates.
    """
    if not MONGODB_TRANSACTIONS or _client is None:
        yield None
        return
    async with await _client.start_session() as session:
        async with session.start_transaction():
            yield session
