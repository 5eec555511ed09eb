# devicehub/core/notifications.py
import logging
from datetime import datetime
from typing import Optional, List

from bson import ObjectId
from pymongo.errors import PyMongoError

from devicehub.core.clock import utcnow
from devicehub.models.notification import Notification
from devicehub.models.enum import NotificationType
from devicehub.models.user import User, UserRole

logger = logging.getLogger(__name__)


async def notify(
    user_id: ObjectId,
    type: NotificationType,
    title: str,
    message: str,
    link: Optional[str] = None,
    related_request_id: Optional[ObjectId] = None,
    related_device_id: Optional[ObjectId] = None,
    created_at: Optional[datetime] = None,
) -> Optional[Notification]:
    """Store an in-app notification. Delivery failures are logged, never raised to the caller."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        related_request_id=related_request_id,
        related_device_id=related_device_id,
        created_at=created_at or utcnow(),
    )
    try:
        await notification.insert()
    except PyMongoError as e:
        logger.error(f"Failed to store {type.value} notification for user {user_id}: {e}")
        return None
    return notification


async def admin_ids() -> List[ObjectId]:
    admins = await User.find(
        {"role": {"$in": [UserRole.ADMIN.value, UserRole.SUPERUSER.value]}, "is_active": True}
    ).to_list()
    return [a.id for a in admins]


async def notify_admins(
    type: NotificationType,
    title: str,
    message: str,
    link: Optional[str] = None,
    related_request_id: Optional[ObjectId] = None,
    related_device_id: Optional[ObjectId] = None,
    exclude_user_id: Optional[ObjectId] = None,
) -> int:
    sent = 0
    for admin_id in await admin_ids():
        if exclude_user_id is not None and admin_id == exclude_user_id:
            continue
        if await notify(admin_id, type, title, message, link, related_request_id, related_device_id):
            sent += 1
    logger.debug(f"Sent {type.value} notification to {sent} admin(s)")
    return sent
