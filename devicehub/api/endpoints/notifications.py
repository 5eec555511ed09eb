# devicehub/api/endpoints/notifications.py
from fastapi import APIRouter, Depends, Query

from devicehub.api.responses import dump, dump_many, ok
from devicehub.core.errors import NotFound
from devicehub.core.security import get_current_active_user
from devicehub.core.utils import parse_object_id
from devicehub.models.notification import Notification
from devicehub.models.user import User

router = APIRouter(tags=["Notifications"])


async def get_own_notification_or_404(notification_id: str, user: User) -> Notification:
    """Notifications of other users are reported as missing, not forbidden."""
    object_id = parse_object_id(notification_id, "notification ID")
    notification = await Notification.find_one({"_id": object_id, "user_id": user.id})
    if notification is None:
        raise NotFound("Notification not found")
    return notification


@router.get("")
async def read_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
):
    query = {"user_id": current_user.id}
    if unread_only:
        query["is_read"] = False
    notifications = await Notification.find(query).sort("-created_at").limit(limit).to_list()
    return ok(dump_many(Notification.Response, notifications))


@router.get("/unread-count")
async def read_unread_count(current_user: User = Depends(get_current_active_user)):
    count = await Notification.find({"user_id": current_user.id, "is_read": False}).count()
    return ok({"count": count})


@router.patch("/read-all")
async def mark_all_read(current_user: User = Depends(get_current_active_user)):
    result = await Notification.get_motor_collection().update_many(
        {"user_id": current_user.id, "is_read": False},
        {"$set": {"is_read": True}},
    )
    return ok({"updated": result.modified_count}, "All notifications marked as read")


@router.patch("/{notification_id}/read")
async def mark_read(notification_id: str, current_user: User = Depends(get_current_active_user)):
    notification = await get_own_notification_or_404(notification_id, current_user)
    notification.is_read = True
    await notification.save()
    return ok(dump(Notification.Response, notification))


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, current_user: User = Depends(get_current_active_user)):
    notification = await get_own_notification_or_404(notification_id, current_user)
    await notification.delete()
    return ok(message="Notification deleted")


@router.delete("")
async def clear_notifications(current_user: User = Depends(get_current_active_user)):
    result = await Notification.get_motor_collection().delete_many({"user_id": current_user.id})
    return ok({"deleted": result.deleted_count}, "Notifications cleared")
