import pytest

from conftest import auth_headers
from devicehub.core.notifications import notify, notify_admins
from devicehub.models.enum import NotificationType
from devicehub.models.notification import Notification


@pytest.fixture
async def inbox(user):
    return [
        await notify(user.id, NotificationType.INFO, f"Note {n}", "Hello")
        for n in range(3)
    ]


async def test_list_own_notifications(client, user, other_user, inbox):
    await notify(other_user.id, NotificationType.INFO, "Not yours", "Hello")
    response = await client.get("/api/notifications", headers=auth_headers(user))
    assert len(response.json()["data"]) == 3


async def test_unread_count_and_mark_read(client, user, inbox):
    headers = auth_headers(user)
    assert (await client.get("/api/notifications/unread-count", headers=headers)).json()["data"] == {"count": 3}

    response = await client.patch(f"/api/notifications/{inbox[0].id}/read", headers=headers)
    assert response.json()["data"]["is_read"] is True
    assert (await client.get("/api/notifications/unread-count", headers=headers)).json()["data"] == {"count": 2}

    unread = await client.get("/api/notifications", params={"unread_only": True}, headers=headers)
    assert len(unread.json()["data"]) == 2

    response = await client.patch("/api/notifications/read-all", headers=headers)
    assert response.json()["data"] == {"updated": 2}
    assert (await client.get("/api/notifications/unread-count", headers=headers)).json()["data"] == {"count": 0}


async def test_other_users_notifications_are_not_found(client, other_user, inbox):
    headers = auth_headers(other_user)
    assert (await client.patch(f"/api/notifications/{inbox[0].id}/read", headers=headers)).status_code == 404
    assert (await client.delete(f"/api/notifications/{inbox[0].id}", headers=headers)).status_code == 404


async def test_delete_and_clear(client, user, inbox):
    headers = auth_headers(user)
    assert (await client.delete(f"/api/notifications/{inbox[0].id}", headers=headers)).status_code == 200
    response = await client.delete("/api/notifications", headers=headers)
    assert response.json()["data"] == {"deleted": 2}
    assert await Notification.find({"user_id": user.id}).count() == 0


async def test_notify_admins_skips_users_and_excluded(db, user, admin, superuser, make_user):
    await make_user(role=admin.role, is_active=False)
    await notify_admins(NotificationType.INFO, "Heads up", "Hello", exclude_user_id=superuser.id)
    recipients = {n.user_id for n in await Notification.find_all().to_list()}
    assert recipients == {admin.id}
