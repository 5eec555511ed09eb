import asyncio
from datetime import date

import pytest

from conftest import auth_headers, refresh
from devicehub.models.borrow import BorrowRequest
from devicehub.models.enum import BorrowStatus, DeviceStatus


def borrow_body(device, start="2030-04-01", end="2030-04-05", reason="Client demo"):
    return {"device_id": str(device.id), "start_date": start, "end_date": end, "reason": reason}


async def submit(client, user, device, **kwargs):
    return await client.post("/api/borrow", json=borrow_body(device, **kwargs), headers=auth_headers(user))


async def set_status(client, actor, request_id, status):
    return await client.patch(
        f"/api/borrow/{request_id}/status", json={"status": status}, headers=auth_headers(actor)
    )


async def assert_device_consistent(device):
    """A device is in use exactly when one active request holds it."""
    device = await refresh(device)
    active = await BorrowRequest.find({"device_id": device.id, "status": BorrowStatus.ACTIVE.value}).count()
    assert active <= 1
    assert (device.status == DeviceStatus.INUSE) == (active == 1)


# --- Create ---

async def test_create_borrow_request(client, user, device):
    response = await submit(client, user, device)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Borrow request created"
    data = body["data"]
    assert data["status"] == "pending"
    assert data["user_id"] == str(user.id)
    assert data["start_date"] == "2030-04-01"
    assert data["end_date"] == "2030-04-05"
    # Creating a request does not take the device
    assert (await refresh(device)).status == DeviceStatus.AVAILABLE


async def test_same_day_borrow_is_allowed(client, user, device):
    response = await submit(client, user, device, start="2030-04-02", end="2030-04-02")
    assert response.status_code == 201


async def test_end_before_start_is_rejected(client, user, device):
    response = await submit(client, user, device, start="2030-04-05", end="2030-04-01")
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "End date must be after start date"}


async def test_unknown_device_is_404_before_date_check(client, user, device):
    body = borrow_body(device, start="2030-04-05", end="2030-04-01")
    body["device_id"] = "0" * 24
    response = await client.post("/api/borrow", json=body, headers=auth_headers(user))
    assert response.status_code == 404
    assert response.json()["error"] == "Device not found"


async def test_malformed_device_id_is_400(client, user, device):
    body = borrow_body(device)
    body["device_id"] = "not-an-id"
    response = await client.post("/api/borrow", json=body, headers=auth_headers(user))
    assert response.status_code == 400


@pytest.mark.parametrize("missing", ["device_id", "start_date", "end_date", "reason"])
async def test_missing_fields_are_400(client, user, device, missing):
    body = borrow_body(device)
    del body[missing]
    response = await client.post("/api/borrow", json=body, headers=auth_headers(user))
    assert response.status_code == 400
    assert missing in response.json()["error"]


async def test_blank_reason_is_400(client, user, device):
    response = await submit(client, user, device, reason="   ")
    assert response.status_code == 400


async def test_malformed_json_is_400(client, user):
    response = await client.post(
        "/api/borrow",
        content="{not json",
        headers={**auth_headers(user), "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.parametrize("status", [DeviceStatus.MAINTENANCE, DeviceStatus.INUSE, DeviceStatus.DISCARD])
async def test_unavailable_device_is_rejected(client, user, make_device, status):
    device = await make_device(status=status)
    response = await submit(client, user, device)
    assert response.status_code == 400
    assert response.json()["error"] == "Device is not available"


async def test_overlapping_request_is_rejected(client, user, other_user, device):
    assert (await submit(client, user, device, start="2030-04-01", end="2030-04-05")).status_code == 201
    response = await submit(client, other_user, device, start="2030-04-05", end="2030-04-08")
    assert response.status_code == 400
    assert response.json()["error"] == "Device is already booked for this period"


async def test_adjacent_request_is_accepted(client, user, other_user, device):
    assert (await submit(client, user, device, start="2030-04-01", end="2030-04-05")).status_code == 201
    response = await submit(client, other_user, device, start="2030-04-06", end="2030-04-08")
    assert response.status_code == 201


async def test_rejected_request_frees_the_dates(client, user, other_user, admin, device):
    first = (await submit(client, user, device)).json()["data"]
    assert (await set_status(client, admin, first["id"], "rejected")).status_code == 200
    assert (await submit(client, other_user, device)).status_code == 201


async def test_create_requires_authentication(client, device):
    response = await client.post("/api/borrow", json=borrow_body(device))
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_admins_are_notified_of_new_requests(client, user, admin, device):
    await submit(client, user, device)
    response = await client.get("/api/notifications", headers=auth_headers(admin))
    types = [n["type"] for n in response.json()["data"]]
    assert types == ["new_request"]


# --- Transitions ---

async def test_full_lifecycle_updates_device(client, user, admin, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]

    response = await set_status(client, admin, request_id, "approved")
    assert response.status_code == 200
    assert response.json()["data"]["approved_by"] == str(admin.id)
    assert (await refresh(device)).status == DeviceStatus.AVAILABLE
    await assert_device_consistent(device)

    assert (await set_status(client, admin, request_id, "active")).status_code == 200
    assert (await refresh(device)).status == DeviceStatus.INUSE
    await assert_device_consistent(device)

    assert (await set_status(client, admin, request_id, "returned")).status_code == 200
    assert (await refresh(device)).status == DeviceStatus.AVAILABLE
    await assert_device_consistent(device)


async def test_user_cannot_change_status(client, user, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]
    response = await set_status(client, user, request_id, "approved")
    assert response.status_code == 403


async def test_superuser_can_change_status(client, user, superuser, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]
    assert (await set_status(client, superuser, request_id, "approved")).status_code == 200


async def test_invalid_status_value(client, user, admin, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]
    response = await set_status(client, admin, request_id, "lost")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid status"


async def test_invalid_status_checked_before_existence(client, admin):
    response = await set_status(client, admin, "0" * 24, "lost")
    assert response.status_code == 400


async def test_unknown_request_is_404(client, admin):
    response = await set_status(client, admin, "0" * 24, "approved")
    assert response.status_code == 404


async def test_skipping_approval_is_rejected(client, user, admin, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]
    response = await set_status(client, admin, request_id, "active")
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot transition from pending to active"


@pytest.mark.parametrize("terminal", ["rejected", "returned"])
@pytest.mark.parametrize("target", ["pending", "approved", "active", "returned", "rejected"])
async def test_terminal_requests_cannot_move(client, user, device, admin, make_borrow, terminal, target):
    request = await make_borrow(device, user, date(2030, 4, 1), date(2030, 4, 5), BorrowStatus(terminal))
    response = await set_status(client, admin, request.id, target)
    assert response.status_code == 400
    assert (await refresh(request)).status == BorrowStatus(terminal)


async def test_approval_rechecks_overlap(client, user, other_user, admin, device, make_borrow):
    pending = await make_borrow(device, user, date(2030, 4, 1), date(2030, 4, 5))
    # Inserted directly, as if two requests had raced past creation
    await make_borrow(device, other_user, date(2030, 4, 3), date(2030, 4, 9), BorrowStatus.APPROVED)
    response = await set_status(client, admin, pending.id, "approved")
    assert response.status_code == 400
    assert response.json()["error"] == "Device is already booked for this period"
    assert (await refresh(pending)).status == BorrowStatus.PENDING


async def test_activation_requires_available_device(client, user, admin, make_device, make_borrow):
    device = await make_device(status=DeviceStatus.MAINTENANCE)
    approved = await make_borrow(device, user, date(2030, 4, 1), date(2030, 4, 5), BorrowStatus.APPROVED)
    response = await set_status(client, admin, approved.id, "active")
    assert response.status_code == 400
    assert response.json()["error"] == "Device is not available"


async def test_rejecting_a_request_frees_the_device(client, user, admin, make_device, make_borrow):
    device = await make_device(status=DeviceStatus.MAINTENANCE)
    approved = await make_borrow(device, user, date(2030, 4, 1), date(2030, 4, 5), BorrowStatus.APPROVED)
    assert (await set_status(client, admin, approved.id, "rejected")).status_code == 200
    assert (await refresh(device)).status == DeviceStatus.AVAILABLE


async def test_rejection_keeps_device_held_by_another_loan(client, user, other_user, admin, make_device,
                                                            make_borrow):
    device = await make_device(status=DeviceStatus.INUSE)
    await make_borrow(device, other_user, date(2030, 3, 1), date(2030, 3, 20), BorrowStatus.ACTIVE)
    pending = await make_borrow(device, user, date(2030, 4, 1), date(2030, 4, 5))
    assert (await set_status(client, admin, pending.id, "rejected")).status_code == 200
    assert (await refresh(device)).status == DeviceStatus.INUSE
    await assert_device_consistent(device)


async def test_concurrent_overlapping_requests_cannot_both_pass(client, user, other_user, device):
    responses = await asyncio.gather(
        submit(client, user, device, start="2030-04-01", end="2030-04-05"),
        submit(client, other_user, device, start="2030-04-01", end="2030-04-05"),
    )
    assert sorted(r.status_code for r in responses) == [201, 400]
    assert await BorrowRequest.find({"device_id": device.id}).count() == 1
    assert (await refresh(device)).status == DeviceStatus.AVAILABLE


async def test_owner_is_notified_of_decision(client, user, admin, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]
    await set_status(client, admin, request_id, "rejected")
    response = await client.get("/api/notifications", headers=auth_headers(user))
    assert [n["type"] for n in response.json()["data"]] == ["request_rejected"]


async def test_transition_is_audited(client, user, admin, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]
    await set_status(client, admin, request_id, "approved")
    response = await client.get(f"/api/audit/object/borrow_request/{request_id}", headers=auth_headers(admin))
    actions = [entry["action"] for entry in response.json()["data"]]
    assert sorted(actions) == ["create", "status_change"]


# --- Reads ---

async def test_listing_is_scoped_for_users(client, user, other_user, admin, make_device):
    await submit(client, user, await make_device())
    await submit(client, other_user, await make_device())

    mine = (await client.get("/api/borrow", headers=auth_headers(user))).json()["data"]
    assert [r["user_id"] for r in mine] == [str(user.id)]

    everything = (await client.get("/api/borrow", headers=auth_headers(admin))).json()["data"]
    assert len(everything) == 2


async def test_list_filters_by_status(client, user, admin, make_device):
    first = (await submit(client, user, await make_device())).json()["data"]["id"]
    await submit(client, user, await make_device())
    await set_status(client, admin, first, "approved")

    response = await client.get("/api/borrow", params={"status": "approved"}, headers=auth_headers(admin))
    assert [r["id"] for r in response.json()["data"]] == [first]


async def test_other_users_request_is_forbidden(client, user, other_user, device):
    request_id = (await submit(client, user, device)).json()["data"]["id"]
    assert (await client.get(f"/api/borrow/{request_id}", headers=auth_headers(user))).status_code == 200
    assert (await client.get(f"/api/borrow/{request_id}", headers=auth_headers(other_user))).status_code == 403


async def test_user_history_requires_self_or_admin(client, user, other_user, admin, device):
    await submit(client, user, device)
    path = f"/api/borrow/user/{user.id}"
    assert (await client.get(path, headers=auth_headers(other_user))).status_code == 403
    assert len((await client.get(path, headers=auth_headers(admin))).json()["data"]) == 1
