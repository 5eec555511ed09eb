from datetime import date

import pytest

from conftest import auth_headers, refresh
from devicehub.models.enum import BorrowStatus, RenewalStatus
from devicehub.models.renewal import RenewalRequest


@pytest.fixture
async def loan(device, user, make_borrow):
    return await make_borrow(device, user, date(2030, 3, 1), date(2030, 3, 15), BorrowStatus.ACTIVE)


async def request_renewal(client, actor, loan, until="2030-03-20", reason="Project extended"):
    return await client.post(
        "/api/renewals",
        json={"borrow_request_id": str(loan.id), "requested_end_date": until, "reason": reason},
        headers=auth_headers(actor),
    )


async def review(client, actor, renewal_id, status):
    return await client.patch(
        f"/api/renewals/{renewal_id}/status", json={"status": status}, headers=auth_headers(actor)
    )


async def test_create_renewal(client, user, loan):
    response = await request_renewal(client, user, loan)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["current_end_date"] == "2030-03-15"
    assert data["requested_end_date"] == "2030-03-20"


async def test_unknown_loan_is_404(client, user, loan):
    loan.id = type(loan.id)("0" * 24)
    response = await request_renewal(client, user, loan)
    assert response.status_code == 404


@pytest.mark.parametrize("status", [BorrowStatus.PENDING, BorrowStatus.APPROVED, BorrowStatus.RETURNED])
async def test_only_active_loans_can_be_renewed(client, user, device, make_borrow, status):
    loan = await make_borrow(device, user, date(2030, 3, 1), date(2030, 3, 15), status)
    response = await request_renewal(client, user, loan)
    assert response.status_code == 400
    assert response.json()["error"] == "Can only request renewal for active loans"


async def test_only_the_borrower_can_request_renewal(client, other_user, admin, loan):
    assert (await request_renewal(client, other_user, loan)).status_code == 403
    assert (await request_renewal(client, admin, loan)).status_code == 403


@pytest.mark.parametrize("until", ["2030-03-15", "2030-03-10"])
async def test_requested_date_must_extend_the_loan(client, user, loan, until):
    response = await request_renewal(client, user, loan, until=until)
    assert response.status_code == 400
    assert response.json()["error"] == "Requested end date must be after current end date"


async def test_second_pending_renewal_is_rejected(client, user, admin, loan):
    first = (await request_renewal(client, user, loan)).json()["data"]
    response = await request_renewal(client, user, loan, until="2030-03-25")
    assert response.status_code == 400
    assert "pending" in response.json()["error"]

    # Allowed again once the first one is resolved
    assert (await review(client, admin, first["id"], "rejected")).status_code == 200
    assert (await request_renewal(client, user, loan, until="2030-03-25")).status_code == 201


async def test_approval_extends_the_loan(client, user, admin, loan):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    response = await review(client, admin, renewal_id, "approved")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "approved"
    assert data["reviewed_by"] == str(admin.id)
    assert data["reviewed_at"] is not None
    assert (await refresh(loan)).end_date.date() == date(2030, 3, 20)


async def test_rejection_keeps_the_loan(client, user, admin, loan):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    assert (await review(client, admin, renewal_id, "rejected")).status_code == 200
    assert (await refresh(loan)).end_date.date() == date(2030, 3, 15)


async def test_users_cannot_review(client, user, loan):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    assert (await review(client, user, renewal_id, "approved")).status_code == 403


@pytest.mark.parametrize("status", ["pending", "done"])
async def test_review_status_must_be_a_decision(client, user, admin, loan, status):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    response = await review(client, admin, renewal_id, status)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid status"


async def test_reviewed_renewal_cannot_be_reviewed_again(client, user, admin, loan):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    await review(client, admin, renewal_id, "approved")
    response = await review(client, admin, renewal_id, "rejected")
    assert response.status_code == 400
    assert response.json()["error"] == "Can only update status of pending renewal requests"


async def test_approval_blocked_by_next_booking(client, user, other_user, admin, device, loan, make_borrow):
    await make_borrow(device, other_user, date(2030, 3, 18), date(2030, 3, 22), BorrowStatus.APPROVED)
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    response = await review(client, admin, renewal_id, "approved")
    assert response.status_code == 400
    assert response.json()["error"] == "Device is booked for the requested renewal period"
    assert (await RenewalRequest.get(renewal_id)).status == RenewalStatus.PENDING
    assert (await refresh(loan)).end_date.date() == date(2030, 3, 15)


async def test_approval_requires_loan_still_active(client, user, admin, loan):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    await client.post(
        "/api/returns",
        json={"borrow_request_id": str(loan.id), "device_condition": "good"},
        headers=auth_headers(user),
    )
    response = await review(client, admin, renewal_id, "approved")
    assert response.status_code == 400


async def test_borrower_is_notified_of_decision(client, user, admin, loan):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]
    await review(client, admin, renewal_id, "approved")
    response = await client.get("/api/notifications", headers=auth_headers(user))
    assert [n["type"] for n in response.json()["data"]] == ["renewal_approved"]


async def test_listing_and_history(client, user, other_user, admin, loan):
    renewal_id = (await request_renewal(client, user, loan)).json()["data"]["id"]

    assert len((await client.get("/api/renewals", headers=auth_headers(user))).json()["data"]) == 1
    assert (await client.get("/api/renewals", headers=auth_headers(other_user))).json()["data"] == []
    pending = await client.get("/api/renewals", params={"status": "pending"}, headers=auth_headers(admin))
    assert [r["id"] for r in pending.json()["data"]] == [renewal_id]

    history = await client.get(f"/api/renewals/borrow/{loan.id}", headers=auth_headers(user))
    assert [r["id"] for r in history.json()["data"]] == [renewal_id]
    assert (await client.get(f"/api/renewals/{renewal_id}", headers=auth_headers(other_user))).status_code == 403
