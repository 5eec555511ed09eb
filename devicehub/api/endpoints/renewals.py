# devicehub/api/endpoints/renewals.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from devicehub.api.responses import dump, dump_many, ok
from devicehub.core.clock import Clock, get_clock
from devicehub.core.errors import ValidationFailed
from devicehub.core.lookups import get_borrow_request_or_404, get_renewal_or_404
from devicehub.core.policy import Action, authorize, owner_filter
from devicehub.core.rate_limiter import limiter
from devicehub.core.renewals import create_renewal_request, transition_renewal_status
from devicehub.core.security import get_current_active_user
from devicehub.models.enum import RenewalStatus
from devicehub.models.renewal import RenewalRequest
from devicehub.models.user import User

router = APIRouter(tags=["Renewal Requests"])


@router.get("", summary="List renewal requests")
async def list_renewals(
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
):
    query = owner_filter(current_user)
    if status_filter:
        try:
            query["status"] = RenewalStatus(status_filter).value
        except ValueError:
            raise ValidationFailed("Invalid status")
    renewals = await RenewalRequest.find(query).sort("-created_at").to_list()
    return ok(dump_many(RenewalRequest.Response, renewals))


@router.get("/borrow/{borrow_id}", summary="Renewal history of one loan")
async def list_renewals_for_loan(
    borrow_id: str,
    current_user: User = Depends(get_current_active_user),
):
    borrow_request = await get_borrow_request_or_404(borrow_id)
    authorize(current_user, Action.VIEW_REQUEST, borrow_request.user_id)
    renewals = await RenewalRequest.find({"borrow_request_id": borrow_request.id}).sort("-created_at").to_list()
    return ok(dump_many(RenewalRequest.Response, renewals))


@router.get("/{renewal_id}", summary="Get a renewal request")
async def read_renewal(
    renewal_id: str,
    current_user: User = Depends(get_current_active_user),
):
    renewal = await get_renewal_or_404(renewal_id)
    authorize(current_user, Action.VIEW_REQUEST, renewal.user_id)
    return ok(dump(RenewalRequest.Response, renewal))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Ask to extend an active loan")
@limiter.limit("30/hour")
async def submit_renewal(
    request: Request,
    payload: RenewalRequest.Create = Body(...),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    renewal = await create_renewal_request(payload, current_user, clock)
    return ok(dump(RenewalRequest.Response, renewal), "Renewal request created")


@router.patch("/{renewal_id}/status", summary="Approve or reject a renewal (admin)")
async def update_renewal_status(
    renewal_id: str,
    payload: RenewalRequest.StatusUpdate = Body(...),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    renewal = await transition_renewal_status(renewal_id, payload.status, current_user, clock)
    return ok(dump(RenewalRequest.Response, renewal), f"Renewal request {renewal.status.value}")
