# devicehub/api/endpoints/borrow.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from loguru import logger

from devicehub.api.responses import dump, dump_many, ok
from devicehub.core.booking import create_borrow_request, transition_borrow_status
from devicehub.core.clock import Clock, get_clock
from devicehub.core.lifecycle import parse_status
from devicehub.core.lookups import get_borrow_request_or_404
from devicehub.core.policy import Action, authorize, owner_filter
from devicehub.core.rate_limiter import limiter
from devicehub.core.security import get_current_active_user
from devicehub.core.utils import parse_object_id
from devicehub.models.borrow import BorrowRequest
from devicehub.models.user import User

router = APIRouter(tags=["Borrow Requests"])


@router.get("", summary="List borrow requests")
async def list_borrow_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    device_id: Optional[str] = Query(None),
    current_user: User = Depends(get_current_active_user),
):
    """Admins see every request, other users only their own."""
    query = owner_filter(current_user)
    if status_filter:
        query["status"] = parse_status(status_filter).value
    if device_id:
        query["device_id"] = parse_object_id(device_id, "device ID")
    requests = await BorrowRequest.find(query).sort("-created_at").to_list()
    return ok(dump_many(BorrowRequest.Response, requests))


@router.get("/user/{user_id}", summary="List borrow requests of one user")
async def list_user_borrow_requests(
    user_id: str,
    current_user: User = Depends(get_current_active_user),
):
    owner_id = parse_object_id(user_id, "user ID")
    authorize(current_user, Action.VIEW_USER, owner_id)
    requests = await BorrowRequest.find({"user_id": owner_id}).sort("-created_at").to_list()
    return ok(dump_many(BorrowRequest.Response, requests))


@router.get("/{request_id}", summary="Get a borrow request")
async def read_borrow_request(
    request_id: str,
    current_user: User = Depends(get_current_active_user),
):
    borrow_request = await get_borrow_request_or_404(request_id)
    authorize(current_user, Action.VIEW_REQUEST, borrow_request.user_id)
    return ok(dump(BorrowRequest.Response, borrow_request))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Request a device")
@limiter.limit("30/hour")
async def submit_borrow_request(
    request: Request,
    payload: BorrowRequest.Create = Body(...),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    logger.info(f"User '{current_user.email}' submitting borrow request for device '{payload.device_id}'.")
    borrow_request = await create_borrow_request(payload, current_user, clock)
    return ok(dump(BorrowRequest.Response, borrow_request), "Borrow request created")


@router.patch("/{request_id}/status", summary="Change the status of a borrow request (admin)")
async def update_borrow_status(
    request_id: str,
    payload: BorrowRequest.StatusUpdate = Body(...),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    borrow_request = await transition_borrow_status(request_id, payload.status, current_user, clock)
    return ok(dump(BorrowRequest.Response, borrow_request), f"Request {borrow_request.status.value}")
