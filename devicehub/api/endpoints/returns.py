# devicehub/api/endpoints/returns.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from devicehub.api.responses import dump, dump_many, ok
from devicehub.core.clock import Clock, get_clock
from devicehub.core.errors import ValidationFailed
from devicehub.core.lookups import get_return_or_404
from devicehub.core.policy import Action, authorize, owner_filter
from devicehub.core.rate_limiter import limiter
from devicehub.core.returns import create_return_request
from devicehub.core.security import get_current_active_user
from devicehub.models.enum import DeviceCondition
from devicehub.models.return_request import ReturnRequest
from devicehub.models.user import User

router = APIRouter(tags=["Returns"])


@router.get("", summary="List returns")
async def list_returns(
    condition: Optional[str] = Query(None),
    current_user: User = Depends(get_current_active_user),
):
    query = owner_filter(current_user)
    if condition:
        try:
            query["device_condition"] = DeviceCondition(condition).value
        except ValueError:
            raise ValidationFailed("Invalid device condition")
    returns = await ReturnRequest.find(query).sort("-created_at").to_list()
    return ok(dump_many(ReturnRequest.Response, returns))


@router.get("/{return_id}", summary="Get a return")
async def read_return(
    return_id: str,
    current_user: User = Depends(get_current_active_user),
):
    return_request = await get_return_or_404(return_id)
    authorize(current_user, Action.VIEW_REQUEST, return_request.user_id)
    return ok(dump(ReturnRequest.Response, return_request))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Return a borrowed device")
@limiter.limit("30/hour")
async def submit_return(
    request: Request,
    payload: ReturnRequest.Create = Body(...),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    return_request = await create_return_request(payload, current_user, clock)
    return ok(dump(ReturnRequest.Response, return_request), "Device returned")
