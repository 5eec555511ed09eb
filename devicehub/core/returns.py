# devicehub/core/returns.py
import logging

from devicehub.core import audit
from devicehub.core.booking import set_device_status
from devicehub.core.clock import Clock
from devicehub.core.errors import InvalidState
from devicehub.core.lookups import get_borrow_request_or_404
from devicehub.core.notifications import notify, notify_admins
from devicehub.core.policy import Action, authorize, is_admin
from devicehub.core.utils import to_datetime
from devicehub.db.database import compare_and_set, transaction
from devicehub.db.locks import device_lock
from devicehub.models.borrow import BorrowRequest
from devicehub.models.enum import (
    AuditAction,
    AuditObjectType,
    BorrowStatus,
    DeviceCondition,
    DeviceStatus,
    NotificationType,
)
from devicehub.models.return_request import ReturnRequest
from devicehub.models.user import User

logger = logging.getLogger(__name__)

NOT_ACTIVE_MESSAGE = "Can only create return request for active borrowings"


def status_after_return(condition: DeviceCondition) -> DeviceStatus:
    if condition == DeviceCondition.DAMAGED:
        return DeviceStatus.MAINTENANCE
    return DeviceStatus.AVAILABLE


async def create_return_request(payload: ReturnRequest.Create, actor: User, clock: Clock) -> ReturnRequest:
    """Close an active loan: record the return, mark the request returned, release or quarantine the device."""
    borrow_request = await get_borrow_request_or_404(payload.borrow_request_id)
    if borrow_request.status != BorrowStatus.ACTIVE:
        raise InvalidState(NOT_ACTIVE_MESSAGE)
    authorize(actor, Action.CREATE_RETURN, borrow_request.user_id)

    device_status = status_after_return(payload.device_condition)

    async with device_lock(borrow_request.device_id):
        async with transaction() as session:
            now = clock.now()
            closed = await compare_and_set(
                BorrowRequest,
                borrow_request.id,
                {"status": BorrowStatus.ACTIVE.value},
                {"status": BorrowStatus.RETURNED.value, "updated_at": now},
                session=session,
            )
            if not closed:
                raise InvalidState(NOT_ACTIVE_MESSAGE)

            return_request = ReturnRequest(
                borrow_request_id=borrow_request.id,
                user_id=borrow_request.user_id,
                device_id=borrow_request.device_id,
                return_date=to_datetime(clock.today()),
                device_condition=payload.device_condition,
                notes=payload.notes,
                processed_by=actor.id,
                created_at=now,
            )
            await return_request.insert(session=session)
            await set_device_status(borrow_request.device_id, device_status, session=session)

    logger.info(
        f"Loan {borrow_request.id} returned in {payload.device_condition.value} condition "
        f"by '{actor.email}'; device {borrow_request.device_id} -> {device_status.value}"
    )
    await notify_admins(
        NotificationType.DEVICE_RETURNED,
        "Device returned",
        f"A device was returned in {payload.device_condition.value} condition",
        link=f"/returns/{return_request.id}",
        related_request_id=borrow_request.id,
        related_device_id=borrow_request.device_id,
        exclude_user_id=actor.id,
    )
    if is_admin(actor) and actor.id != borrow_request.user_id:
        await notify(
            borrow_request.user_id,
            NotificationType.DEVICE_RETURNED,
            "Return recorded",
            "An administrator recorded the return of your loan",
            link=f"/returns/{return_request.id}",
            related_request_id=borrow_request.id,
            related_device_id=borrow_request.device_id,
        )
    await audit.record(
        AuditAction.CREATE,
        AuditObjectType.RETURN_REQUEST,
        return_request.id,
        actor,
        after=audit.snapshot(return_request),
        metadata={"device_status": device_status.value},
    )
    return return_request
