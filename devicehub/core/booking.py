# devicehub/core/booking.py
import logging

from bson import ObjectId

from devicehub.core import audit
from devicehub.core.availability import find_conflicts, has_other_active_loan
from devicehub.core.clock import Clock, utcnow
from devicehub.core.errors import (
    BookingConflict,
    Conflict,
    DeviceUnavailable,
    InvalidDateRange,
)
from devicehub.core.lifecycle import ensure_transition, parse_status
from devicehub.core.lookups import get_borrow_request_or_404, get_device_or_404
from devicehub.core.notifications import notify, notify_admins
from devicehub.core.policy import Action, authorize
from devicehub.core.utils import to_datetime
from devicehub.db.database import compare_and_set, transaction
from devicehub.db.locks import device_lock
from devicehub.models.borrow import BorrowRequest
from devicehub.models.device import Device
from devicehub.models.enum import (
    AuditAction,
    AuditObjectType,
    BorrowStatus,
    DeviceStatus,
    NotificationType,
)
from devicehub.models.user import User

logger = logging.getLogger(__name__)


async def set_device_status(device_id: ObjectId, status: DeviceStatus, session=None) -> None:
    await Device.get_motor_collection().update_one(
        {"_id": device_id},
        {"$set": {"status": status.value, "updated_at": utcnow()}},
        session=session,
    )
    logger.info(f"Device {device_id} status set to {status.value}")


async def create_borrow_request(payload: BorrowRequest.Create, actor: User, clock: Clock) -> BorrowRequest:
    """Validate and store a new pending borrow request. The device itself is not touched."""
    device = await get_device_or_404(payload.device_id)

    if payload.end_date < payload.start_date:
        raise InvalidDateRange("End date must be after start date")

    async with device_lock(device.id):
        async with transaction() as session:
            # Re-read under the lock; the status may have changed while waiting
            device = await Device.get(device.id, session=session)
            if device is None or device.status != DeviceStatus.AVAILABLE:
                raise DeviceUnavailable("Device is not available")

            if await find_conflicts(device.id, payload.start_date, payload.end_date, session=session):
                raise BookingConflict("Device is already booked for this period")

            now = clock.now()
            borrow_request = BorrowRequest(
                device_id=device.id,
                user_id=actor.id,
                start_date=to_datetime(payload.start_date),
                end_date=to_datetime(payload.end_date),
                reason=payload.reason,
                status=BorrowStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            await borrow_request.insert(session=session)

    logger.info(
        f"User '{actor.email}' requested device {device.id} "
        f"for {payload.start_date}..{payload.end_date} (request {borrow_request.id})"
    )
    await notify_admins(
        NotificationType.NEW_REQUEST,
        "New borrow request",
        f"{actor.name} requested {device.name} from {payload.start_date} to {payload.end_date}",
        link=f"/requests/{borrow_request.id}",
        related_request_id=borrow_request.id,
        related_device_id=device.id,
        exclude_user_id=actor.id,
    )
    await audit.record(
        AuditAction.CREATE,
        AuditObjectType.BORROW_REQUEST,
        borrow_request.id,
        actor,
        after=audit.snapshot(borrow_request),
    )
    return borrow_request


async def transition_borrow_status(request_id: str, new_status, actor: User, clock: Clock) -> BorrowRequest:
    """Move a borrow request along the lifecycle and apply the device side effects."""
    target = parse_status(new_status)
    borrow_request = await get_borrow_request_or_404(request_id)
    authorize(actor, Action.TRANSITION_BORROW)
    ensure_transition(borrow_request.status, target)

    async with device_lock(borrow_request.device_id):
        async with transaction() as session:
            borrow_request = await BorrowRequest.get(borrow_request.id, session=session)
            previous = borrow_request.status
            ensure_transition(previous, target)
            before = audit.snapshot(borrow_request)

            if target == BorrowStatus.APPROVED:
                conflicts = await find_conflicts(
                    borrow_request.device_id,
                    borrow_request.start_date,
                    borrow_request.end_date,
                    exclude_id=borrow_request.id,
                    session=session,
                )
                if conflicts:
                    raise BookingConflict("Device is already booked for this period")

            if target == BorrowStatus.ACTIVE:
                device = await Device.get(borrow_request.device_id, session=session)
                if device is None or device.status != DeviceStatus.AVAILABLE:
                    raise DeviceUnavailable("Device is not available")
                if await has_other_active_loan(borrow_request.device_id, exclude_id=borrow_request.id, session=session):
                    raise BookingConflict("Device is already on loan")

            changes = {"status": target.value, "updated_at": clock.now()}
            if target in (BorrowStatus.APPROVED, BorrowStatus.REJECTED):
                changes["approved_by"] = actor.id
            applied = await compare_and_set(
                BorrowRequest, borrow_request.id, {"status": previous.value}, changes, session=session
            )
            if not applied:
                raise Conflict("Request was modified concurrently, please retry")

            if target == BorrowStatus.ACTIVE:
                await set_device_status(borrow_request.device_id, DeviceStatus.INUSE, session=session)
            elif target in (BorrowStatus.RETURNED, BorrowStatus.REJECTED):
                if not await has_other_active_loan(borrow_request.device_id, exclude_id=borrow_request.id, session=session):
                    await set_device_status(borrow_request.device_id, DeviceStatus.AVAILABLE, session=session)

            borrow_request = await BorrowRequest.get(borrow_request.id, session=session)

    logger.info(
        f"Borrow request {borrow_request.id} moved {previous.value} -> {target.value} by '{actor.email}'"
    )
    if target in (BorrowStatus.APPROVED, BorrowStatus.REJECTED):
        approved = target == BorrowStatus.APPROVED
        await notify(
            borrow_request.user_id,
            NotificationType.REQUEST_APPROVED if approved else NotificationType.REQUEST_REJECTED,
            "Borrow request approved" if approved else "Borrow request rejected",
            f"Your request for {borrow_request.start_date.date()} to {borrow_request.end_date.date()} "
            f"was {target.value}",
            link=f"/requests/{borrow_request.id}",
            related_request_id=borrow_request.id,
            related_device_id=borrow_request.device_id,
        )
    await audit.record(
        AuditAction.STATUS_CHANGE,
        AuditObjectType.BORROW_REQUEST,
        borrow_request.id,
        actor,
        before=before,
        after=audit.snapshot(borrow_request),
        metadata={"from": previous.value, "to": target.value},
    )
    return borrow_request
