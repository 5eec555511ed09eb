# devicehub/core/renewals.py
import logging
from datetime import timedelta

from devicehub.core import audit
from devicehub.core.availability import find_conflicts
from devicehub.core.clock import Clock
from devicehub.core.errors import (
    BookingConflict,
    Conflict,
    DuplicatePending,
    InvalidDateRange,
    InvalidState,
    ValidationFailed,
)
from devicehub.core.lookups import get_borrow_request_or_404, get_renewal_or_404
from devicehub.core.notifications import notify, notify_admins
from devicehub.core.policy import Action, authorize
from devicehub.core.utils import to_datetime
from devicehub.db.database import compare_and_set, transaction
from devicehub.db.locks import device_lock
from devicehub.models.borrow import BorrowRequest
from devicehub.models.enum import (
    AuditAction,
    AuditObjectType,
    BorrowStatus,
    NotificationType,
    RenewalStatus,
)
from devicehub.models.renewal import RenewalRequest
from devicehub.models.user import User

logger = logging.getLogger(__name__)

REVIEW_STATUSES = (RenewalStatus.APPROVED, RenewalStatus.REJECTED)


async def create_renewal_request(payload: RenewalRequest.Create, actor: User, clock: Clock) -> RenewalRequest:
    borrow_request = await get_borrow_request_or_404(payload.borrow_request_id)

    if borrow_request.status != BorrowStatus.ACTIVE:
        raise InvalidState("Can only request renewal for active loans")

    authorize(actor, Action.CREATE_RENEWAL, borrow_request.user_id)

    requested_end = to_datetime(payload.requested_end_date)
    if requested_end <= borrow_request.end_date:
        raise InvalidDateRange("Requested end date must be after current end date")

    async with device_lock(borrow_request.device_id):
        async with transaction() as session:
            existing = await RenewalRequest.find_one(
                {"borrow_request_id": borrow_request.id, "status": RenewalStatus.PENDING.value},
                session=session,
            )
            if existing:
                raise DuplicatePending("A pending renewal request already exists for this loan")

            now = clock.now()
            renewal = RenewalRequest(
                borrow_request_id=borrow_request.id,
                user_id=actor.id,
                current_end_date=borrow_request.end_date,
                requested_end_date=requested_end,
                reason=payload.reason,
                status=RenewalStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            await renewal.insert(session=session)

    logger.info(
        f"User '{actor.email}' requested renewal {renewal.id} of loan {borrow_request.id} "
        f"until {payload.requested_end_date}"
    )
    await notify_admins(
        NotificationType.NEW_REQUEST,
        "New renewal request",
        f"{actor.name} asked to extend a loan until {payload.requested_end_date}",
        link=f"/renewals/{renewal.id}",
        related_request_id=borrow_request.id,
        related_device_id=borrow_request.device_id,
        exclude_user_id=actor.id,
    )
    await audit.record(
        AuditAction.CREATE,
        AuditObjectType.RENEWAL_REQUEST,
        renewal.id,
        actor,
        after=audit.snapshot(renewal),
    )
    return renewal


async def transition_renewal_status(renewal_id: str, new_status, actor: User, clock: Clock) -> RenewalRequest:
    """Approve (extending the loan) or reject a pending renewal request."""
    authorize(actor, Action.TRANSITION_RENEWAL)
    try:
        target = RenewalStatus(new_status)
    except ValueError:
        raise ValidationFailed("Invalid status")
    if target not in REVIEW_STATUSES:
        raise ValidationFailed("Invalid status")

    renewal = await get_renewal_or_404(renewal_id)
    if renewal.status != RenewalStatus.PENDING:
        raise InvalidState("Can only update status of pending renewal requests")

    borrow_request = await get_borrow_request_or_404(renewal.borrow_request_id)

    async with device_lock(borrow_request.device_id):
        async with transaction() as session:
            renewal = await RenewalRequest.get(renewal.id, session=session)
            if renewal.status != RenewalStatus.PENDING:
                raise InvalidState("Can only update status of pending renewal requests")
            before = audit.snapshot(renewal)

            if target == RenewalStatus.APPROVED:
                borrow_request = await BorrowRequest.get(borrow_request.id, session=session)
                if borrow_request.status != BorrowStatus.ACTIVE:
                    raise InvalidState("Can only extend active loans")
                if renewal.requested_end_date <= borrow_request.end_date:
                    raise InvalidDateRange("Requested end date must be after current end date")
                extension_start = borrow_request.end_date + timedelta(days=1)
                conflicts = await find_conflicts(
                    borrow_request.device_id,
                    extension_start,
                    renewal.requested_end_date,
                    exclude_id=borrow_request.id,
                    session=session,
                )
                if conflicts:
                    raise BookingConflict("Device is booked for the requested renewal period")

            now = clock.now()
            applied = await compare_and_set(
                RenewalRequest,
                renewal.id,
                {"status": RenewalStatus.PENDING.value},
                {"status": target.value, "reviewed_by": actor.id, "reviewed_at": now, "updated_at": now},
                session=session,
            )
            if not applied:
                raise Conflict("Renewal request was modified concurrently, please retry")

            if target == RenewalStatus.APPROVED:
                extended = await compare_and_set(
                    BorrowRequest,
                    borrow_request.id,
                    {"status": BorrowStatus.ACTIVE.value},
                    {"end_date": renewal.requested_end_date, "updated_at": now},
                    session=session,
                )
                if not extended:
                    raise Conflict("Loan was modified concurrently, please retry")

            renewal = await RenewalRequest.get(renewal.id, session=session)

    logger.info(f"Renewal {renewal.id} {target.value} by '{actor.email}'")
    approved = target == RenewalStatus.APPROVED
    await notify(
        renewal.user_id,
        NotificationType.RENEWAL_APPROVED if approved else NotificationType.RENEWAL_REJECTED,
        "Renewal approved" if approved else "Renewal rejected",
        f"Your loan extension until {renewal.requested_end_date.date()} was {target.value}",
        link=f"/renewals/{renewal.id}",
        related_request_id=renewal.borrow_request_id,
        related_device_id=borrow_request.device_id,
    )
    await audit.record(
        AuditAction.STATUS_CHANGE,
        AuditObjectType.RENEWAL_REQUEST,
        renewal.id,
        actor,
        before=before,
        after=audit.snapshot(renewal),
        metadata={"from": RenewalStatus.PENDING.value, "to": target.value},
    )
    return renewal
