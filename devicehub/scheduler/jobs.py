# devicehub/scheduler/jobs.py
import logging
from datetime import datetime, time
from typing import Optional

from pymongo.errors import PyMongoError

from devicehub.core.clock import Clock, clock as default_clock
from devicehub.core.notifications import notify
from devicehub.core.utils import to_datetime
from devicehub.models.borrow import BorrowRequest
from devicehub.models.enum import BorrowStatus, NotificationType
from devicehub.models.notification import Notification

logger = logging.getLogger("scheduler_jobs")


async def notify_overdue_loans(clock: Optional[Clock] = None) -> int:
    """Remind borrowers of active loans whose end date has passed. At most one reminder per loan per day."""
    clock = clock or default_clock
    today = clock.today()
    start_of_today = datetime.combine(today, time.min)
    logger.info(f"Running notify_overdue_loans for {today}")

    sent = 0
    try:
        overdue = await BorrowRequest.find(
            {"status": BorrowStatus.ACTIVE.value, "end_date": {"$lt": to_datetime(today)}}
        ).to_list()
        logger.info(f"Found {len(overdue)} overdue loan(s).")

        for loan in overdue:
            already_sent = await Notification.find_one({
                "user_id": loan.user_id,
                "type": NotificationType.OVERDUE.value,
                "related_request_id": loan.id,
                "created_at": {"$gte": start_of_today},
            })
            if already_sent:
                continue
            days_late = (today - loan.end_date.date()).days
            created = await notify(
                loan.user_id,
                NotificationType.OVERDUE,
                "Loan overdue",
                f"Your loan ended on {loan.end_date.date()} ({days_late} day(s) ago). "
                f"Please return the device or request a renewal.",
                link=f"/requests/{loan.id}",
                related_request_id=loan.id,
                related_device_id=loan.device_id,
                created_at=clock.now(),
            )
            if created:
                sent += 1
    except PyMongoError:
        logger.exception("notify_overdue_loans failed")
        raise

    logger.info(f"Job finished. Overdue reminders sent: {sent}")
    return sent
