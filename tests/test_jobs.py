from datetime import date, timedelta

from devicehub.core.clock import FixedClock
from devicehub.models.enum import BorrowStatus, NotificationType
from devicehub.models.notification import Notification
from devicehub.scheduler.jobs import notify_overdue_loans


async def overdue_notes(user):
    return await Notification.find({"user_id": user.id, "type": NotificationType.OVERDUE.value}).to_list()


async def test_only_active_loans_past_their_end_date(clock, make_device, user, other_user, make_borrow):
    late = await make_borrow(await make_device(), user, date(2030, 3, 1), date(2030, 3, 8), BorrowStatus.ACTIVE)
    # Ends today, not overdue yet
    await make_borrow(await make_device(), other_user, date(2030, 3, 1), date(2030, 3, 10), BorrowStatus.ACTIVE)
    await make_borrow(await make_device(), other_user, date(2030, 3, 1), date(2030, 3, 5), BorrowStatus.RETURNED)

    assert await notify_overdue_loans(clock) == 1
    notes = await overdue_notes(user)
    assert [n.related_request_id for n in notes] == [late.id]
    assert "2 day(s) ago" in notes[0].message
    assert await overdue_notes(other_user) == []


async def test_one_reminder_per_day(clock, device, user, make_borrow):
    await make_borrow(device, user, date(2030, 3, 1), date(2030, 3, 8), BorrowStatus.ACTIVE)

    assert await notify_overdue_loans(clock) == 1
    assert await notify_overdue_loans(clock) == 0

    tomorrow = FixedClock(clock.today() + timedelta(days=1))
    assert await notify_overdue_loans(tomorrow) == 1
    assert len(await overdue_notes(user)) == 2
