# devicehub/core/availability.py
import logging
from datetime import date, datetime
from typing import List, Optional, Union

from bson import ObjectId

from devicehub.core.utils import to_datetime
from devicehub.models.borrow import BorrowRequest
from devicehub.models.enum import BorrowStatus, BLOCKING_STATUSES

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


def ranges_overlap(start_a: DateLike, end_a: DateLike, start_b: DateLike, end_b: DateLike) -> bool:
    """Inclusive overlap of two calendar ranges. Sharing one day counts, adjacent ranges do not."""
    return start_a <= end_b and start_b <= end_a


def conflict_query(
    device_id: ObjectId,
    start: DateLike,
    end: DateLike,
    statuses=BLOCKING_STATUSES,
    exclude_id: Optional[ObjectId] = None,
) -> dict:
    query = {
        "device_id": device_id,
        "status": {"$in": [s.value for s in statuses]},
        "start_date": {"$lte": to_datetime(end)},
        "end_date": {"$gte": to_datetime(start)},
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return query


async def find_conflicts(
    device_id: ObjectId,
    start: DateLike,
    end: DateLike,
    exclude_id: Optional[ObjectId] = None,
    session=None,
) -> List[BorrowRequest]:
    """Borrow requests that hold `device_id` on any day in [start, end]."""
    conflicts = await BorrowRequest.find(
        conflict_query(device_id, start, end, exclude_id=exclude_id),
        session=session,
    ).to_list()
    if conflicts:
        logger.info(
            f"Device {device_id} has {len(conflicts)} conflicting request(s) for "
            f"{to_datetime(start).date()}..{to_datetime(end).date()}: {[str(c.id) for c in conflicts]}"
        )
    return conflicts


async def has_other_active_loan(device_id: ObjectId, exclude_id: Optional[ObjectId] = None, session=None) -> bool:
    query = {"device_id": device_id, "status": BorrowStatus.ACTIVE.value}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return await BorrowRequest.find_one(query, session=session) is not None
