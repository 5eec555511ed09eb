# devicehub/core/lookups.py
from typing import Type, TypeVar

from beanie import Document

from devicehub.core.errors import NotFound
from devicehub.core.utils import parse_object_id
from devicehub.models.borrow import BorrowRequest
from devicehub.models.department import Department
from devicehub.models.device import Device
from devicehub.models.renewal import RenewalRequest
from devicehub.models.return_request import ReturnRequest
from devicehub.models.user import User

DocT = TypeVar("DocT", bound=Document)


async def get_or_404(model: Type[DocT], raw_id, label: str, session=None) -> DocT:
    """Load a document by id: 400 on a malformed id, 404 when missing."""
    object_id = parse_object_id(raw_id, f"{label.lower()} ID")
    document = await model.get(object_id, session=session)
    if document is None:
        raise NotFound(f"{label} not found")
    return document


async def get_user_or_404(user_id, session=None) -> User:
    return await get_or_404(User, user_id, "User", session)


async def get_department_or_404(department_id, session=None) -> Department:
    return await get_or_404(Department, department_id, "Department", session)


async def get_device_or_404(device_id, session=None) -> Device:
    return await get_or_404(Device, device_id, "Device", session)


async def get_borrow_request_or_404(request_id, session=None) -> BorrowRequest:
    return await get_or_404(BorrowRequest, request_id, "Borrow request", session)


async def get_renewal_or_404(renewal_id, session=None) -> RenewalRequest:
    return await get_or_404(RenewalRequest, renewal_id, "Renewal request", session)


async def get_return_or_404(return_id, session=None) -> ReturnRequest:
    return await get_or_404(ReturnRequest, return_id, "Return request", session)
