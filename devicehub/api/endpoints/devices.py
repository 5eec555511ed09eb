# devicehub/api/endpoints/devices.py
import re
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from loguru import logger

from devicehub.api.responses import dump, dump_many, ok
from devicehub.core import audit
from devicehub.core.availability import has_other_active_loan
from devicehub.core.clock import utcnow
from devicehub.core.errors import Conflict, ValidationFailed
from devicehub.core.lookups import get_department_or_404, get_device_or_404
from devicehub.core.policy import Action
from devicehub.core.rate_limiter import limiter
from devicehub.core.security import get_current_active_user, require_action
from devicehub.core.utils import parse_object_id, to_datetime
from devicehub.db.locks import device_lock
from devicehub.models.borrow import BorrowRequest
from devicehub.models.device import Device
from devicehub.models.enum import (
    AuditAction,
    AuditObjectType,
    BorrowStatus,
    DeviceCategory,
    DeviceStatus,
    BLOCKING_STATUSES,
)
from devicehub.models.user import User

router = APIRouter(tags=["Devices"])

require_device_admin = require_action(Action.MANAGE_DEVICES)

_DATE_FIELDS = ("purchase_date", "warranty_date")
_REQUIRED_FIELDS = ("name", "asset_tag", "category", "status", "specs")


@router.get("", summary="List devices")
async def read_devices(
    category: Optional[DeviceCategory] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    department_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    current_user: User = Depends(get_current_active_user),
):
    query = {}
    if category:
        query["category"] = category.value
    if status_filter:
        try:
            query["status"] = DeviceStatus(status_filter).value
        except ValueError:
            raise ValidationFailed("Invalid device status")
    if department_id:
        query["department_id"] = parse_object_id(department_id, "department ID")
    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"asset_tag": pattern}, {"brand": pattern}, {"model": pattern}]
    if min_price is not None or max_price is not None:
        price = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        query["purchase_price"] = price

    devices = await Device.find(query).sort("+name").to_list()
    return ok(dump_many(Device.Response, devices))


@router.get("/pending-ids", summary="Ids of devices with pending or approved requests")
async def read_pending_device_ids(current_user: User = Depends(get_current_active_user)):
    requests = await BorrowRequest.find(
        {"status": {"$in": [BorrowStatus.PENDING.value, BorrowStatus.APPROVED.value]}}
    ).to_list()
    return ok(sorted({str(r.device_id) for r in requests}))


@router.get("/{device_id}", summary="Get a device")
async def read_device(device_id: str, current_user: User = Depends(get_current_active_user)):
    device = await get_device_or_404(device_id)
    return ok(dump(Device.Response, device))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Register a device (admin)")
@limiter.limit("60/hour")
async def create_device(
    request: Request,
    device_in: Device.Create = Body(...),
    current_user: User = Depends(require_device_admin),
):
    if device_in.status == DeviceStatus.INUSE:
        raise ValidationFailed("A new device cannot start in use")
    if await Device.find_one({"asset_tag": device_in.asset_tag}):
        raise Conflict("Asset tag already exists")

    data = device_in.model_dump(exclude={"department_id", *_DATE_FIELDS})
    if device_in.department_id:
        data["department_id"] = (await get_department_or_404(device_in.department_id)).id
    for field in _DATE_FIELDS:
        value = getattr(device_in, field)
        data[field] = to_datetime(value) if value else None

    device = Device(**data)
    await device.insert()
    logger.info(f"'{current_user.email}' registered device {device.asset_tag} ({device.id}).")
    await audit.record(AuditAction.CREATE, AuditObjectType.DEVICE, device.id, current_user,
                       after=audit.snapshot(device))
    return ok(dump(Device.Response, device), "Device created")


@router.put("/{device_id}", summary="Update a device (admin)")
async def update_device(
    device_id: str,
    device_in: Device.Update = Body(...),
    current_user: User = Depends(require_device_admin),
):
    device = await get_device_or_404(device_id)
    changes = device_in.model_dump(exclude_unset=True)
    for field in _REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            del changes[field]

    if "asset_tag" in changes and changes["asset_tag"] != device.asset_tag:
        if await Device.find_one({"asset_tag": changes["asset_tag"]}):
            raise Conflict("Asset tag already exists")
    if "department_id" in changes:
        department_ref = changes["department_id"]
        changes["department_id"] = (await get_department_or_404(department_ref)).id if department_ref else None
    for field in _DATE_FIELDS:
        if changes.get(field):
            changes[field] = to_datetime(changes[field])

    async with device_lock(device.id):
        device = await Device.get(device.id)
        before = audit.snapshot(device)
        new_status = changes.get("status")
        if new_status is not None and new_status != device.status:
            if new_status == DeviceStatus.INUSE:
                raise ValidationFailed("Device status 'inuse' is set by activating a borrow request")
            if await has_other_active_loan(device.id):
                raise ValidationFailed("Cannot change status of a device that is on loan")

        for field, value in changes.items():
            setattr(device, field, value)
        device.updated_at = utcnow()
        await device.save()

    await audit.record(AuditAction.UPDATE, AuditObjectType.DEVICE, device.id, current_user,
                       before=before, after=audit.snapshot(device))
    return ok(dump(Device.Response, device), "Device updated")


@router.delete("/{device_id}", summary="Delete a device (admin)")
async def delete_device(device_id: str, current_user: User = Depends(require_device_admin)):
    device = await get_device_or_404(device_id)
    async with device_lock(device.id):
        open_request = await BorrowRequest.find_one(
            {"device_id": device.id, "status": {"$in": [s.value for s in BLOCKING_STATUSES]}}
        )
        if open_request:
            raise ValidationFailed("Cannot delete device with open borrow requests")
        before = audit.snapshot(device)
        await device.delete()
    logger.info(f"'{current_user.email}' deleted device {before['asset_tag']}.")
    await audit.record(AuditAction.DELETE, AuditObjectType.DEVICE, device_id, current_user, before=before)
    return ok(message="Device deleted")
