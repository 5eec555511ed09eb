# devicehub/models/device.py
from typing import Optional, Dict, Any
from datetime import date, datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel, ASCENDING

from devicehub.core.clock import utcnow
from devicehub.core.utils import as_date, as_str_id
from devicehub.models.common import DocumentResponse, non_blank
from devicehub.models.enum import DeviceStatus, DeviceCategory


def _upper_tag(value):
    value = non_blank(value)
    if isinstance(value, str):
        return value.upper()
    return value


class Device(Document):
    """A lendable piece of equipment."""
    name: str = Field(..., max_length=200)
    asset_tag: str = Field(..., max_length=64)
    category: DeviceCategory
    brand: Optional[str] = None
    model: Optional[str] = None
    status: DeviceStatus = Field(default=DeviceStatus.AVAILABLE)
    department_id: Optional[PydanticObjectId] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    purchase_date: Optional[datetime] = None
    warranty_date: Optional[datetime] = None
    vendor: Optional[str] = None
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    hostname: Optional[str] = None
    specs: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    image_url: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "devices"
        indexes = [
            IndexModel([("asset_tag", ASCENDING)], name="device_asset_tag_unique_index", unique=True),
            IndexModel([("status", ASCENDING)], name="device_status_index"),
            IndexModel([("category", ASCENDING)], name="device_category_index"),
            IndexModel([("department_id", ASCENDING)], name="device_department_index"),
        ]

    # --- Pydantic Schemas for API ---
    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=200)
        asset_tag: str = Field(..., min_length=1, max_length=64)
        category: DeviceCategory
        brand: Optional[str] = None
        model: Optional[str] = None
        status: DeviceStatus = DeviceStatus.AVAILABLE
        department_id: Optional[str] = None
        purchase_price: Optional[float] = Field(None, ge=0)
        selling_price: Optional[float] = Field(None, ge=0)
        purchase_date: Optional[date] = None
        warranty_date: Optional[date] = None
        vendor: Optional[str] = None
        mac_address: Optional[str] = None
        ip_address: Optional[str] = None
        hostname: Optional[str] = None
        specs: Dict[str, Any] = Field(default_factory=dict)
        notes: Optional[str] = None
        image_url: Optional[str] = None

        check_name = field_validator("name", mode="before")(non_blank)
        check_asset_tag = field_validator("asset_tag", mode="before")(_upper_tag)

    class Update(BaseModel):
        name: Optional[str] = Field(None, min_length=1, max_length=200)
        asset_tag: Optional[str] = Field(None, min_length=1, max_length=64)
        category: Optional[DeviceCategory] = None
        brand: Optional[str] = None
        model: Optional[str] = None
        status: Optional[DeviceStatus] = None
        department_id: Optional[str] = None
        purchase_price: Optional[float] = Field(None, ge=0)
        selling_price: Optional[float] = Field(None, ge=0)
        purchase_date: Optional[date] = None
        warranty_date: Optional[date] = None
        vendor: Optional[str] = None
        mac_address: Optional[str] = None
        ip_address: Optional[str] = None
        hostname: Optional[str] = None
        specs: Optional[Dict[str, Any]] = None
        notes: Optional[str] = None
        image_url: Optional[str] = None

        check_name = field_validator("name", mode="before")(non_blank)
        check_asset_tag = field_validator("asset_tag", mode="before")(_upper_tag)

    class Response(DocumentResponse):
        name: str
        asset_tag: str
        category: DeviceCategory
        brand: Optional[str] = None
        model: Optional[str] = None
        status: DeviceStatus
        department_id: Optional[str] = None
        purchase_price: Optional[float] = None
        selling_price: Optional[float] = None
        purchase_date: Optional[date] = None
        warranty_date: Optional[date] = None
        vendor: Optional[str] = None
        mac_address: Optional[str] = None
        ip_address: Optional[str] = None
        hostname: Optional[str] = None
        specs: Dict[str, Any] = Field(default_factory=dict)
        notes: Optional[str] = None
        image_url: Optional[str] = None
        created_at: datetime
        updated_at: datetime

        @field_validator("department_id", mode="before")
        @classmethod
        def stringify_ids(cls, value):
            return as_str_id(value)

        @field_validator("purchase_date", "warranty_date", mode="before")
        @classmethod
        def calendar_dates(cls, value):
            return as_date(value)
