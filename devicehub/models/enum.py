# devicehub/models/enum.py
from enum import Enum


class DeviceStatus(str, Enum):
    AVAILABLE = "available"
    INUSE = "inuse"
    MAINTENANCE = "maintenance"
    UPDATING = "updating"
    STORAGE = "storage"
    DISCARD = "discard"
    TRANSFERRED = "transferred"

    @classmethod
    def _missing_(cls, value):
        # Older clients still send "borrowed"
        if isinstance(value, str) and value.lower() == "borrowed":
            return cls.INUSE
        return None


class DeviceCategory(str, Enum):
    LAPTOP = "laptop"
    MOBILE = "mobile"
    TABLET = "tablet"
    MONITOR = "monitor"
    ACCESSORIES = "accessories"
    STORAGE = "storage"
    RAM = "ram"


class BorrowStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    RETURNED = "returned"
    REJECTED = "rejected"


# Statuses that hold a device for their date range
BLOCKING_STATUSES = (BorrowStatus.PENDING, BorrowStatus.APPROVED, BorrowStatus.ACTIVE)


class RenewalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeviceCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    DAMAGED = "damaged"


class NotificationType(str, Enum):
    REQUEST_APPROVED = "request_approved"
    REQUEST_REJECTED = "request_rejected"
    NEW_REQUEST = "new_request"
    OVERDUE = "overdue"
    DEVICE_RETURNED = "device_returned"
    RENEWAL_APPROVED = "renewal_approved"
    RENEWAL_REJECTED = "renewal_rejected"
    INFO = "info"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"
    PASSWORD_RESET = "password_reset"
    ACCOUNT_LOCK = "account_lock"
    ACCOUNT_UNLOCK = "account_unlock"


class AuditObjectType(str, Enum):
    DEVICE = "device"
    USER = "user"
    DEPARTMENT = "department"
    BORROW_REQUEST = "borrow_request"
    RETURN_REQUEST = "return_request"
    RENEWAL_REQUEST = "renewal_request"
