# devicehub/models/lock.py
from datetime import datetime

from beanie import Document


class DeviceLock(Document):
    """Per-device mutex. `_id` is the device id, so a second insert fails with a duplicate key."""
    owner: str
    acquired_at: datetime

    class Settings:
        name = "device_locks"
