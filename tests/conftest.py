import os
from datetime import date

# Settings must exist before devicehub.core.config is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017/device_hub_test")
os.environ["MONGODB_TRANSACTIONS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_FILE_PATH"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from devicehub.core.clock import FixedClock, get_clock
from devicehub.core.security import create_user_token, get_password_hash
from devicehub.core.utils import to_datetime
from devicehub.db.database import init_db
from devicehub.main import app
from devicehub.models.borrow import BorrowRequest
from devicehub.models.department import Department
from devicehub.models.device import Device
from devicehub.models.enum import BorrowStatus, DeviceCategory, DeviceStatus
from devicehub.models.user import User, UserRole

TODAY = date(2030, 3, 10)
PASSWORD = "secret123"

# bcrypt is slow on purpose; hash the shared test password once
_PASSWORD_HASH = None


def _password_hash() -> str:
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = get_password_hash(PASSWORD)
    return _PASSWORD_HASH


@pytest.fixture
async def db():
    return await init_db(AsyncMongoMockClient())


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
async def client(db, clock):
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def department(db):
    dept = Department(name="Engineering", code="ENG")
    await dept.insert()
    return dept


@pytest.fixture
def make_user(db, department):
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.USER, **overrides) -> User:
        counter["n"] += 1
        data = {
            "name": f"{role.value.title()} {counter['n']}",
            "email": f"{role.value}{counter['n']}@devicehub.io",
            "hashed_password": _password_hash(),
            "department_id": department.id,
            "role": role,
        }
        data.update(overrides)
        user = User(**data)
        await user.insert()
        return user

    return _make


@pytest.fixture
async def user(make_user):
    return await make_user(UserRole.USER)


@pytest.fixture
async def other_user(make_user):
    return await make_user(UserRole.USER)


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def superuser(make_user):
    return await make_user(UserRole.SUPERUSER)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def make_device(db):
    counter = {"n": 0}

    async def _make(status: DeviceStatus = DeviceStatus.AVAILABLE, **overrides) -> Device:
        counter["n"] += 1
        data = {
            "name": f"Laptop {counter['n']}",
            "asset_tag": f"LT-{counter['n']:04d}",
            "category": DeviceCategory.LAPTOP,
            "status": status,
        }
        data.update(overrides)
        device = Device(**data)
        await device.insert()
        return device

    return _make


@pytest.fixture
async def device(make_device):
    return await make_device()


@pytest.fixture
def make_borrow(db):
    """Insert a borrow request directly, bypassing the workflow."""
    async def _make(device: Device, user: User, start: date, end: date,
                    status: BorrowStatus = BorrowStatus.PENDING) -> BorrowRequest:
        request = BorrowRequest(
            device_id=device.id,
            user_id=user.id,
            start_date=to_datetime(start),
            end_date=to_datetime(end),
            reason="testing",
            status=status,
        )
        await request.insert()
        return request

    return _make


async def refresh(document):
    return await type(document).get(document.id)
