# devicehub/models/user.py
from typing import Optional
from datetime import datetime
from enum import Enum

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, EmailStr, field_validator
from pymongo import IndexModel, ASCENDING, DESCENDING

from devicehub.core.clock import utcnow
from devicehub.core.utils import as_str_id
from devicehub.models.common import DocumentResponse, non_blank

MIN_PASSWORD_LENGTH = 6


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERUSER = "superuser"


def _lower_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class User(Document):
    name: str
    email: EmailStr
    hashed_password: str
    department_id: Optional[PydanticObjectId] = None
    role: UserRole = Field(default=UserRole.USER)
    is_active: bool = Field(default=True)
    must_change_password: bool = Field(default=False)
    last_login_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("email", ASCENDING)], name="user_email_unique_index", unique=True),
            IndexModel([("role", ASCENDING)], name="user_role_index"),
            IndexModel([("department_id", ASCENDING)], name="user_department_index"),
            IndexModel([("created_at", DESCENDING)], name="user_created_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Response(DocumentResponse):
        name: str
        email: str
        department_id: Optional[str] = None
        role: UserRole
        is_active: bool
        must_change_password: bool
        last_login_at: Optional[datetime] = None
        created_at: datetime
        updated_at: datetime

        @field_validator("department_id", mode="before")
        @classmethod
        def stringify_ids(cls, value):
            return as_str_id(value)

    class Signup(BaseModel):
        name: str = Field(..., min_length=1, max_length=120)
        email: EmailStr
        password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
        department_id: str

        check_name = field_validator("name", mode="before")(non_blank)
        check_email = field_validator("email", mode="before")(_lower_email)

    class AdminCreate(BaseModel):
        name: str = Field(..., min_length=1, max_length=120)
        email: EmailStr
        password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
        department_id: Optional[str] = None
        role: UserRole = UserRole.USER

        check_name = field_validator("name", mode="before")(non_blank)
        check_email = field_validator("email", mode="before")(_lower_email)

    class Update(BaseModel):
        name: Optional[str] = Field(None, min_length=1, max_length=120)
        department_id: Optional[str] = None
        role: Optional[UserRole] = None

        check_name = field_validator("name", mode="before")(non_blank)

    class Login(BaseModel):
        email: EmailStr
        password: str = Field(..., min_length=1)
        remember_me: bool = False

        check_email = field_validator("email", mode="before")(_lower_email)

    class ChangePassword(BaseModel):
        current_password: str = Field(..., min_length=1)
        new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

    class PasswordReset(BaseModel):
        new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

    class StatusUpdate(BaseModel):
        is_active: bool
