# devicehub/models/department.py
from typing import Optional
from datetime import datetime

from beanie import Document
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel, ASCENDING

from devicehub.core.clock import utcnow
from devicehub.models.common import DocumentResponse, non_blank


def _upper_code(value):
    value = non_blank(value)
    if isinstance(value, str):
        return value.upper()
    return value


class Department(Document):
    """Organisational unit that users and devices belong to."""
    name: str = Field(..., max_length=120)
    code: str = Field(..., max_length=20)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "departments"
        indexes = [
            IndexModel([("code", ASCENDING)], name="department_code_unique_index", unique=True),
            IndexModel([("name", ASCENDING)], name="department_name_index"),
        ]

    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=120)
        code: str = Field(..., min_length=1, max_length=20)

        check_name = field_validator("name", mode="before")(non_blank)
        check_code = field_validator("code", mode="before")(_upper_code)

    class Update(BaseModel):
        name: Optional[str] = Field(None, min_length=1, max_length=120)
        code: Optional[str] = Field(None, min_length=1, max_length=20)

        check_name = field_validator("name", mode="before")(non_blank)
        check_code = field_validator("code", mode="before")(_upper_code)

    class Response(DocumentResponse):
        name: str
        code: str
        created_at: datetime
        updated_at: datetime

    class NameResponse(DocumentResponse):
        name: str
