# devicehub/models/common.py
from typing import Any

from pydantic import BaseModel, field_validator

from devicehub.core.utils import as_str_id


class DocumentResponse(BaseModel):
    """Base for the nested Response schemas: read straight from a Document, ids as strings."""
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Any:
        return as_str_id(value)

    class Config:
        from_attributes = True
        populate_by_name = True
        use_enum_values = True


def non_blank(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
    return value
