# devicehub/api/responses.py
from typing import Any, Iterable, List, Optional, Type

from pydantic import BaseModel


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope shared by every endpoint."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def error_body(error: str, message: Optional[str] = None) -> dict:
    body = {"success": False, "error": error}
    if message:
        body["message"] = message
    return body


def dump(schema: Type[BaseModel], document: Any) -> dict:
    return schema.model_validate(document).model_dump(mode="json")


def dump_many(schema: Type[BaseModel], documents: Iterable[Any]) -> List[dict]:
    return [dump(schema, d) for d in documents]
