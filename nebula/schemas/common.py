from typing import Any, Optional
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies accept camelCase keys and respond with them."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        str_strip_whitespace = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit
        if total == 0:
            page = 1
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1
        )


def success_response(data: Any = None, message: Optional[str] = None, meta: Optional[dict] = None) -> dict:
    """Wrap a payload in the {success, data, message, meta} envelope."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    if meta:
        body["meta"] = meta
    return body
