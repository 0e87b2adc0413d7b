"""Shared helpers for document models"""
from datetime import datetime, timezone
from math import ceil
from typing import Any, Dict, Optional
from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel


def utcnow() -> datetime:
    """Current time as naive UTC, the form pymongo hands back"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """ObjectId for a path/body value, or None when it is not a valid id"""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def id_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


class Pagination(BaseModel):
    """Pagination block returned by list endpoints"""
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=ceil(total / limit) if limit else 0)


def paginated(data: list, pagination: Pagination, **extra: Any) -> Dict[str, Any]:
    response = {"success": True, "data": data, "pagination": pagination}
    response.update(extra)
    return response
