from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from bson import ObjectId

from videotube.pipeline.pagination import Page
from videotube.schemas import DateTimeResponse


def format_datetime_response(dt: datetime) -> Dict[str, Any]:
    """Render a datetime as iso string, unix timestamp and UTC offset"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    offset = dt.strftime("%z")
    return DateTimeResponse(
        iso=dt.isoformat(),
        timestamp=dt.timestamp(),
        timezone=f"{offset[:3]}:{offset[3:]}" if offset else "+00:00",
    ).model_dump()


def to_jsonable(value: Any) -> Any:
    """Make a store document safe for JSON: ObjectIds to str, ``_id`` to ``id``"""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return format_datetime_response(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {("id" if k == "_id" else k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def page_data(page: Page, key: str = "items") -> Dict[str, Any]:
    return {
        key: to_jsonable(page.items),
        "total": page.total,
        "page": page.page,
        "page_size": page.page_size,
        "total_pages": page.total_pages,
    }
