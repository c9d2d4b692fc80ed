"""
Conversion helpers between Pydantic field dicts and ORM column values.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from app.utils.datetime_utils import ensure_utc


def to_column_value(value: Any) -> Any:
    """Convert a model value into something the SQLite columns store."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        # SQLite keeps naive timestamps; everything is stored as UTC.
        return ensure_utc(value).replace(tzinfo=None)
    if isinstance(value, list):
        return [to_column_value(v) for v in value]
    if isinstance(value, dict):
        return {k: to_column_value(v) for k, v in value.items()}
    return value


def orm_to_dict(orm: Any) -> dict[str, Any]:
    """Read every mapped column of an ORM row into a dict."""
    data = {}
    for column in orm.__table__.columns:
        value = getattr(orm, column.key)
        if isinstance(value, datetime):
            value = ensure_utc(value)
        data[column.key] = value
    return data
