"""Parsing helpers shared by the model modules."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


def parse_datetime(value: Any) -> datetime:
    """Parse an RFC 3339 / ISO 8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # Epoch milliseconds
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def opt_datetime(value: Any) -> Optional[datetime]:
    return None if value is None else parse_datetime(value)


def opt_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def parse_enum(enum_cls: Type[E], value: Any) -> E:
    return enum_cls(str(value).upper())


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}
