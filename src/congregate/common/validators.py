from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional, Type, TypeVar

from ..core.exceptions import ValidationError

E = TypeVar("E", bound=Enum)


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_min_length(value: str, field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters")
    return value


def require_enum(enum_cls: Type[E], value, field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value or "").strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def optional_str(value) -> Optional[str]:
    v = (str(value) if value is not None else "").strip()
    return v or None


def optional_iso_date(value, field_name: str) -> Optional[date]:
    v = optional_str(value)
    if v is None:
        return None
    try:
        return date.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"{field_name} must be a date (YYYY-MM-DD)")


def optional_iso_datetime(value, field_name: str) -> Optional[datetime]:
    v = optional_str(value)
    if v is None:
        return None
    try:
        return datetime.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date-time")
