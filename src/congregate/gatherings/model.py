from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.validators import optional_iso_datetime, optional_str, require_non_empty


@dataclass(frozen=True)
class Gathering:
    """Thực thể miền (domain): một buổi nhóm / sự kiện của tenant.

    ``external_checkin_url`` / ``external_checkin_pin`` chỉ có giá trị khi
    ``external_checkin_enabled`` bật; tắt thì cả hai bị xoá.
    """

    gathering_id: str
    tenant_id: str
    name: str
    gathering_type: str
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True
    external_checkin_enabled: bool = False
    external_checkin_url: Optional[str] = None
    external_checkin_pin: Optional[str] = None


@dataclass(frozen=True)
class NewGathering:
    name: str
    gathering_type: str
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, data: dict) -> "NewGathering":
        return cls(
            name=require_non_empty(data.get("name"), "Name"),
            gathering_type=optional_str(data.get("type")) or "service",
            location=optional_str(data.get("location")),
            starts_at=optional_iso_datetime(data.get("startsAt"), "Start time"),
            ends_at=optional_iso_datetime(data.get("endsAt"), "End time"),
        )
