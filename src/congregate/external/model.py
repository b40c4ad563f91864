from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExternalCheckInSettings:
    """Admin-only view: includes the PIN so staff can announce it."""

    gathering_id: str
    enabled: bool
    url_token: Optional[str]
    pin: Optional[str]
    full_url: Optional[str]


@dataclass(frozen=True)
class PublicGatheringInfo:
    """What an anonymous visitor of the public link may see. Never the PIN."""

    gathering_id: str
    name: str
    gathering_type: str
    location: Optional[str]
    church_name: str
    church_brand_color: Optional[str]
    requires_pin: bool = True
