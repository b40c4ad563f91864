from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import ensure_aware, now_utc
from ..core.constants import DEFAULT_KIOSK_TIMEOUT_MINUTES, DEFAULT_TIMEZONE
from ..core.enums import SubscriptionTier


@dataclass(frozen=True)
class Tenant:
    """Thực thể miền (domain): một nhà thờ / tổ chức thuê hệ thống.

    Lưu ý: không bao giờ xoá cứng; bị đình chỉ bằng tier ``suspended``.
    """

    tenant_id: str
    name: str
    subscription_tier: SubscriptionTier
    trial_start: Optional[datetime]
    trial_end: Optional[datetime]
    max_members: Optional[int]
    kiosk_mode_enabled: bool = False
    kiosk_session_timeout: int = DEFAULT_KIOSK_TIMEOUT_MINUTES
    timezone: str = DEFAULT_TIMEZONE
    brand_color: Optional[str] = None

    def is_trial_active(self, now: Optional[datetime] = None) -> bool:
        if self.subscription_tier != SubscriptionTier.TRIAL or not self.trial_end:
            return False
        now = ensure_aware(now or now_utc())
        return now < ensure_aware(self.trial_end)

    def trial_days_remaining(self, now: Optional[datetime] = None) -> int:
        if self.subscription_tier != SubscriptionTier.TRIAL or not self.trial_end:
            return 0
        now = ensure_aware(now or now_utc())
        seconds = (ensure_aware(self.trial_end) - now).total_seconds()
        return max(0, math.ceil(seconds / 86400))


@dataclass(frozen=True)
class SubscriptionStatus:
    """Read-model for the subscription banner / upgrade prompt."""

    tenant_id: str
    subscription_tier: SubscriptionTier
    is_trial_active: bool
    trial_days_remaining: int
    member_count: int
    max_members: Optional[int]
    member_usage_percent: int
