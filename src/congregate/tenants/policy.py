"""Tenant policy evaluator.

Decides whether a tenant's subscription permits a capability, optionally
against a usage figure (e.g. the current member count). Read-only and
side-effect free; any failure to load the tenant is a denial.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

from ..core.constants import STARTER_MAX_MEMBERS
from ..core.enums import Capability, SubscriptionTier
from ..core.exceptions import PolicyDenied
from .model import Tenant
from .repository import TenantRepository

logger = logging.getLogger(__name__)

_PAID = frozenset({SubscriptionTier.STARTER, SubscriptionTier.GROWTH, SubscriptionTier.ENTERPRISE})
_GROWTH_UP = frozenset({SubscriptionTier.GROWTH, SubscriptionTier.ENTERPRISE})
_ENTERPRISE = frozenset({SubscriptionTier.ENTERPRISE})

FEATURE_MATRIX: Mapping[Capability, frozenset] = {
    Capability.BASIC_CHECKIN: _PAID,
    Capability.MEMBER_MANAGEMENT: _PAID,
    Capability.BASIC_REPORTS: _PAID,
    Capability.BIOMETRIC_CHECKIN: _GROWTH_UP,
    Capability.FAMILY_CHECKIN: _GROWTH_UP,
    Capability.VISITOR_MANAGEMENT: _GROWTH_UP,
    Capability.HISTORY_TRACKING: _GROWTH_UP,
    Capability.FOLLOW_UP_QUEUE: _GROWTH_UP,
    Capability.EMAIL_NOTIFICATIONS: _GROWTH_UP,
    Capability.FULL_ANALYTICS: _ENTERPRISE,
    Capability.SMS_NOTIFICATIONS: _ENTERPRISE,
    Capability.BULK_UPLOAD: _ENTERPRISE,
    Capability.ADVANCED_ROLES: _ENTERPRISE,
    Capability.MULTI_LOCATION: _ENTERPRISE,
    Capability.API_ACCESS: _ENTERPRISE,
    Capability.CUSTOM_BRANDING: _ENTERPRISE,
}

# None = unbounded. Only capacity-bounded capabilities appear here.
USAGE_LIMITS: Mapping[SubscriptionTier, Mapping[Capability, Optional[int]]] = {
    SubscriptionTier.STARTER: {Capability.MEMBER_MANAGEMENT: STARTER_MAX_MEMBERS},
    SubscriptionTier.GROWTH: {Capability.MEMBER_MANAGEMENT: None},
    SubscriptionTier.ENTERPRISE: {Capability.MEMBER_MANAGEMENT: None},
}


def default_max_members(tier: SubscriptionTier) -> Optional[int]:
    return USAGE_LIMITS.get(tier, {}).get(Capability.MEMBER_MANAGEMENT)


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    capability: Capability
    reason: Optional[str] = None
    limit: Optional[int] = None

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise PolicyDenied(self.reason or "Not permitted", capability=self.capability.value, limit=self.limit)


class TenantPolicyEvaluator:
    def __init__(self, tenants: TenantRepository):
        self._tenants = tenants

    def authorize(
        self,
        tenant_id: str,
        capability: Capability,
        current_usage: Optional[int] = None,
        *,
        now: Optional[datetime] = None,
    ) -> PolicyDecision:
        try:
            tenant = self._tenants.get_by_id(tenant_id)
        except Exception:
            logger.exception("Tenant lookup failed during policy check tenant=%s", tenant_id)
            return PolicyDecision(False, capability, reason="Tenant could not be verified")

        if tenant is None:
            return PolicyDecision(False, capability, reason="Tenant not found")

        # During trial, all features are available.
        if tenant.is_trial_active(now):
            return PolicyDecision(True, capability)

        tier = tenant.subscription_tier
        if tier == SubscriptionTier.SUSPENDED:
            return PolicyDecision(False, capability, reason="Subscription is suspended")

        if tier not in FEATURE_MATRIX.get(capability, frozenset()):
            return PolicyDecision(
                False,
                capability,
                reason=f"This feature requires a higher subscription tier. Current tier: {tier.value}",
            )

        if current_usage is None:
            return PolicyDecision(True, capability)

        limit = self.usage_limit(tenant, capability)
        if limit is not None and int(current_usage) >= limit:
            return PolicyDecision(
                False,
                capability,
                reason=f"Usage limit reached ({limit}). Upgrade your subscription for higher limits.",
                limit=limit,
            )
        return PolicyDecision(True, capability, limit=limit)

    def require(
        self,
        tenant_id: str,
        capability: Capability,
        current_usage: Optional[int] = None,
        *,
        now: Optional[datetime] = None,
    ) -> None:
        self.authorize(tenant_id, capability, current_usage, now=now).raise_if_denied()

    @staticmethod
    def usage_limit(tenant: Tenant, capability: Capability) -> Optional[int]:
        if capability == Capability.MEMBER_MANAGEMENT and tenant.max_members is not None:
            return int(tenant.max_members)
        return USAGE_LIMITS.get(tenant.subscription_tier, {}).get(capability)

    def feature_map(self, tenant_id: str, *, now: Optional[datetime] = None) -> dict[str, bool]:
        """Capability -> allowed, for the UI to hide gated features."""
        return {c.value: self.authorize(tenant_id, c, now=now).allowed for c in Capability}
