from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from werkzeug.security import generate_password_hash

from ..common.datetime_utils import now_utc
from ..common.ids import new_id
from ..common.validators import optional_str, require_min_length, require_non_empty
from ..core.constants import DEFAULT_TIMEZONE, DEFAULT_TRIAL_DAYS, MAX_KIOSK_TIMEOUT_MINUTES
from ..core.enums import StaffRole, SubscriptionTier
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..members.repository import MemberRepository
from ..staff.model import StaffUser
from ..staff.repository import StaffRepository
from .model import SubscriptionStatus, Tenant
from .policy import default_max_members
from .repository import TenantRepository

logger = logging.getLogger(__name__)


class TenantService:
    """Tenant lifecycle: registration, subscription changes, kiosk settings, factory reset."""

    def __init__(
        self,
        tenants: TenantRepository,
        staff: StaffRepository,
        members: MemberRepository,
        *,
        trial_days: int = DEFAULT_TRIAL_DAYS,
    ):
        self._tenants = tenants
        self._staff = staff
        self._members = members
        self._trial_days = int(trial_days)

    def get(self, tenant_id: str) -> Tenant:
        tenant = self._tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("tenant", tenant_id)
        return tenant

    def register(
        self,
        *,
        church_name: str,
        admin_email: str,
        admin_password: str,
        admin_full_name: str,
        timezone: str = DEFAULT_TIMEZONE,
        brand_color: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Tenant, StaffUser]:
        church_name = require_non_empty(church_name, "Church name")
        email = require_non_empty(admin_email, "Email").lower()
        if "@" not in email:
            raise ValidationError("Email is not valid")
        full_name = require_non_empty(admin_full_name, "Full name")
        require_min_length(admin_password, "Password", 8)
        tz = self._validate_timezone(timezone)

        if self._staff.get_by_email(email) is not None:
            raise ConflictError("An account with this email already exists")

        now = now or now_utc()
        tenant = Tenant(
            tenant_id=new_id(),
            name=church_name,
            subscription_tier=SubscriptionTier.TRIAL,
            trial_start=now,
            trial_end=now + timedelta(days=self._trial_days),
            max_members=None,
            timezone=tz,
            brand_color=optional_str(brand_color),
        )
        admin = StaffUser(
            staff_id=new_id(),
            tenant_id=tenant.tenant_id,
            email=email,
            full_name=full_name,
            password_hash=generate_password_hash(admin_password),
            role=StaffRole.ADMIN,
        )
        self._tenants.create(tenant)
        self._staff.create(admin)
        logger.info("Tenant registered tenant=%s trial_end=%s", tenant.tenant_id, tenant.trial_end.isoformat())
        return tenant, admin

    def apply_subscription_change(self, tenant_id: str, tier: SubscriptionTier) -> Tenant:
        """Called when the billing collaborator reports a new tier."""
        tenant = self.get(tenant_id)
        if tier == SubscriptionTier.TRIAL:
            raise ValidationError("A trial can only start at registration")

        max_members = tenant.max_members if tier == SubscriptionTier.SUSPENDED else default_max_members(tier)
        self._tenants.update_subscription(tenant_id, tier=tier, max_members=max_members)
        logger.info("Subscription changed tenant=%s %s -> %s", tenant_id, tenant.subscription_tier.value, tier.value)
        return replace(tenant, subscription_tier=tier, max_members=max_members)

    def suspend(self, tenant_id: str) -> Tenant:
        return self.apply_subscription_change(tenant_id, SubscriptionTier.SUSPENDED)

    def subscription_status(self, tenant_id: str, *, now: Optional[datetime] = None) -> SubscriptionStatus:
        tenant = self.get(tenant_id)
        count = self._members.count_for_tenant(tenant_id)
        limit = tenant.max_members
        if limit is None and not tenant.is_trial_active(now):
            limit = default_max_members(tenant.subscription_tier)
        percent = round(count * 100 / limit) if limit else 0
        return SubscriptionStatus(
            tenant_id=tenant_id,
            subscription_tier=tenant.subscription_tier,
            is_trial_active=tenant.is_trial_active(now),
            trial_days_remaining=tenant.trial_days_remaining(now),
            member_count=count,
            max_members=limit,
            member_usage_percent=percent,
        )

    def update_kiosk_settings(
        self,
        tenant_id: str,
        *,
        enabled: bool,
        timeout_minutes: int,
        current_role: StaffRole,
    ) -> Tenant:
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can change kiosk settings")
        tenant = self.get(tenant_id)
        try:
            timeout = int(timeout_minutes)
        except (TypeError, ValueError):
            raise ValidationError("Kiosk timeout must be a number of minutes")
        if timeout < 1 or timeout > MAX_KIOSK_TIMEOUT_MINUTES:
            raise ValidationError(f"Kiosk timeout must be between 1 and {MAX_KIOSK_TIMEOUT_MINUTES} minutes")

        self._tenants.update_kiosk_settings(tenant_id, enabled=bool(enabled), timeout_minutes=timeout)
        return replace(tenant, kiosk_mode_enabled=bool(enabled), kiosk_session_timeout=timeout)

    def factory_reset(self, tenant_id: str, *, current_role: StaffRole) -> None:
        """Wipe tenant data but keep the tenant row and its staff accounts."""
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can reset tenant data")
        self.get(tenant_id)
        self._tenants.factory_reset(tenant_id)
        logger.warning("Factory reset completed tenant=%s", tenant_id)

    @staticmethod
    def _validate_timezone(value: Optional[str]) -> str:
        tz = (value or "").strip() or DEFAULT_TIMEZONE
        try:
            ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError(f"Unknown timezone: {tz}")
        return tz
