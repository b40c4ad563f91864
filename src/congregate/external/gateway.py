"""Self-service external check-in (opaque URL token + 6-digit PIN).

Public callers only ever see one rejection message for unknown links,
disabled links and wrong PINs. Failed PIN attempts are rate-limited per URL
token.
"""
from __future__ import annotations

import hmac
import logging
import secrets
import string
from datetime import datetime
from typing import Callable, Optional

from ..attendance.model import CheckInOutcome, MemberRef
from ..attendance.service import CheckInService
from ..common.datetime_utils import now_utc
from ..core.constants import EXTERNAL_PIN_LENGTH, EXTERNAL_URL_TOKEN_LENGTH
from ..core.enums import CheckInMethod, StaffRole
from ..core.exceptions import (
    AuthorizationError,
    ExternalCheckInUnavailable,
    NotFoundError,
    PolicyDenied,
    RateLimited,
    ValidationError,
)
from ..gatherings.model import Gathering
from ..gatherings.repository import GatheringRepository
from ..members.repository import MemberRepository
from ..tenants.repository import TenantRepository
from .model import ExternalCheckInSettings, PublicGatheringInfo
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

URL_TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"
PIN_ACTION = "external_checkin_pin"
_MAX_TOKEN_TRIES = 5


def generate_url_token() -> str:
    return "".join(secrets.choice(URL_TOKEN_ALPHABET) for _ in range(EXTERNAL_URL_TOKEN_LENGTH))


def generate_pin() -> str:
    floor = 10 ** (EXTERNAL_PIN_LENGTH - 1)
    return str(floor + secrets.randbelow(9 * floor))


class ExternalCheckInGateway:
    def __init__(
        self,
        gatherings: GatheringRepository,
        tenants: TenantRepository,
        members: MemberRepository,
        engine: CheckInService,
        limiter: RateLimiter,
        *,
        public_base_url: str,
        token_factory: Callable[[], str] = generate_url_token,
        pin_factory: Callable[[], str] = generate_pin,
    ):
        self._gatherings = gatherings
        self._tenants = tenants
        self._members = members
        self._engine = engine
        self._limiter = limiter
        self._public_base_url = (public_base_url or "").rstrip("/")
        self._token_factory = token_factory
        self._pin_factory = pin_factory

    # --- staff side ------------------------------------------------------------------------

    def full_url(self, url_token: Optional[str]) -> Optional[str]:
        if not url_token:
            return None
        return f"{self._public_base_url}/external-checkin/{url_token}"

    def enable(self, tenant_id: str, gathering_id: str, *, current_role: StaffRole) -> ExternalCheckInSettings:
        """(Re-)enable: always issues a fresh URL token and PIN, killing the old pair."""
        self._require_admin(current_role)
        gathering = self._require_gathering(tenant_id, gathering_id)

        url_token = self._new_url_token(previous=gathering.external_checkin_url)
        pin = self._pin_factory()
        while pin == gathering.external_checkin_pin:
            pin = self._pin_factory()

        self._gatherings.set_external_checkin(tenant_id, gathering_id, enabled=True, url_token=url_token, pin=pin)
        logger.info("External check-in enabled tenant=%s gathering=%s", tenant_id, gathering_id)
        return ExternalCheckInSettings(gathering_id, True, url_token, pin, self.full_url(url_token))

    def disable(self, tenant_id: str, gathering_id: str, *, current_role: StaffRole) -> ExternalCheckInSettings:
        self._require_admin(current_role)
        self._require_gathering(tenant_id, gathering_id)
        self._gatherings.set_external_checkin(tenant_id, gathering_id, enabled=False, url_token=None, pin=None)
        logger.info("External check-in disabled tenant=%s gathering=%s", tenant_id, gathering_id)
        return ExternalCheckInSettings(gathering_id, False, None, None, None)

    def set_enabled(
        self, tenant_id: str, gathering_id: str, enabled: bool, *, current_role: StaffRole
    ) -> ExternalCheckInSettings:
        if not isinstance(enabled, bool):
            raise ValidationError("enabled must be a boolean")
        if enabled:
            return self.enable(tenant_id, gathering_id, current_role=current_role)
        return self.disable(tenant_id, gathering_id, current_role=current_role)

    def admin_view(self, tenant_id: str, gathering_id: str) -> ExternalCheckInSettings:
        g = self._require_gathering(tenant_id, gathering_id)
        return ExternalCheckInSettings(
            gathering_id=g.gathering_id,
            enabled=bool(g.external_checkin_enabled),
            url_token=g.external_checkin_url,
            pin=g.external_checkin_pin,
            full_url=self.full_url(g.external_checkin_url),
        )

    # --- public side -----------------------------------------------------------------------

    def describe(self, url_token: str) -> PublicGatheringInfo:
        gathering = self._open_gathering(url_token)
        tenant = self._tenants.get_by_id(gathering.tenant_id)
        if tenant is None:
            raise ExternalCheckInUnavailable()
        return PublicGatheringInfo(
            gathering_id=gathering.gathering_id,
            name=gathering.name,
            gathering_type=gathering.gathering_type,
            location=gathering.location,
            church_name=tenant.name,
            church_brand_color=tenant.brand_color,
        )

    def submit(
        self,
        url_token: str,
        pin: str,
        member_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> CheckInOutcome:
        now = now or now_utc()
        url_token = (url_token or "").strip()
        pin = (pin or "").strip()
        member_id = (member_id or "").strip()
        if not pin or not member_id:
            raise ValidationError("PIN and member ID are required")

        decision = self._limiter.check(url_token, PIN_ACTION, now=now)
        if not decision.allowed:
            logger.warning("External check-in rate limited token=%s...", url_token[:4])
            raise RateLimited(decision.retry_after or 0)

        try:
            gathering = self._open_gathering(url_token)
        except ExternalCheckInUnavailable:
            self._limiter.record(url_token, PIN_ACTION, now=now)
            raise

        stored = gathering.external_checkin_pin or ""
        if not stored or not hmac.compare_digest(pin.encode("utf-8"), stored.encode("utf-8")):
            self._limiter.record(url_token, PIN_ACTION, now=now, tenant_id=gathering.tenant_id)
            raise ExternalCheckInUnavailable()

        if self._members.get_by_id(gathering.tenant_id, member_id) is None:
            raise NotFoundError("member", member_id)

        try:
            return self._engine.check_in(
                gathering.tenant_id,
                MemberRef(member_id),
                gathering_id=gathering.gathering_id,
                method=CheckInMethod.EXTERNAL,
                now=now,
            )
        except PolicyDenied as e:
            # Tier details are not for anonymous callers.
            logger.info("External check-in denied by policy tenant=%s: %s", gathering.tenant_id, e.reason)
            raise ExternalCheckInUnavailable() from e

    # --- internals -------------------------------------------------------------------------

    @staticmethod
    def _require_admin(current_role: StaffRole) -> None:
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can change external check-in")

    def _require_gathering(self, tenant_id: str, gathering_id: str) -> Gathering:
        gathering = self._gatherings.get_by_id(tenant_id, gathering_id)
        if gathering is None:
            raise NotFoundError("gathering", gathering_id)
        return gathering

    def _open_gathering(self, url_token: str) -> Gathering:
        if len(url_token or "") != EXTERNAL_URL_TOKEN_LENGTH:
            raise ExternalCheckInUnavailable()
        gathering = self._gatherings.get_by_external_url(url_token)
        if gathering is None or not gathering.external_checkin_enabled or not gathering.is_active:
            raise ExternalCheckInUnavailable()
        return gathering

    def _new_url_token(self, *, previous: Optional[str]) -> str:
        for _ in range(_MAX_TOKEN_TRIES):
            token = self._token_factory()
            if token != previous and self._gatherings.get_by_external_url(token) is None:
                return token
        raise RuntimeError("Could not allocate a unique external check-in URL")
