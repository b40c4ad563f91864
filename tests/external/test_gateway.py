from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from itertools import cycle

import pytest

from congregate.core.enums import CheckInMethod, CheckInStatus, StaffRole, SubscriptionTier
from congregate.core.exceptions import (
    AuthorizationError,
    ExternalCheckInUnavailable,
    NotFoundError,
    RateLimited,
    ValidationError,
)
from congregate.external.gateway import URL_TOKEN_ALPHABET, ExternalCheckInGateway, generate_pin, generate_url_token
from congregate.external.rate_limit import RateLimiter

NOW = datetime(2024, 6, 2, 15, 0, tzinfo=timezone.utc)
ADMIN = StaffRole.ADMIN


def _gateway(world, tokens, pins):
    token_iter, pin_iter = iter(tokens), iter(pins)
    return ExternalCheckInGateway(
        world.gatherings,
        world.tenants,
        world.members,
        world.container.check_in_service,
        RateLimiter(world.rate_limits, max_attempts=5, window_minutes=15),
        public_base_url="https://checkin.example.org/",
        token_factory=lambda: next(token_iter),
        pin_factory=lambda: next(pin_iter),
    )


def test_generated_credentials_have_expected_shape():
    for _ in range(20):
        token = generate_url_token()
        pin = generate_pin()
        assert len(token) == 16 and set(token) <= set(URL_TOKEN_ALPHABET)
        assert len(pin) == 6 and pin.isdigit()


def test_enable_issues_token_pin_and_url(world):
    tenant = world.add_tenant()
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])

    settings = gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    assert settings.enabled
    assert settings.url_token == "A" * 16
    assert settings.pin == "483920"
    assert settings.full_url == "https://checkin.example.org/external-checkin/" + "A" * 16


def test_reenable_rotates_both_values_and_kills_old_pair(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = world.container.external_gateway

    first = gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)
    second = gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    assert second.url_token != first.url_token
    assert second.pin != first.pin
    with pytest.raises(ExternalCheckInUnavailable):
        gateway.submit(first.url_token, first.pin, member.member_id, now=NOW)
    assert gateway.submit(second.url_token, second.pin, member.member_id, now=NOW).accepted


def test_enable_retries_on_reused_values(world):
    tenant = world.add_tenant()
    gathering = world.add_gathering(tenant)
    other = world.add_gathering(tenant, "Youth Night")
    taken = "T" * 16
    world.gatherings.set_external_checkin(tenant.tenant_id, other.gathering_id, enabled=True, url_token=taken, pin="111111")
    world.gatherings.set_external_checkin(
        tenant.tenant_id, gathering.gathering_id, enabled=True, url_token="P" * 16, pin="222222"
    )
    gateway = _gateway(world, ["P" * 16, taken, "N" * 16], ["222222", "333333"])

    settings = gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    assert settings.url_token == "N" * 16
    assert settings.pin == "333333"


def test_enable_gives_up_when_no_unique_token(world):
    tenant = world.add_tenant()
    gathering = world.add_gathering(tenant)
    world.gatherings.set_external_checkin(
        tenant.tenant_id, gathering.gathering_id, enabled=True, url_token="S" * 16, pin="222222"
    )
    gateway = _gateway(world, cycle(["S" * 16]), ["123456"])

    with pytest.raises(RuntimeError):
        gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)


def test_toggle_is_admin_only(world):
    tenant = world.add_tenant()
    gathering = world.add_gathering(tenant)
    gateway = world.container.external_gateway

    with pytest.raises(AuthorizationError):
        gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=StaffRole.STAFF)
    with pytest.raises(ValidationError):
        gateway.set_enabled(tenant.tenant_id, gathering.gathering_id, "yes", current_role=ADMIN)


def test_disable_clears_credentials(world):
    tenant = world.add_tenant()
    gathering = world.add_gathering(tenant)
    gateway = world.container.external_gateway
    enabled = gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    gateway.set_enabled(tenant.tenant_id, gathering.gathering_id, False, current_role=ADMIN)

    view = gateway.admin_view(tenant.tenant_id, gathering.gathering_id)
    assert (view.enabled, view.url_token, view.pin, view.full_url) == (False, None, None, None)
    with pytest.raises(ExternalCheckInUnavailable):
        gateway.describe(enabled.url_token)


def test_describe_never_exposes_pin(world):
    tenant = world.add_tenant(name="Grace Chapel")
    gathering = world.add_gathering(tenant, "Sunday Service")
    settings = world.container.external_gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    info = world.container.external_gateway.describe(settings.url_token)

    assert info.name == "Sunday Service"
    assert info.church_name == "Grace Chapel"
    assert info.requires_pin is True
    assert settings.pin not in repr(info)


def test_wrong_pin_is_generic_and_writes_nothing(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    with pytest.raises(ExternalCheckInUnavailable) as exc:
        gateway.submit("A" * 16, "000000", member.member_id, now=NOW)

    assert str(exc.value) == ExternalCheckInUnavailable.MESSAGE
    assert world.attendance.all() == []
    assert len(world.rate_limits.rows) == 1


@pytest.mark.parametrize("token", ["short", "B" * 16, "A" * 17])
def test_unknown_links_use_the_same_message(world, token):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    with pytest.raises(ExternalCheckInUnavailable) as exc:
        gateway.submit(token, "483920", member.member_id, now=NOW)

    assert str(exc.value) == ExternalCheckInUnavailable.MESSAGE


def test_inactive_gathering_is_unavailable(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)
    world.gatherings.set_active(tenant.tenant_id, gathering.gathering_id, False)

    with pytest.raises(ExternalCheckInUnavailable):
        gateway.submit("A" * 16, "483920", member.member_id, now=NOW)


def test_correct_pin_checks_in_once(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    first = gateway.submit("A" * 16, "483920", member.member_id, now=NOW)
    second = gateway.submit("A" * 16, "483920", member.member_id, now=NOW + timedelta(minutes=5))

    assert first.accepted
    assert first.record.check_in_method == CheckInMethod.EXTERNAL
    assert first.record.gathering_id == gathering.gathering_id
    assert first.record.attendance_date == date(2024, 6, 2)
    assert second.status == CheckInStatus.DUPLICATE
    assert world.rate_limits.rows == []


def test_member_of_other_tenant_is_not_found(world):
    tenant = world.add_tenant()
    other = world.add_tenant(name="Other Church")
    outsider = world.add_member(other)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    with pytest.raises(NotFoundError):
        gateway.submit("A" * 16, "483920", outsider.member_id, now=NOW)


def test_policy_denial_is_hidden_from_public(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)
    world.container.tenant_service.suspend(tenant.tenant_id)

    with pytest.raises(ExternalCheckInUnavailable):
        gateway.submit("A" * 16, "483920", member.member_id, now=NOW)


def test_missing_pin_is_a_validation_error(world):
    with pytest.raises(ValidationError):
        world.container.external_gateway.submit("A" * 16, "", "m1", now=NOW)


@pytest.mark.parametrize("pin", ["12345", "12ab", "12345a", "1234567"])
def test_malformed_pin_is_a_generic_rejection(world, pin):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    with pytest.raises(ExternalCheckInUnavailable) as exc:
        gateway.submit("A" * 16, pin, member.member_id, now=NOW)

    assert str(exc.value) == ExternalCheckInUnavailable.MESSAGE
    assert world.attendance.all() == []
    assert len(world.rate_limits.rows) == 1


def test_malformed_pin_on_unknown_link_is_generic(world):
    with pytest.raises(ExternalCheckInUnavailable):
        world.container.external_gateway.submit("B" * 16, "12ab", "m1", now=NOW)
    assert len(world.rate_limits.rows) == 1


def test_repeated_failures_are_rate_limited(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    gateway = _gateway(world, ["A" * 16], ["483920"])
    gateway.enable(tenant.tenant_id, gathering.gathering_id, current_role=ADMIN)

    for i in range(5):
        with pytest.raises(ExternalCheckInUnavailable):
            gateway.submit("A" * 16, "000000", member.member_id, now=NOW + timedelta(seconds=i))

    with pytest.raises(RateLimited) as exc:
        gateway.submit("A" * 16, "483920", member.member_id, now=NOW + timedelta(minutes=1))
    assert 0 < exc.value.retry_after <= 15 * 60

    later = NOW + timedelta(minutes=16)
    assert gateway.submit("A" * 16, "483920", member.member_id, now=later).accepted
