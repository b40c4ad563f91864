from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from congregate.attendance.model import MemberRef
from congregate.core.enums import ContactMethod, NotificationChannel, StaffRole, SubscriptionTier
from congregate.core.exceptions import NotFoundError, PolicyDenied, ValidationError
from congregate.followup.model import FollowUpRecord
from congregate.followup.service import FollowUpTracker

SUNDAY = date(2024, 6, 2)
NOW = datetime(2024, 6, 2, 15, 0, tzinfo=timezone.utc)


def _weeks(n, hour=6):
    """Sunday morning scan time, ``n`` weeks on."""
    return datetime(2024, 6, 2, hour, 0, tzinfo=timezone.utc) + timedelta(days=7 * n)


def test_first_scan_only_sets_baseline(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)

    summary = world.container.follow_up_tracker.scan_absences(tenant.tenant_id, now=_weeks(0))

    record = world.follow_ups.get(tenant.tenant_id, member.member_id)
    assert summary.baselined == 1
    assert summary.incremented == 0
    assert record.consecutive_absences == 0
    assert record.last_scan_date == SUNDAY
    assert record.last_scan_at == _weeks(0)


def test_three_missed_cycles_flag_member(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    tracker = world.container.follow_up_tracker

    for n in range(3):
        tracker.scan_absences(tenant.tenant_id, now=_weeks(n))
    assert tracker.get_record(tenant.tenant_id, member.member_id).consecutive_absences == 2
    assert not tracker.get_record(tenant.tenant_id, member.member_id).needs_follow_up

    summary = tracker.scan_absences(tenant.tenant_id, now=_weeks(3))

    record = tracker.get_record(tenant.tenant_id, member.member_id)
    assert record.consecutive_absences == 3
    assert record.needs_follow_up
    assert summary.flagged == 1
    assert [item.member.member_id for item in tracker.needing_follow_up(tenant.tenant_id)] == [member.member_id]


def test_rescan_inside_cycle_is_a_no_op(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    tracker = world.container.follow_up_tracker

    tracker.scan_absences(tenant.tenant_id, now=_weeks(0))
    tracker.scan_absences(tenant.tenant_id, now=_weeks(1))
    summary = tracker.scan_absences(tenant.tenant_id, now=_weeks(1) + timedelta(days=3))

    assert summary.skipped == 1
    assert summary.incremented == 0
    assert tracker.get_record(tenant.tenant_id, member.member_id).consecutive_absences == 1


def test_attendance_between_scans_resets_counter(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    tracker = world.container.follow_up_tracker
    for n in range(3):
        tracker.scan_absences(tenant.tenant_id, now=_weeks(n))

    world.container.check_in_service.record_historical(
        tenant.tenant_id,
        MemberRef(member.member_id),
        attendance_date=SUNDAY + timedelta(days=17),
        current_role=StaffRole.ADMIN,
        now=_weeks(2) + timedelta(days=4),
    )
    summary = tracker.scan_absences(tenant.tenant_id, now=_weeks(3))

    record = tracker.get_record(tenant.tenant_id, member.member_id)
    assert record.consecutive_absences == 0
    assert record.last_attendance_date == SUNDAY + timedelta(days=17)
    assert summary.reset == 1


def test_check_in_after_same_day_scan_counts_for_next_cycle(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    tracker = world.container.follow_up_tracker
    tracker.scan_absences(tenant.tenant_id, now=_weeks(0))
    tracker.scan_absences(tenant.tenant_id, now=_weeks(1))

    # Service starts after the morning scan
    world.container.check_in_service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=_weeks(1, hour=10))
    summary = tracker.scan_absences(tenant.tenant_id, now=_weeks(2))

    assert tracker.get_record(tenant.tenant_id, member.member_id).consecutive_absences == 0
    assert summary.reset == 1


def test_check_in_before_scan_is_not_counted_twice(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    tracker = world.container.follow_up_tracker
    tracker.scan_absences(tenant.tenant_id, now=_weeks(0))

    world.container.check_in_service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=_weeks(1, hour=5))
    tracker.scan_absences(tenant.tenant_id, now=_weeks(1))
    assert tracker.get_record(tenant.tenant_id, member.member_id).consecutive_absences == 0

    summary = tracker.scan_absences(tenant.tenant_id, now=_weeks(2))

    assert tracker.get_record(tenant.tenant_id, member.member_id).consecutive_absences == 1
    assert summary.incremented == 1


def test_scan_date_follows_tenant_timezone(world):
    tenant = world.add_tenant(timezone_name="Pacific/Auckland")
    world.add_member(tenant)

    # 20:00 UTC on Saturday is already Sunday morning in Auckland
    summary = world.container.follow_up_tracker.scan_absences(
        tenant.tenant_id, now=datetime(2024, 6, 1, 20, 0, tzinfo=timezone.utc)
    )

    assert summary.scan_date == SUNDAY


def test_scan_unknown_tenant(world):
    with pytest.raises(NotFoundError):
        world.container.follow_up_tracker.scan_absences("no-such-tenant", now=_weeks(0))


def test_check_in_clears_flag(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    world.follow_ups.save(
        FollowUpRecord(member_id=member.member_id, tenant_id=tenant.tenant_id, consecutive_absences=5, needs_follow_up=True)
    )

    world.container.check_in_service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=NOW)

    assert world.container.follow_up_tracker.needing_follow_up(tenant.tenant_id) == []


def test_retired_members_are_not_scanned(world):
    tenant = world.add_tenant()
    world.add_member(tenant, current=False)

    summary = world.container.follow_up_tracker.scan_absences(tenant.tenant_id, now=_weeks(0))

    assert summary.scanned == 0


def _flagged(world, tier=SubscriptionTier.GROWTH, **member_kwargs):
    tenant = world.add_tenant(tier)
    member = world.add_member(tenant, **member_kwargs)
    world.follow_ups.save(
        FollowUpRecord(member_id=member.member_id, tenant_id=tenant.tenant_id, consecutive_absences=3, needs_follow_up=True)
    )
    return tenant, member


def test_contact_clears_flag_but_keeps_counter(world):
    tenant, member = _flagged(world)

    outcome = world.container.follow_up_tracker.record_contact(
        tenant.tenant_id, member.member_id, ContactMethod.CALL, now=NOW
    )

    assert outcome.notification_sent is None
    assert outcome.record.needs_follow_up is False
    assert outcome.record.consecutive_absences == 3
    assert outcome.record.last_contact_at == NOW
    assert outcome.record.contact_method == ContactMethod.CALL
    assert world.dispatcher.sent == []


def test_email_contact_dispatches(world):
    tenant, member = _flagged(world, email="ama@example.org")

    outcome = world.container.follow_up_tracker.record_contact(
        tenant.tenant_id, member.member_id, ContactMethod.EMAIL, message="We missed you on Sunday", now=NOW
    )

    assert outcome.notification_sent is True
    assert world.dispatcher.sent == [
        (tenant.tenant_id, NotificationChannel.EMAIL, "ama@example.org", "We missed you on Sunday")
    ]


def test_sms_is_gated_below_enterprise(world):
    tenant, member = _flagged(world)

    outcome = world.container.follow_up_tracker.record_contact(
        tenant.tenant_id, member.member_id, ContactMethod.SMS, message="Hello", now=NOW
    )

    assert outcome.notification_sent is None
    assert outcome.record.needs_follow_up is False
    assert world.dispatcher.sent == []


def test_sms_on_enterprise_uses_phone(world):
    tenant, member = _flagged(world, SubscriptionTier.ENTERPRISE, phone="0241234567")

    world.container.follow_up_tracker.record_contact(
        tenant.tenant_id, member.member_id, ContactMethod.SMS, message="Hello", now=NOW
    )

    assert world.dispatcher.sent[0][1:3] == (NotificationChannel.SMS, "0241234567")


def test_delivery_failure_does_not_undo_contact(world):
    tenant, member = _flagged(world, email="ama@example.org")
    world.dispatcher.fail_with = RuntimeError("smtp down")

    outcome = world.container.follow_up_tracker.record_contact(
        tenant.tenant_id, member.member_id, ContactMethod.EMAIL, message="Hi", now=NOW
    )

    assert outcome.notification_sent is False
    assert world.follow_ups.get(tenant.tenant_id, member.member_id).needs_follow_up is False


def test_missing_address_reports_not_sent(world):
    tenant, member = _flagged(world, email=None)

    outcome = world.container.follow_up_tracker.record_contact(
        tenant.tenant_id, member.member_id, ContactMethod.EMAIL, message="Hi", now=NOW
    )

    assert outcome.notification_sent is False


def test_message_required_for_written_contact(world):
    tenant, member = _flagged(world)

    with pytest.raises(ValidationError):
        world.container.follow_up_tracker.record_contact(tenant.tenant_id, member.member_id, ContactMethod.EMAIL, now=NOW)
    assert world.follow_ups.get(tenant.tenant_id, member.member_id).needs_follow_up is True


def test_contact_unknown_member(world):
    tenant = world.add_tenant()

    with pytest.raises(NotFoundError):
        world.container.follow_up_tracker.record_contact(tenant.tenant_id, "nobody", ContactMethod.CALL, now=NOW)


def test_queue_needs_growth(world):
    tenant = world.add_tenant(SubscriptionTier.STARTER)

    with pytest.raises(PolicyDenied):
        world.container.follow_up_tracker.needing_follow_up(tenant.tenant_id)


def test_invalid_configuration(world):
    with pytest.raises(ValueError):
        FollowUpTracker(
            world.follow_ups, world.members, world.attendance, world.tenants, world.container.policy, world.dispatcher, threshold=0
        )
