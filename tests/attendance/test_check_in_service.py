from __future__ import annotations

import threading
from datetime import date, datetime, timezone

import pytest

from congregate.attendance.model import MemberRef, VisitorRef
from congregate.core.enums import AgeGroup, CheckInMethod, CheckInStatus, Gender, StaffRole, SubscriptionTier
from congregate.core.exceptions import (
    AuthorizationError,
    GatheringInactiveError,
    InvalidCredential,
    MalformedRequest,
    NotFoundError,
    PolicyDenied,
    ValidationError,
)
from congregate.followup.model import FollowUpRecord
from congregate.members.model import NewVisitor, Unidentified

NOW = datetime(2024, 6, 2, 15, 0, tzinfo=timezone.utc)


def test_first_check_in_is_accepted_then_duplicate(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    service = world.container.check_in_service

    first = service.check_in(tenant.tenant_id, MemberRef(member.member_id), gathering_id=gathering.gathering_id, now=NOW)
    later = NOW.replace(hour=16)
    second = service.check_in(
        tenant.tenant_id, MemberRef(member.member_id), gathering_id=gathering.gathering_id, now=later
    )

    assert first.status == CheckInStatus.ACCEPTED
    assert first.record.attendance_date == date(2024, 6, 2)
    assert first.display_name == "Ama Mensah"
    assert second.status == CheckInStatus.DUPLICATE
    assert second.record.record_id == first.record.record_id
    assert second.record.checked_in_at == NOW
    assert len(world.attendance.all()) == 1


def test_same_member_different_gatherings_are_separate(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    morning = world.add_gathering(tenant, "First Service")
    evening = world.add_gathering(tenant, "Evening Service")
    service = world.container.check_in_service

    a = service.check_in(tenant.tenant_id, MemberRef(member.member_id), gathering_id=morning.gathering_id, now=NOW)
    b = service.check_in(tenant.tenant_id, MemberRef(member.member_id), gathering_id=evening.gathering_id, now=NOW)

    assert a.accepted and b.accepted


def test_concurrent_check_ins_create_one_record(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    gathering = world.add_gathering(tenant)
    service = world.container.check_in_service
    barrier = threading.Barrier(8)
    outcomes = []

    def attempt():
        barrier.wait()
        outcomes.append(
            service.check_in(
                tenant.tenant_id, MemberRef(member.member_id), gathering_id=gathering.gathering_id, now=NOW
            )
        )

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(outcomes) == 8
    assert sum(1 for o in outcomes if o.accepted) == 1
    assert len({o.record.record_id for o in outcomes}) == 1
    assert len(world.attendance.all()) == 1


def test_lost_insert_race_reports_existing_record(world, monkeypatch):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    service = world.container.check_in_service
    winner = service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=NOW)

    real_get = world.attendance.get_by_key
    calls = []

    def stale_then_real(key):
        calls.append(key)
        return None if len(calls) == 1 else real_get(key)

    monkeypatch.setattr(world.attendance, "get_by_key", stale_then_real)

    loser = service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=NOW)

    assert loser.status == CheckInStatus.DUPLICATE
    assert loser.record.record_id == winner.record.record_id
    assert len(world.attendance.all()) == 1


def test_check_in_date_uses_tenant_timezone(world):
    tenant = world.add_tenant(timezone_name="America/Los_Angeles")
    member = world.add_member(tenant)

    early_utc = datetime(2024, 6, 2, 3, 0, tzinfo=timezone.utc)
    outcome = world.container.check_in_service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=early_utc)

    assert outcome.record.attendance_date == date(2024, 6, 1)


def test_new_visitor_is_created_and_denormalized(world):
    tenant = world.add_tenant()
    gathering = world.add_gathering(tenant)
    visitor = NewVisitor(first_name="Yaw", surname="Darko", gender=Gender.MALE, age_group=AgeGroup.ADULT)

    outcome = world.container.check_in_service.check_in(
        tenant.tenant_id, visitor, gathering_id=gathering.gathering_id, now=NOW
    )

    record = outcome.record
    assert outcome.accepted
    assert record.is_guest
    assert record.member_id is None
    assert record.check_in_method == CheckInMethod.VISITOR
    assert record.visitor_name == "Yaw Darko"
    assert record.visitor_gender == Gender.MALE
    assert record.visitor_age_group == AgeGroup.ADULT
    assert world.visitors.get_by_id(tenant.tenant_id, record.visitor_id) is not None


def test_returning_visitor_is_deduplicated(world):
    tenant = world.add_tenant()
    service = world.container.check_in_service
    first = service.check_in(
        tenant.tenant_id,
        NewVisitor(first_name="Yaw", surname="Darko", gender=Gender.MALE, age_group=AgeGroup.ADULT),
        now=NOW,
    )

    again = service.check_in(tenant.tenant_id, VisitorRef(first.record.visitor_id), now=NOW)

    assert again.status == CheckInStatus.DUPLICATE


def test_visitor_check_in_needs_growth_tier(world):
    tenant = world.add_tenant(SubscriptionTier.STARTER)
    visitor = NewVisitor(first_name="Yaw", surname="", gender=Gender.MALE, age_group=AgeGroup.ADULT)

    with pytest.raises(PolicyDenied):
        world.container.check_in_service.check_in(tenant.tenant_id, visitor, now=NOW)
    assert world.visitors.list_for_tenant(tenant.tenant_id) == []


def test_member_reference_with_visitor_method_is_malformed(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)

    with pytest.raises(MalformedRequest):
        world.container.check_in_service.check_in(
            tenant.tenant_id, MemberRef(member.member_id), method=CheckInMethod.VISITOR, now=NOW
        )


def test_inactive_and_unknown_gatherings_are_rejected(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    closed = world.add_gathering(tenant, active=False)
    service = world.container.check_in_service

    with pytest.raises(GatheringInactiveError):
        service.check_in(tenant.tenant_id, MemberRef(member.member_id), gathering_id=closed.gathering_id, now=NOW)
    with pytest.raises(NotFoundError):
        service.check_in(tenant.tenant_id, MemberRef(member.member_id), gathering_id="missing", now=NOW)
    assert world.attendance.all() == []


def test_gathering_of_another_tenant_is_not_found(world):
    tenant = world.add_tenant()
    other = world.add_tenant(name="Other Church")
    member = world.add_member(tenant)
    foreign = world.add_gathering(other)

    with pytest.raises(NotFoundError):
        world.container.check_in_service.check_in(
            tenant.tenant_id, MemberRef(member.member_id), gathering_id=foreign.gathering_id, now=NOW
        )


def test_unknown_and_retired_members(world):
    tenant = world.add_tenant()
    retired = world.add_member(tenant, current=False)
    service = world.container.check_in_service

    with pytest.raises(NotFoundError):
        service.check_in(tenant.tenant_id, MemberRef("nobody"), now=NOW)
    with pytest.raises(ValidationError):
        service.check_in(tenant.tenant_id, MemberRef(retired.member_id), now=NOW)


def test_suspended_tenant_cannot_check_in(world):
    tenant = world.add_tenant(SubscriptionTier.SUSPENDED)
    member = world.add_member(tenant)

    with pytest.raises(PolicyDenied):
        world.container.check_in_service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=NOW)


def test_biometric_check_in(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant, biometric_token="fp-001")
    service = world.container.check_in_service

    outcome = service.check_in_biometric(tenant.tenant_id, "fp-001", now=NOW)
    unknown = service.check_in_biometric(tenant.tenant_id, "fp-404", now=NOW)

    assert outcome.accepted
    assert outcome.record.member_id == member.member_id
    assert outcome.record.check_in_method == CheckInMethod.FINGERPRINT
    assert unknown == Unidentified("fp-404")
    with pytest.raises(InvalidCredential):
        service.check_in_biometric(tenant.tenant_id, "", now=NOW)


def test_check_in_resets_follow_up_state(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    world.follow_ups.save(
        FollowUpRecord(member_id=member.member_id, tenant_id=tenant.tenant_id, consecutive_absences=4, needs_follow_up=True)
    )

    world.container.check_in_service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=NOW)

    record = world.follow_ups.get(tenant.tenant_id, member.member_id)
    assert record.consecutive_absences == 0
    assert record.needs_follow_up is False
    assert record.last_attendance_date == date(2024, 6, 2)


def test_follow_up_failure_does_not_undo_check_in(world, monkeypatch):
    tenant = world.add_tenant()
    member = world.add_member(tenant)

    def boom(record):
        raise RuntimeError("follow-up store unavailable")

    monkeypatch.setattr(world.follow_ups, "save", boom)

    outcome = world.container.check_in_service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=NOW)

    assert outcome.accepted
    assert len(world.attendance.all()) == 1


def test_historical_entry_is_admin_only_and_not_in_future(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    closed = world.add_gathering(tenant, active=False)
    service = world.container.check_in_service

    with pytest.raises(AuthorizationError):
        service.record_historical(
            tenant.tenant_id, MemberRef(member.member_id), attendance_date=date(2024, 5, 26), current_role=StaffRole.STAFF, now=NOW
        )
    with pytest.raises(ValidationError):
        service.record_historical(
            tenant.tenant_id, MemberRef(member.member_id), attendance_date=date(2024, 6, 3), current_role=StaffRole.ADMIN, now=NOW
        )

    outcome = service.record_historical(
        tenant.tenant_id,
        MemberRef(member.member_id),
        attendance_date=date(2024, 5, 26),
        current_role=StaffRole.ADMIN,
        gathering_id=closed.gathering_id,
        now=NOW,
    )
    assert outcome.accepted
    assert outcome.record.attendance_date == date(2024, 5, 26)


def test_delete_record_is_admin_only(world):
    tenant = world.add_tenant()
    member = world.add_member(tenant)
    service = world.container.check_in_service
    outcome = service.check_in(tenant.tenant_id, MemberRef(member.member_id), now=NOW)

    with pytest.raises(AuthorizationError):
        service.delete_record(tenant.tenant_id, outcome.record.record_id, current_role=StaffRole.STAFF)

    service.delete_record(tenant.tenant_id, outcome.record.record_id, current_role=StaffRole.ADMIN)

    assert world.attendance.all() == []
    with pytest.raises(NotFoundError):
        service.delete_record(tenant.tenant_id, outcome.record.record_id, current_role=StaffRole.ADMIN)


def test_list_for_gathering(world):
    tenant = world.add_tenant()
    gathering = world.add_gathering(tenant)
    a = world.add_member(tenant, "Ama")
    b = world.add_member(tenant, "Kojo")
    service = world.container.check_in_service
    for m in (a, b):
        service.check_in(tenant.tenant_id, MemberRef(m.member_id), gathering_id=gathering.gathering_id, now=NOW)

    records = service.list_for_gathering(tenant.tenant_id, gathering.gathering_id, attendance_date=date(2024, 6, 2))

    assert {r.member_id for r in records} == {a.member_id, b.member_id}
