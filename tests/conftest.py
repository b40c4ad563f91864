from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from typing import Optional

import pytest
from werkzeug.security import generate_password_hash

from congregate.attendance.model import AttendanceRecord
from congregate.common.ids import new_id
from congregate.container import Container, wire_container
from congregate.core.enums import AgeGroup, Gender, NotificationChannel, RelationshipToHead, StaffRole, SubscriptionTier
from congregate.core.exceptions import ConflictError
from congregate.followup.model import FollowUpRecord
from congregate.gatherings.model import Gathering
from congregate.members.model import Member, Visitor
from congregate.staff.model import StaffUser
from congregate.tenants.model import Tenant


class InMemoryTenants:
    def __init__(self, on_reset=None):
        self._by_id: dict[str, Tenant] = {}
        self._on_reset = on_reset

    def get_by_id(self, tenant_id: str) -> Optional[Tenant]:
        return self._by_id.get(tenant_id)

    def create(self, tenant: Tenant) -> None:
        self._by_id[tenant.tenant_id] = tenant

    def list_tenant_ids(self):
        return list(self._by_id)

    def update_subscription(self, tenant_id, *, tier, max_members) -> bool:
        t = self._by_id.get(tenant_id)
        if not t:
            return False
        self._by_id[tenant_id] = replace(t, subscription_tier=tier, max_members=max_members)
        return True

    def update_kiosk_settings(self, tenant_id, *, enabled, timeout_minutes) -> bool:
        t = self._by_id.get(tenant_id)
        if not t:
            return False
        self._by_id[tenant_id] = replace(t, kiosk_mode_enabled=enabled, kiosk_session_timeout=timeout_minutes)
        return True

    def factory_reset(self, tenant_id: str) -> None:
        if self._on_reset:
            self._on_reset(tenant_id)


class InMemoryStaff:
    def __init__(self):
        self._by_email: dict[str, StaffUser] = {}

    def get_by_email(self, email: str) -> Optional[StaffUser]:
        return self._by_email.get(email.strip().lower())

    def create(self, staff: StaffUser) -> None:
        self._by_email[staff.email.strip().lower()] = staff

    def all(self):
        return list(self._by_email.values())


class InMemoryMembers:
    def __init__(self):
        self._by_id: dict[str, Member] = {}

    def get_by_id(self, tenant_id, member_id):
        m = self._by_id.get(member_id)
        return m if m and m.tenant_id == tenant_id else None

    def get_by_biometric_token(self, tenant_id, token):
        for m in self._by_id.values():
            if m.tenant_id == tenant_id and m.biometric_token == token:
                return m
        return None

    def create(self, member: Member) -> None:
        self._by_id[member.member_id] = member

    def update(self, member: Member) -> bool:
        if member.member_id not in self._by_id:
            return False
        self._by_id[member.member_id] = member
        return True

    def set_biometric_token(self, tenant_id, member_id, token) -> bool:
        holder = self.get_by_biometric_token(tenant_id, token)
        if holder and holder.member_id != member_id:
            raise ConflictError("This credential is already enrolled for another member")
        m = self.get_by_id(tenant_id, member_id)
        if not m:
            return False
        self._by_id[member_id] = replace(m, biometric_token=token)
        return True

    def list_family(self, tenant_id, family_group_id):
        return [m for m in self._by_id.values() if m.tenant_id == tenant_id and m.family_group_id == family_group_id]

    def search(self, tenant_id, query, limit):
        q = query.lower()
        hits = [
            m
            for m in self._by_id.values()
            if m.tenant_id == tenant_id and m.is_current_member and q in m.display_name.lower()
        ]
        return hits[:limit]

    def list_current(self, tenant_id):
        return [m for m in self._by_id.values() if m.tenant_id == tenant_id and m.is_current_member]

    def count_for_tenant(self, tenant_id) -> int:
        return len(self.list_current(tenant_id))

    def purge(self, tenant_id):
        self._by_id = {k: v for k, v in self._by_id.items() if v.tenant_id != tenant_id}


class InMemoryVisitors:
    def __init__(self):
        self._by_id: dict[str, Visitor] = {}

    def get_by_id(self, tenant_id, visitor_id):
        v = self._by_id.get(visitor_id)
        return v if v and v.tenant_id == tenant_id else None

    def create(self, visitor: Visitor) -> None:
        self._by_id[visitor.visitor_id] = visitor

    def update_follow_up_status(self, tenant_id, visitor_id, *, status, promoted_member_id=None) -> bool:
        v = self.get_by_id(tenant_id, visitor_id)
        if not v:
            return False
        self._by_id[visitor_id] = replace(
            v, follow_up_status=status, promoted_member_id=promoted_member_id or v.promoted_member_id
        )
        return True

    def list_for_tenant(self, tenant_id, *, status=None):
        return [
            v for v in self._by_id.values() if v.tenant_id == tenant_id and (status is None or v.follow_up_status == status)
        ]

    def purge(self, tenant_id):
        self._by_id = {k: v for k, v in self._by_id.items() if v.tenant_id != tenant_id}


class InMemoryGatherings:
    def __init__(self):
        self._by_id: dict[str, Gathering] = {}

    def get_by_id(self, tenant_id, gathering_id):
        g = self._by_id.get(gathering_id)
        return g if g and g.tenant_id == tenant_id else None

    def get_by_external_url(self, url_token):
        for g in self._by_id.values():
            if g.external_checkin_url == url_token:
                return g
        return None

    def create(self, gathering: Gathering) -> None:
        self._by_id[gathering.gathering_id] = gathering

    def set_active(self, tenant_id, gathering_id, active) -> bool:
        g = self.get_by_id(tenant_id, gathering_id)
        if not g:
            return False
        self._by_id[gathering_id] = replace(g, is_active=active)
        return True

    def set_external_checkin(self, tenant_id, gathering_id, *, enabled, url_token, pin) -> bool:
        g = self.get_by_id(tenant_id, gathering_id)
        if not g:
            return False
        self._by_id[gathering_id] = replace(
            g, external_checkin_enabled=enabled, external_checkin_url=url_token, external_checkin_pin=pin
        )
        return True

    def list_for_tenant(self, tenant_id, *, active_only=False):
        return [g for g in self._by_id.values() if g.tenant_id == tenant_id and (g.is_active or not active_only)]

    def purge(self, tenant_id):
        self._by_id = {k: v for k, v in self._by_id.items() if v.tenant_id != tenant_id}


class InMemoryAttendance:
    """Dict keyed by the dedupe key; the lock plays the role of the UNIQUE index."""

    def __init__(self):
        self._by_key: dict[str, AttendanceRecord] = {}
        self._lock = threading.Lock()

    def insert_if_absent(self, record: AttendanceRecord):
        with self._lock:
            if record.dedupe_key in self._by_key:
                return None
            self._by_key[record.dedupe_key] = record
            return record

    def get_by_key(self, dedupe_key):
        return self._by_key.get(dedupe_key)

    def get_by_id(self, tenant_id, record_id):
        for r in self._by_key.values():
            if r.tenant_id == tenant_id and r.record_id == record_id:
                return r
        return None

    def delete(self, tenant_id, record_id) -> bool:
        with self._lock:
            for k, r in list(self._by_key.items()):
                if r.tenant_id == tenant_id and r.record_id == record_id:
                    del self._by_key[k]
                    return True
        return False

    def list_for_gathering(self, tenant_id, gathering_id, attendance_date):
        return [
            r
            for r in self._by_key.values()
            if r.tenant_id == tenant_id and r.gathering_id == gathering_id and r.attendance_date == attendance_date
        ]

    def last_attendance_dates(self, tenant_id):
        out: dict[str, date] = {}
        for r in self._by_key.values():
            if r.tenant_id == tenant_id and r.member_id:
                if r.member_id not in out or r.attendance_date > out[r.member_id]:
                    out[r.member_id] = r.attendance_date
        return out

    def last_check_in_times(self, tenant_id):
        out: dict[str, datetime] = {}
        for r in self._by_key.values():
            if r.tenant_id == tenant_id and r.member_id:
                if r.member_id not in out or r.checked_in_at > out[r.member_id]:
                    out[r.member_id] = r.checked_in_at
        return out

    def all(self):
        return list(self._by_key.values())

    def purge(self, tenant_id):
        self._by_key = {k: v for k, v in self._by_key.items() if v.tenant_id != tenant_id}


class InMemoryFollowUps:
    def __init__(self):
        self._by_member: dict[str, FollowUpRecord] = {}

    def get(self, tenant_id, member_id):
        r = self._by_member.get(member_id)
        return r if r and r.tenant_id == tenant_id else None

    def save(self, record: FollowUpRecord) -> None:
        self._by_member[record.member_id] = record

    def list_for_tenant(self, tenant_id):
        return [r for r in self._by_member.values() if r.tenant_id == tenant_id]

    def list_needing_follow_up(self, tenant_id):
        return [r for r in self.list_for_tenant(tenant_id) if r.needs_follow_up]

    def purge(self, tenant_id):
        self._by_member = {k: v for k, v in self._by_member.items() if v.tenant_id != tenant_id}


class InMemoryRateLimits:
    def __init__(self):
        self.rows: list[tuple[str, str, datetime, Optional[str]]] = []

    def count_since(self, key, action, since):
        return sum(1 for k, a, at, _ in self.rows if k == key and a == action and at >= since)

    def oldest_since(self, key, action, since):
        hits = [at for k, a, at, _ in self.rows if k == key and a == action and at >= since]
        return min(hits) if hits else None

    def record(self, key, action, at, *, tenant_id=None):
        self.rows.append((key, action, at, tenant_id))

    def purge_older_than(self, before):
        kept = [row for row in self.rows if row[2] >= before]
        removed = len(self.rows) - len(kept)
        self.rows = kept
        return removed

    def purge(self, tenant_id):
        self.rows = [row for row in self.rows if row[3] != tenant_id]


class RecordingDispatcher:
    def __init__(self):
        self.sent: list[tuple[str, NotificationChannel, str, str]] = []
        self.fail_with: Optional[Exception] = None
        self.result = True

    def send(self, tenant_id, channel, recipient, content) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((tenant_id, channel, recipient, content))
        return self.result


class World:
    """All fakes plus small factories for seeding data."""

    settings = SimpleNamespace(
        TRIAL_DAYS=30,
        FOLLOW_UP_THRESHOLD=3,
        FOLLOW_UP_CYCLE_DAYS=7,
        EXTERNAL_CHECKIN_MAX_ATTEMPTS=5,
        EXTERNAL_CHECKIN_WINDOW_MINUTES=15,
        PUBLIC_BASE_URL="http://testserver",
    )

    def __init__(self):
        self.members = InMemoryMembers()
        self.visitors = InMemoryVisitors()
        self.gatherings = InMemoryGatherings()
        self.attendance = InMemoryAttendance()
        self.follow_ups = InMemoryFollowUps()
        self.rate_limits = InMemoryRateLimits()
        self.tenants = InMemoryTenants(on_reset=self._reset_tenant)
        self.staff = InMemoryStaff()
        self.dispatcher = RecordingDispatcher()
        self.container: Container = wire_container(
            tenants_repo=self.tenants,
            staff_repo=self.staff,
            members_repo=self.members,
            visitors_repo=self.visitors,
            gatherings_repo=self.gatherings,
            attendance_repo=self.attendance,
            follow_up_repo=self.follow_ups,
            rate_limit_repo=self.rate_limits,
            dispatcher=self.dispatcher,
            settings=self.settings,
        )

    def _reset_tenant(self, tenant_id: str) -> None:
        for store in (self.attendance, self.follow_ups, self.visitors, self.members, self.gatherings, self.rate_limits):
            store.purge(tenant_id)

    def add_tenant(
        self,
        tier: SubscriptionTier = SubscriptionTier.GROWTH,
        *,
        trial_end: Optional[datetime] = None,
        max_members: Optional[int] = None,
        timezone_name: str = "UTC",
        name: str = "Grace Chapel",
    ) -> Tenant:
        tenant = Tenant(
            tenant_id=new_id(),
            name=name,
            subscription_tier=tier,
            trial_start=(trial_end - timedelta(days=30)) if trial_end else None,
            trial_end=trial_end,
            max_members=max_members,
            timezone=timezone_name,
            brand_color="#336699",
        )
        self.tenants.create(tenant)
        return tenant

    def add_member(
        self,
        tenant: Tenant,
        first_name: str = "Ama",
        surname: str = "Mensah",
        *,
        age_group: AgeGroup = AgeGroup.ADULT,
        head: Optional[Member] = None,
        is_head: bool = False,
        phone: Optional[str] = "0241234567",
        email: Optional[str] = None,
        biometric_token: Optional[str] = None,
        current: bool = True,
    ) -> Member:
        member_id = new_id()
        if is_head:
            family_group_id, relationship = member_id, RelationshipToHead.HEAD
        elif head is not None:
            family_group_id, relationship = head.member_id, RelationshipToHead.CHILD
        else:
            family_group_id, relationship = None, None
        member = Member(
            member_id=member_id,
            tenant_id=tenant.tenant_id,
            first_name=first_name,
            surname=surname,
            gender=Gender.FEMALE,
            age_group=age_group,
            phone=phone if age_group == AgeGroup.ADULT else None,
            email=email,
            biometric_token=biometric_token,
            family_group_id=family_group_id,
            relationship_to_head=relationship,
            is_family_head=is_head,
            is_current_member=current,
        )
        self.members.create(member)
        return member

    def add_gathering(self, tenant: Tenant, name: str = "Sunday Service", *, active: bool = True) -> Gathering:
        gathering = Gathering(
            gathering_id=new_id(),
            tenant_id=tenant.tenant_id,
            name=name,
            gathering_type="service",
            location="Main Hall",
            is_active=active,
        )
        self.gatherings.create(gathering)
        return gathering

    def add_staff(self, tenant: Tenant, email: str, password: str, role: StaffRole = StaffRole.ADMIN) -> StaffUser:
        staff = StaffUser(
            staff_id=new_id(),
            tenant_id=tenant.tenant_id,
            email=email,
            full_name="Pastor Kofi",
            password_hash=generate_password_hash(password),
            role=role,
        )
        self.staff.create(staff)
        return staff


@pytest.fixture()
def world() -> World:
    return World()


@pytest.fixture()
def container(world: World) -> Container:
    return world.container
