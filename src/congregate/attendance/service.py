"""Check-in decision engine.

Every attempt walks the same path: policy check, gathering check, person
resolution, duplicate check, then an atomic insert-if-absent. A lost race at
write time is reported as ``DUPLICATE``, never as an error.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Sequence, Union

from ..common.datetime_utils import local_today, now_utc
from ..common.ids import new_id
from ..core.enums import Capability, CheckInMethod, CheckInStatus, StaffRole
from ..core.exceptions import (
    AuthorizationError,
    GatheringInactiveError,
    InvalidCredential,
    MalformedRequest,
    NotFoundError,
    ValidationError,
)
from ..followup.service import FollowUpTracker
from ..gatherings.model import Gathering
from ..gatherings.repository import GatheringRepository
from ..members.identity import IdentityResolver
from ..members.model import Invalid, Member, NewVisitor, Unidentified, Visitor
from ..members.repository import MemberRepository, VisitorRepository
from ..tenants.policy import TenantPolicyEvaluator
from ..tenants.repository import TenantRepository
from .model import (
    AttendanceRecord,
    CheckInOutcome,
    FamilyCheckInResult,
    MemberRef,
    PersonReference,
    VisitorRef,
    attendance_key,
)
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

METHOD_CAPABILITY = {
    CheckInMethod.MANUAL: Capability.BASIC_CHECKIN,
    CheckInMethod.EXTERNAL: Capability.BASIC_CHECKIN,
    CheckInMethod.FINGERPRINT: Capability.BIOMETRIC_CHECKIN,
    CheckInMethod.FAMILY: Capability.FAMILY_CHECKIN,
    CheckInMethod.VISITOR: Capability.VISITOR_MANAGEMENT,
}

if set(METHOD_CAPABILITY) != set(CheckInMethod):
    raise RuntimeError("METHOD_CAPABILITY must cover every CheckInMethod")


class CheckInService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        members: MemberRepository,
        visitors: VisitorRepository,
        gatherings: GatheringRepository,
        tenants: TenantRepository,
        policy: TenantPolicyEvaluator,
        identity: IdentityResolver,
        follow_up: FollowUpTracker | None = None,
    ):
        self._attendance = attendance
        self._members = members
        self._visitors = visitors
        self._gatherings = gatherings
        self._tenants = tenants
        self._policy = policy
        self._identity = identity
        self._follow_up = follow_up

    # --- live check-ins (always stamped "today" in the tenant's timezone) ---------------------

    def check_in(
        self,
        tenant_id: str,
        person: PersonReference,
        *,
        gathering_id: Optional[str] = None,
        method: CheckInMethod = CheckInMethod.MANUAL,
        now: Optional[datetime] = None,
    ) -> CheckInOutcome:
        now = now or now_utc()
        method = self._method_for(person, method)
        self._policy.require(tenant_id, METHOD_CAPABILITY[method], now=now)
        gathering = self._require_gathering(tenant_id, gathering_id)
        return self._record(tenant_id, person, gathering, method, self._today(tenant_id, now), now)

    def check_in_biometric(
        self,
        tenant_id: str,
        token: str,
        *,
        gathering_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Union[CheckInOutcome, Unidentified]:
        """Scan flow: an unknown token comes back as ``Unidentified`` so the kiosk can offer enrollment."""
        now = now or now_utc()
        self._policy.require(tenant_id, Capability.BIOMETRIC_CHECKIN, now=now)
        gathering = self._require_gathering(tenant_id, gathering_id)

        resolution = self._identity.resolve_biometric(tenant_id, token)
        if isinstance(resolution, Unidentified):
            return resolution
        if isinstance(resolution, Invalid):
            raise InvalidCredential(resolution.reason)

        return self._record(
            tenant_id,
            MemberRef(resolution.member.member_id),
            gathering,
            CheckInMethod.FINGERPRINT,
            self._today(tenant_id, now),
            now,
            member=resolution.member,
        )

    def check_in_family(
        self,
        tenant_id: str,
        head_id: str,
        *,
        child_ids: Optional[Sequence[str]] = None,
        include_head: bool = False,
        gathering_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FamilyCheckInResult:
        """Check in a family head's dependents in one action.

        ``child_ids=None`` selects everyone linked to the head's family group;
        a list selects that subset. Each person is deduplicated on its own, so
        repeating the request is harmless and already-present people are
        reported under ``skipped``.
        """
        now = now or now_utc()
        self._policy.require(tenant_id, Capability.FAMILY_CHECKIN, now=now)
        gathering = self._require_gathering(tenant_id, gathering_id)

        head = self._members.get_by_id(tenant_id, head_id)
        if head is None:
            raise NotFoundError("member", head_id)
        if not head.is_family_head or not head.family_group_id:
            raise ValidationError("Member is not a family head")

        family = [
            m
            for m in self._members.list_family(tenant_id, head.family_group_id)
            if m.member_id != head.member_id and m.is_current_member
        ]
        if child_ids is not None:
            wanted = {str(c) for c in child_ids}
            unknown = wanted - {m.member_id for m in family}
            if unknown:
                raise MalformedRequest(f"Not part of this family: {', '.join(sorted(unknown))}")
            family = [m for m in family if m.member_id in wanted]

        today = self._today(tenant_id, now)
        head_outcome = None
        if include_head:
            head_outcome = self._record(
                tenant_id, MemberRef(head.member_id), gathering, CheckInMethod.FAMILY, today, now, member=head
            )
        result = FamilyCheckInResult(head=head, head_outcome=head_outcome)

        for child in family:
            outcome = self._record(
                tenant_id, MemberRef(child.member_id), gathering, CheckInMethod.FAMILY, today, now, member=child
            )
            if outcome.accepted:
                result.checked_in.append(outcome)
            else:
                result.skipped.append(outcome)

        logger.info(
            "Family check-in tenant=%s head=%s new=%d skipped=%d",
            tenant_id,
            head_id,
            len(result.checked_in),
            len(result.skipped),
        )
        return result

    # --- corrective staff operations ---------------------------------------------------------

    def record_historical(
        self,
        tenant_id: str,
        person: PersonReference,
        *,
        attendance_date: date,
        current_role: StaffRole,
        gathering_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CheckInOutcome:
        """Corrective entry for a past date; the only path that accepts a client-supplied date."""
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can record historical attendance")

        now = now or now_utc()
        if attendance_date > self._today(tenant_id, now):
            raise ValidationError("Attendance date cannot be in the future")

        method = self._method_for(person, CheckInMethod.MANUAL)
        self._policy.require(tenant_id, METHOD_CAPABILITY[method], now=now)
        gathering = self._require_gathering(tenant_id, gathering_id, allow_inactive=True)
        return self._record(tenant_id, person, gathering, method, attendance_date, now)

    def delete_record(self, tenant_id: str, record_id: str, *, current_role: StaffRole) -> None:
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can delete attendance records")
        if self._attendance.get_by_id(tenant_id, record_id) is None:
            raise NotFoundError("record", record_id)
        self._attendance.delete(tenant_id, record_id)
        logger.info("Attendance record deleted tenant=%s record=%s", tenant_id, record_id)

    def list_for_gathering(
        self, tenant_id: str, gathering_id: str, *, attendance_date: Optional[date] = None
    ) -> Sequence[AttendanceRecord]:
        gathering = self._require_gathering(tenant_id, gathering_id, allow_inactive=True)
        day = attendance_date or self._today(tenant_id, now_utc())
        return self._attendance.list_for_gathering(tenant_id, gathering.gathering_id, day)

    # --- internals -------------------------------------------------------------------------

    @staticmethod
    def _method_for(person: PersonReference, method: CheckInMethod) -> CheckInMethod:
        if isinstance(person, (NewVisitor, VisitorRef)):
            return CheckInMethod.VISITOR
        if isinstance(person, MemberRef):
            if method == CheckInMethod.VISITOR:
                raise MalformedRequest("Visitor check-in requires a visitor reference")
            return method
        raise MalformedRequest("Unsupported person reference")

    def _today(self, tenant_id: str, now: datetime) -> date:
        tenant = self._tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("tenant", tenant_id)
        return local_today(tenant.timezone, now=now)

    def _require_gathering(
        self, tenant_id: str, gathering_id: Optional[str], *, allow_inactive: bool = False
    ) -> Optional[Gathering]:
        if not gathering_id:
            return None
        gathering = self._gatherings.get_by_id(tenant_id, gathering_id)
        if gathering is None:
            raise NotFoundError("gathering", gathering_id)
        if not gathering.is_active and not allow_inactive:
            raise GatheringInactiveError("Gathering is not active")
        return gathering

    def _record(
        self,
        tenant_id: str,
        person: PersonReference,
        gathering: Optional[Gathering],
        method: CheckInMethod,
        attendance_date: date,
        now: datetime,
        *,
        member: Optional[Member] = None,
    ) -> CheckInOutcome:
        gathering_id = gathering.gathering_id if gathering else None

        if isinstance(person, MemberRef):
            member = member or self._members.get_by_id(tenant_id, person.member_id)
            if member is None:
                raise NotFoundError("member", person.member_id)
            if not member.is_current_member:
                raise ValidationError("Member is no longer active")
            candidate = AttendanceRecord(
                record_id=new_id(),
                tenant_id=tenant_id,
                gathering_id=gathering_id,
                member_id=member.member_id,
                visitor_id=None,
                attendance_date=attendance_date,
                check_in_method=method,
                checked_in_at=now,
            )
            display_name = member.display_name
        else:
            visitor = self._resolve_visitor(tenant_id, person, now)
            candidate = AttendanceRecord(
                record_id=new_id(),
                tenant_id=tenant_id,
                gathering_id=gathering_id,
                member_id=None,
                visitor_id=visitor.visitor_id,
                attendance_date=attendance_date,
                check_in_method=method,
                checked_in_at=now,
                is_guest=True,
                visitor_name=visitor.display_name,
                visitor_gender=visitor.gender,
                visitor_age_group=visitor.age_group,
            )
            display_name = visitor.display_name

        key = attendance_key(
            tenant_id,
            gathering_id,
            member_id=candidate.member_id,
            visitor_id=candidate.visitor_id,
            attendance_date=attendance_date,
        )
        existing = self._attendance.get_by_key(key)
        if existing is not None:
            return CheckInOutcome(CheckInStatus.DUPLICATE, existing, display_name)

        inserted = self._attendance.insert_if_absent(candidate)
        if inserted is None:
            # Lost the race to a concurrent check-in for the same key
            existing = self._attendance.get_by_key(key) or candidate
            return CheckInOutcome(CheckInStatus.DUPLICATE, existing, display_name)

        logger.info(
            "Checked in tenant=%s gathering=%s method=%s record=%s",
            tenant_id,
            gathering_id or "-",
            method.value,
            inserted.record_id,
        )
        if inserted.member_id:
            self._after_member_attendance(tenant_id, inserted)
        return CheckInOutcome(CheckInStatus.ACCEPTED, inserted, display_name)

    def _resolve_visitor(self, tenant_id: str, person: PersonReference, now: datetime) -> Visitor:
        if isinstance(person, VisitorRef):
            visitor = self._visitors.get_by_id(tenant_id, person.visitor_id)
            if visitor is None:
                raise NotFoundError("visitor", person.visitor_id)
            return visitor

        visitor = person.to_visitor(tenant_id, created_at=now)
        self._visitors.create(visitor)
        return visitor

    def _after_member_attendance(self, tenant_id: str, record: AttendanceRecord) -> None:
        if self._follow_up is None:
            return
        try:
            self._follow_up.reset_after_attendance(tenant_id, record.member_id, record.attendance_date)
        except Exception:
            # The attendance fact stands even if this fails.
            logger.exception("Follow-up reset failed tenant=%s member=%s", tenant_id, record.member_id)
