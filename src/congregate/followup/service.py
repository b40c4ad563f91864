"""Follow-up tracker.

Derives "needs follow-up" from consecutive missed gathering cycles. A scan
counts at most one missed cycle per member per ``cycle_days``; running it
again sooner is a no-op for that member. A member's first scan only records
the baseline; later scans compare check-in timestamps with the previous
scan instant, so a check-in made after a same-day scan counts for the next
cycle.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import ensure_aware, local_today, now_utc
from ..core.constants import DEFAULT_FOLLOW_UP_CYCLE_DAYS, DEFAULT_FOLLOW_UP_THRESHOLD
from ..core.enums import Capability, ContactMethod, NotificationChannel
from ..core.exceptions import NotFoundError, ValidationError
from ..members.repository import MemberRepository
from ..notifications.dispatcher import NotificationDispatcher
from ..tenants.policy import TenantPolicyEvaluator
from ..tenants.repository import TenantRepository
from .model import AbsenceScanSummary, ContactOutcome, FollowUpQueueItem, FollowUpRecord
from .repository import FollowUpRepository

logger = logging.getLogger(__name__)

_CHANNEL_FOR_METHOD = {
    ContactMethod.SMS: (NotificationChannel.SMS, Capability.SMS_NOTIFICATIONS),
    ContactMethod.EMAIL: (NotificationChannel.EMAIL, Capability.EMAIL_NOTIFICATIONS),
    ContactMethod.CALL: None,
}


class FollowUpTracker:
    def __init__(
        self,
        records: FollowUpRepository,
        members: MemberRepository,
        attendance: AttendanceRepository,
        tenants: TenantRepository,
        policy: TenantPolicyEvaluator,
        dispatcher: NotificationDispatcher,
        *,
        threshold: int = DEFAULT_FOLLOW_UP_THRESHOLD,
        cycle_days: int = DEFAULT_FOLLOW_UP_CYCLE_DAYS,
    ):
        if int(threshold) < 1:
            raise ValueError("threshold must be >= 1")
        if int(cycle_days) < 1:
            raise ValueError("cycle_days must be >= 1")
        self._records = records
        self._members = members
        self._attendance = attendance
        self._tenants = tenants
        self._policy = policy
        self._dispatcher = dispatcher
        self._threshold = int(threshold)
        self._cycle_days = int(cycle_days)

    @property
    def threshold(self) -> int:
        return self._threshold

    def _blank(self, tenant_id: str, member_id: str) -> FollowUpRecord:
        return FollowUpRecord(member_id=member_id, tenant_id=tenant_id)

    def get_record(self, tenant_id: str, member_id: str) -> FollowUpRecord:
        return self._records.get(tenant_id, member_id) or self._blank(tenant_id, member_id)

    def scan_absences(self, tenant_id: str, *, now: Optional[datetime] = None) -> AbsenceScanSummary:
        tenant = self._tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("tenant", tenant_id)
        scan_at = ensure_aware(now or now_utc())
        today = local_today(tenant.timezone, now=scan_at)

        last_dates = self._attendance.last_attendance_dates(tenant_id)
        last_check_ins = self._attendance.last_check_in_times(tenant_id)
        existing = {r.member_id: r for r in self._records.list_for_tenant(tenant_id)}

        scanned = incremented = reset = skipped = flagged = baselined = 0
        for member in self._members.list_current(tenant_id):
            scanned += 1
            record = existing.get(member.member_id) or self._blank(tenant_id, member.member_id)

            if record.last_scan_date and (today - record.last_scan_date).days < self._cycle_days:
                skipped += 1
                if record.needs_follow_up:
                    flagged += 1
                continue

            last_seen = last_check_ins.get(member.member_id)
            if record.last_scan_at is None:
                # First scan for this member only sets the baseline
                count = record.consecutive_absences
                baselined += 1
            elif last_seen is not None and ensure_aware(last_seen) > ensure_aware(record.last_scan_at):
                count = 0
                reset += 1
            else:
                count = record.consecutive_absences + 1
                incremented += 1

            needs = count >= self._threshold
            if needs:
                flagged += 1

            self._records.save(
                replace(
                    record,
                    consecutive_absences=count,
                    needs_follow_up=needs,
                    last_attendance_date=last_dates.get(member.member_id) or record.last_attendance_date,
                    last_scan_date=today,
                    last_scan_at=scan_at,
                )
            )

        summary = AbsenceScanSummary(
            scan_date=today,
            scanned=scanned,
            incremented=incremented,
            reset=reset,
            skipped=skipped,
            flagged=flagged,
            baselined=baselined,
        )
        logger.info("Absence scan tenant=%s %s", tenant_id, summary)
        return summary

    def reset_after_attendance(self, tenant_id: str, member_id: str, attendance_date: date) -> FollowUpRecord:
        """Presence always cancels follow-up need, whatever the check-in method."""
        record = self.get_record(tenant_id, member_id)
        last = record.last_attendance_date
        updated = replace(
            record,
            consecutive_absences=0,
            needs_follow_up=False,
            last_attendance_date=attendance_date if last is None or attendance_date > last else last,
        )
        self._records.save(updated)
        return updated

    def record_contact(
        self,
        tenant_id: str,
        member_id: str,
        method: ContactMethod,
        *,
        message: str = "",
        now: Optional[datetime] = None,
    ) -> ContactOutcome:
        self._policy.require(tenant_id, Capability.FOLLOW_UP_QUEUE)

        route = _CHANNEL_FOR_METHOD[method]
        content = (message or "").strip()
        if route is not None and not content:
            raise ValidationError("Message is required for sms/email follow-up")

        member = self._members.get_by_id(tenant_id, member_id)
        if member is None:
            raise NotFoundError("member", member_id)

        # A contact is not attendance: the absence counter is left alone.
        record = replace(
            self.get_record(tenant_id, member_id),
            last_contact_at=now or now_utc(),
            contact_method=method,
            needs_follow_up=False,
        )
        self._records.save(record)

        if route is None:
            return ContactOutcome(record=record)

        channel, capability = route

        decision = self._policy.authorize(tenant_id, capability)
        if not decision.allowed:
            logger.info("Follow-up %s skipped tenant=%s: %s", channel.value, tenant_id, decision.reason)
            return ContactOutcome(record=record)

        recipient = member.phone if channel == NotificationChannel.SMS else member.email
        if not recipient:
            logger.warning("Follow-up %s skipped, no contact on file member=%s", channel.value, member_id)
            return ContactOutcome(record=record, notification_sent=False)

        try:
            sent = bool(self._dispatcher.send(tenant_id, channel, recipient, content))
        except Exception:
            logger.exception("Follow-up %s delivery raised member=%s", channel.value, member_id)
            sent = False
        return ContactOutcome(record=record, notification_sent=sent)

    def needing_follow_up(self, tenant_id: str) -> Sequence[FollowUpQueueItem]:
        self._policy.require(tenant_id, Capability.FOLLOW_UP_QUEUE)

        items = []
        for record in self._records.list_needing_follow_up(tenant_id):
            member = self._members.get_by_id(tenant_id, record.member_id)
            if member is None or not member.is_current_member:
                continue
            items.append(FollowUpQueueItem(member=member, record=record))
        return items
