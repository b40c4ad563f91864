from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import ContactMethod
from ..members.model import Member


@dataclass(frozen=True)
class FollowUpRecord:
    """Trạng thái theo dõi (follow-up) của một thành viên.

    Tạo lười (lazy) ở lần tính đầu tiên; mỗi thành viên đúng một bản ghi.
    """

    member_id: str
    tenant_id: str
    last_contact_at: Optional[datetime] = None
    contact_method: Optional[ContactMethod] = None
    consecutive_absences: int = 0
    needs_follow_up: bool = False
    last_attendance_date: Optional[date] = None
    last_scan_date: Optional[date] = None
    last_scan_at: Optional[datetime] = None

    def days_since_attendance(self, today: date) -> Optional[int]:
        if self.last_attendance_date is None:
            return None
        return (today - self.last_attendance_date).days


@dataclass(frozen=True)
class AbsenceScanSummary:
    scan_date: date
    scanned: int = 0
    incremented: int = 0
    reset: int = 0
    skipped: int = 0
    flagged: int = 0
    baselined: int = 0


@dataclass(frozen=True)
class FollowUpQueueItem:
    member: Member
    record: FollowUpRecord


@dataclass(frozen=True)
class ContactOutcome:
    """``notification_sent`` is None when no message was attempted (calls, gated channel)."""

    record: FollowUpRecord
    notification_sent: Optional[bool] = None
