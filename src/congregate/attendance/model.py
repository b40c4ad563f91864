from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Union

from ..core.enums import AgeGroup, CheckInMethod, CheckInStatus, Gender
from ..core.exceptions import MalformedRequest
from ..members.model import Member, NewVisitor


def attendance_key(
    tenant_id: str,
    gathering_id: Optional[str],
    *,
    member_id: Optional[str] = None,
    visitor_id: Optional[str] = None,
    attendance_date: date,
) -> str:
    """Uniqueness key for (tenant, gathering-or-none, person, date).

    Records without a gathering fall back to the tenant-wide key.
    """
    if bool(member_id) == bool(visitor_id):
        raise MalformedRequest("Exactly one of member id or visitor id is required")
    person = f"m:{member_id}" if member_id else f"v:{visitor_id}"
    return f"{tenant_id}|{gathering_id or '-'}|{person}|{attendance_date.isoformat()}"


@dataclass(frozen=True)
class AttendanceRecord:
    """Thực thể miền (domain): một lần có mặt của một người tại một buổi nhóm.

    Lưu ý: bất biến sau khi tạo; chỉ có thể xoá (sửa sai) bởi admin.
    """

    record_id: str
    tenant_id: str
    gathering_id: Optional[str]
    member_id: Optional[str]
    visitor_id: Optional[str]
    attendance_date: date
    check_in_method: CheckInMethod
    checked_in_at: datetime
    is_guest: bool = False
    # Denormalized so history survives later visitor edits
    visitor_name: Optional[str] = None
    visitor_gender: Optional[Gender] = None
    visitor_age_group: Optional[AgeGroup] = None

    @property
    def dedupe_key(self) -> str:
        return attendance_key(
            self.tenant_id,
            self.gathering_id,
            member_id=self.member_id,
            visitor_id=self.visitor_id,
            attendance_date=self.attendance_date,
        )


@dataclass(frozen=True)
class MemberRef:
    member_id: str


@dataclass(frozen=True)
class VisitorRef:
    """A returning visitor that already has a visitor row."""

    visitor_id: str


PersonReference = Union[MemberRef, VisitorRef, NewVisitor]


def parse_person_reference(data: dict) -> PersonReference:
    """Validate a loosely-typed request body into exactly one person reference."""
    data = data or {}
    member_id = (str(data.get("memberId") or "")).strip()
    visitor_id = (str(data.get("visitorId") or "")).strip()
    visitor = data.get("visitor")

    present = [bool(member_id), bool(visitor_id), visitor is not None]
    if sum(present) != 1:
        raise MalformedRequest("Exactly one of memberId, visitorId or visitor is required")

    if member_id:
        return MemberRef(member_id)
    if visitor_id:
        return VisitorRef(visitor_id)
    if not isinstance(visitor, dict):
        raise MalformedRequest("visitor must be an object")
    return NewVisitor.from_payload(visitor)


@dataclass(frozen=True)
class CheckInOutcome:
    """Terminal, non-error result of one check-in attempt.

    For ``DUPLICATE`` the ``record`` is the one that already existed, so its
    ``checked_in_at`` is the original check-in time.
    """

    status: CheckInStatus
    record: AttendanceRecord
    display_name: str

    @property
    def accepted(self) -> bool:
        return self.status == CheckInStatus.ACCEPTED


@dataclass(frozen=True)
class FamilyCheckInResult:
    """Outcome of one family cascade; ``head_outcome`` is None when the head was not included."""

    head: Member
    head_outcome: Optional[CheckInOutcome] = None
    checked_in: list[CheckInOutcome] = field(default_factory=list)
    skipped: list[CheckInOutcome] = field(default_factory=list)
