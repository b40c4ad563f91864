from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..common.ids import new_id
from ..common.validators import optional_iso_date, optional_str, require_enum, require_non_empty
from ..core.enums import AgeGroup, Gender, RelationshipToHead, VisitorFollowUpStatus


@dataclass(frozen=True)
class Member:
    """Thực thể miền (domain): thành viên đã đăng ký của một tenant.

    Chủ hộ (family head) có ``family_group_id == member_id``; các thành viên
    khác trong gia đình trỏ tới chủ hộ qua ``family_group_id``.
    """

    member_id: str
    tenant_id: str
    first_name: str
    surname: str
    gender: Gender
    age_group: AgeGroup
    phone: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    biometric_token: Optional[str] = None
    family_group_id: Optional[str] = None
    relationship_to_head: Optional[RelationshipToHead] = None
    is_family_head: bool = False
    is_current_member: bool = True

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.surname}".strip()


@dataclass(frozen=True)
class Visitor:
    """Người chưa là thành viên, ghi nhận ở lần đến đầu tiên."""

    visitor_id: str
    tenant_id: str
    first_name: str
    surname: str
    gender: Gender
    age_group: AgeGroup
    phone: Optional[str] = None
    email: Optional[str] = None
    how_heard: Optional[str] = None
    prayer_points: Optional[str] = None
    follow_up_status: VisitorFollowUpStatus = VisitorFollowUpStatus.PENDING
    promoted_member_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.surname}".strip()


@dataclass(frozen=True)
class NewMember:
    first_name: str
    surname: str
    gender: Gender
    age_group: AgeGroup
    phone: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    family_group_id: Optional[str] = None
    relationship_to_head: Optional[RelationshipToHead] = None
    is_family_head: bool = False

    @classmethod
    def from_payload(cls, data: dict) -> "NewMember":
        relationship = data.get("relationshipToHead")
        return cls(
            first_name=require_non_empty(data.get("firstName"), "First name"),
            surname=require_non_empty(data.get("surname"), "Surname"),
            gender=require_enum(Gender, data.get("gender"), "Gender"),
            age_group=require_enum(AgeGroup, data.get("ageGroup"), "Age group"),
            phone=optional_str(data.get("phone")),
            email=optional_str(data.get("email")),
            date_of_birth=optional_iso_date(data.get("dateOfBirth"), "Date of birth"),
            family_group_id=optional_str(data.get("familyGroupId")),
            relationship_to_head=require_enum(RelationshipToHead, relationship, "Relationship") if relationship else None,
            is_family_head=bool(data.get("isFamilyHead", False)),
        )


@dataclass(frozen=True)
class NewVisitor:
    """Payload for a first-time visitor captured at check-in or intake."""

    first_name: str
    surname: str
    gender: Gender
    age_group: AgeGroup
    phone: Optional[str] = None
    email: Optional[str] = None
    how_heard: Optional[str] = None
    prayer_points: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict) -> "NewVisitor":
        first_name = optional_str(data.get("firstName"))
        surname = optional_str(data.get("surname"))
        if not first_name and data.get("name"):
            # Single "name" field: first token + rest as surname
            parts = str(data["name"]).strip().split(" ", 1)
            first_name = parts[0]
            surname = parts[1] if len(parts) > 1 else surname
        return cls(
            first_name=require_non_empty(first_name, "Visitor first name"),
            surname=surname or "",
            gender=require_enum(Gender, data.get("gender"), "Gender"),
            age_group=require_enum(AgeGroup, data.get("ageGroup"), "Age group"),
            phone=optional_str(data.get("phone")),
            email=optional_str(data.get("email")),
            how_heard=optional_str(data.get("howHeard")),
            prayer_points=optional_str(data.get("prayerPoints")),
        )

    def to_visitor(self, tenant_id: str, *, created_at: Optional[datetime] = None) -> Visitor:
        return Visitor(
            visitor_id=new_id(),
            tenant_id=tenant_id,
            first_name=require_non_empty(self.first_name, "Visitor first name"),
            surname=(self.surname or "").strip(),
            gender=self.gender,
            age_group=self.age_group,
            phone=self.phone,
            email=self.email,
            how_heard=self.how_heard,
            prayer_points=self.prayer_points,
            created_at=created_at,
        )


@dataclass(frozen=True)
class Identified:
    member: Member


@dataclass(frozen=True)
class Unidentified:
    """Scanned token not bound to any member; caller may offer enrollment."""

    raw_credential: str


@dataclass(frozen=True)
class Invalid:
    reason: str


@dataclass(frozen=True)
class BiometricCredential:
    token: str


@dataclass(frozen=True)
class ManualSelection:
    """Explicit member chosen by staff after a name search."""

    member_id: str

