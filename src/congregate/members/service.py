from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.ids import new_id
from ..core.enums import AgeGroup, Capability, RelationshipToHead, StaffRole, VisitorFollowUpStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..tenants.policy import TenantPolicyEvaluator
from .model import Member, NewMember, NewVisitor, Visitor
from .repository import MemberRepository, VisitorRepository

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "firstName": "first_name",
    "surname": "surname",
    "phone": "phone",
    "email": "email",
}


class MemberService:
    """Use cases around members and visitors (enrollment, families, visitor intake)."""

    def __init__(self, members: MemberRepository, visitors: VisitorRepository, policy: TenantPolicyEvaluator):
        self._members = members
        self._visitors = visitors
        self._policy = policy

    def get_member(self, tenant_id: str, member_id: str) -> Member:
        member = self._members.get_by_id(tenant_id, member_id)
        if member is None:
            raise NotFoundError("member", member_id)
        return member

    def get_visitor(self, tenant_id: str, visitor_id: str) -> Visitor:
        visitor = self._visitors.get_by_id(tenant_id, visitor_id)
        if visitor is None:
            raise NotFoundError("visitor", visitor_id)
        return visitor

    def list_members(self, tenant_id: str) -> Sequence[Member]:
        return self._members.list_current(tenant_id)

    def create_member(self, tenant_id: str, data: NewMember) -> Member:
        count = self._members.count_for_tenant(tenant_id)
        self._policy.require(tenant_id, Capability.MEMBER_MANAGEMENT, count)

        if data.age_group == AgeGroup.ADULT and not data.phone:
            raise ValidationError("Phone number is required for adults")

        member_id = new_id()
        if data.is_family_head:
            family_group_id: Optional[str] = member_id
            relationship: Optional[RelationshipToHead] = RelationshipToHead.HEAD
        elif data.family_group_id:
            head = self._require_head(tenant_id, data.family_group_id)
            family_group_id = head.family_group_id
            relationship = data.relationship_to_head or self._default_relationship(data.age_group)
            if relationship == RelationshipToHead.HEAD:
                raise ValidationError("Only the family head can have relationship 'head'")
        else:
            family_group_id = None
            relationship = data.relationship_to_head

        member = Member(
            member_id=member_id,
            tenant_id=tenant_id,
            first_name=data.first_name,
            surname=data.surname,
            gender=data.gender,
            age_group=data.age_group,
            phone=data.phone,
            email=data.email,
            date_of_birth=data.date_of_birth,
            family_group_id=family_group_id,
            relationship_to_head=relationship,
            is_family_head=data.is_family_head,
        )
        self._members.create(member)
        logger.info("Member created tenant=%s member=%s", tenant_id, member_id)
        return member

    def update_member(self, tenant_id: str, member_id: str, changes: dict) -> Member:
        member = self.get_member(tenant_id, member_id)

        updates = {}
        for key, attr in _UPDATABLE_FIELDS.items():
            if key in changes:
                value = (str(changes[key]).strip() if changes[key] is not None else "") or None
                if attr in {"first_name", "surname"} and not value:
                    raise ValidationError(f"{key} cannot be empty")
                updates[attr] = value

        updated = replace(member, **updates)
        if updated.age_group == AgeGroup.ADULT and not updated.phone:
            raise ValidationError("Phone number is required for adults")

        self._members.update(updated)
        return updated

    def retire_member(self, tenant_id: str, member_id: str) -> Member:
        """Soft-retire: the row stays, it just stops counting as a current member."""
        member = self.get_member(tenant_id, member_id)
        if not member.is_current_member:
            return member
        updated = replace(member, is_current_member=False)
        self._members.update(updated)
        return updated

    def link_to_family(
        self,
        tenant_id: str,
        member_id: str,
        *,
        head_id: str,
        relationship: Optional[RelationshipToHead] = None,
    ) -> Member:
        member = self.get_member(tenant_id, member_id)
        if member.is_family_head:
            raise ValidationError("A family head cannot be linked to another family")

        head = self._require_head(tenant_id, head_id)
        relationship = relationship or self._default_relationship(member.age_group)
        if relationship == RelationshipToHead.HEAD:
            raise ValidationError("Only the family head can have relationship 'head'")

        updated = replace(member, family_group_id=head.family_group_id, relationship_to_head=relationship)
        self._members.update(updated)
        return updated

    def list_family(self, tenant_id: str, head_id: str) -> tuple[Member, list[Member]]:
        """Return the head and the rest of the family (current members only)."""
        head = self._require_head(tenant_id, head_id)
        others = [
            m
            for m in self._members.list_family(tenant_id, head.family_group_id)
            if m.member_id != head.member_id and m.is_current_member
        ]
        return head, others

    def enroll_biometric(self, tenant_id: str, member_id: str, token: str) -> Member:
        self._policy.require(tenant_id, Capability.BIOMETRIC_CHECKIN)

        raw = (token or "").strip()
        if not raw:
            raise ValidationError("Biometric token is required")

        member = self.get_member(tenant_id, member_id)
        holder = self._members.get_by_biometric_token(tenant_id, raw)
        if holder is not None and holder.member_id != member.member_id:
            raise ConflictError("This credential is already enrolled for another member")

        # Re-enrollment overwrites the previous token.
        self._members.set_biometric_token(tenant_id, member.member_id, raw)
        logger.info("Biometric enrolled tenant=%s member=%s", tenant_id, member_id)
        return replace(member, biometric_token=raw)

    # --- visitors -------------------------------------------------------------------------

    def create_visitor(self, tenant_id: str, data: NewVisitor) -> Visitor:
        self._policy.require(tenant_id, Capability.VISITOR_MANAGEMENT)
        visitor = data.to_visitor(tenant_id, created_at=now_utc())
        self._visitors.create(visitor)
        return visitor

    def list_visitors(self, tenant_id: str, *, status: Optional[VisitorFollowUpStatus] = None) -> Sequence[Visitor]:
        return self._visitors.list_for_tenant(tenant_id, status=status)

    def update_visitor_status(self, tenant_id: str, visitor_id: str, status: VisitorFollowUpStatus) -> Visitor:
        visitor = self.get_visitor(tenant_id, visitor_id)
        if status == VisitorFollowUpStatus.MEMBER:
            raise ValidationError("Use visitor promotion to turn a visitor into a member")
        if visitor.follow_up_status == VisitorFollowUpStatus.MEMBER:
            raise ValidationError("Visitor has already been promoted to member")
        self._visitors.update_follow_up_status(tenant_id, visitor_id, status=status)
        return replace(visitor, follow_up_status=status)

    def promote_visitor(self, tenant_id: str, visitor_id: str, *, current_role: StaffRole) -> Member:
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can promote visitors")

        visitor = self.get_visitor(tenant_id, visitor_id)
        if visitor.promoted_member_id:
            raise ConflictError("Visitor has already been promoted to member")

        member = self.create_member(
            tenant_id,
            NewMember(
                first_name=visitor.first_name,
                surname=visitor.surname or "-",
                gender=visitor.gender,
                age_group=visitor.age_group,
                phone=visitor.phone,
                email=visitor.email,
            ),
        )
        self._visitors.update_follow_up_status(
            tenant_id,
            visitor_id,
            status=VisitorFollowUpStatus.MEMBER,
            promoted_member_id=member.member_id,
        )
        return member

    # --- helpers --------------------------------------------------------------------------

    def _require_head(self, tenant_id: str, head_id: str) -> Member:
        head = self._members.get_by_id(tenant_id, head_id)
        if head is None:
            raise NotFoundError("member", head_id)
        if not head.is_family_head or not head.family_group_id:
            raise ValidationError("Selected member is not a family head")
        return head

    @staticmethod
    def _default_relationship(age_group: AgeGroup) -> RelationshipToHead:
        if age_group in {AgeGroup.CHILD, AgeGroup.ADOLESCENT}:
            return RelationshipToHead.CHILD
        return RelationshipToHead.OTHER
