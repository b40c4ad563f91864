from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import VisitorFollowUpStatus
from .model import Member, Visitor


class MemberRepository(Protocol):
    """Giao diện repository cho Member.

    Lưu ý (DIP): tầng service phụ thuộc vào interface này, không phụ thuộc trực tiếp DB cụ thể.
    """

    def get_by_id(self, tenant_id: str, member_id: str) -> Optional[Member]:
        raise NotImplementedError

    def get_by_biometric_token(self, tenant_id: str, token: str) -> Optional[Member]:
        raise NotImplementedError

    def create(self, member: Member) -> None:
        raise NotImplementedError

    def update(self, member: Member) -> bool:
        raise NotImplementedError

    def set_biometric_token(self, tenant_id: str, member_id: str, token: str) -> bool:
        """Bind ``token`` to the member, replacing any previous token.

        Raises ConflictError when another member of the tenant already holds it.
        """

        raise NotImplementedError

    def list_family(self, tenant_id: str, family_group_id: str) -> Sequence[Member]:
        raise NotImplementedError

    def search(self, tenant_id: str, query: str, limit: int) -> Sequence[Member]:
        raise NotImplementedError

    def list_current(self, tenant_id: str) -> Sequence[Member]:
        raise NotImplementedError

    def count_for_tenant(self, tenant_id: str) -> int:
        raise NotImplementedError


class VisitorRepository(Protocol):
    def get_by_id(self, tenant_id: str, visitor_id: str) -> Optional[Visitor]:
        raise NotImplementedError

    def create(self, visitor: Visitor) -> None:
        raise NotImplementedError

    def update_follow_up_status(
        self,
        tenant_id: str,
        visitor_id: str,
        *,
        status: VisitorFollowUpStatus,
        promoted_member_id: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def list_for_tenant(self, tenant_id: str, *, status: Optional[VisitorFollowUpStatus] = None) -> Sequence[Visitor]:
        raise NotImplementedError
