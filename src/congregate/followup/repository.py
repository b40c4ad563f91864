from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import FollowUpRecord


class FollowUpRepository(Protocol):
    """Giao diện repository cho FollowUpRecord.

    Lưu ý (DIP): tầng service phụ thuộc vào interface này, không phụ thuộc trực tiếp DB cụ thể.
    """

    def get(self, tenant_id: str, member_id: str) -> Optional[FollowUpRecord]:
        raise NotImplementedError

    def save(self, record: FollowUpRecord) -> None:
        """Insert or replace the member's single record."""

        raise NotImplementedError

    def list_for_tenant(self, tenant_id: str) -> Sequence[FollowUpRecord]:
        raise NotImplementedError

    def list_needing_follow_up(self, tenant_id: str) -> Sequence[FollowUpRecord]:
        raise NotImplementedError
