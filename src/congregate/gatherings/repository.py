from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Gathering


class GatheringRepository(Protocol):
    """Giao diện repository cho Gathering.

    Lưu ý (DIP): tầng service phụ thuộc vào interface này, không phụ thuộc trực tiếp DB cụ thể.
    """

    def get_by_id(self, tenant_id: str, gathering_id: str) -> Optional[Gathering]:
        raise NotImplementedError

    def get_by_external_url(self, url_token: str) -> Optional[Gathering]:
        """Public lookup by URL token; not tenant-scoped because the caller is anonymous."""

        raise NotImplementedError

    def create(self, gathering: Gathering) -> None:
        raise NotImplementedError

    def set_active(self, tenant_id: str, gathering_id: str, active: bool) -> bool:
        raise NotImplementedError

    def set_external_checkin(
        self,
        tenant_id: str,
        gathering_id: str,
        *,
        enabled: bool,
        url_token: Optional[str],
        pin: Optional[str],
    ) -> bool:
        raise NotImplementedError

    def list_for_tenant(self, tenant_id: str, *, active_only: bool = False) -> Sequence[Gathering]:
        raise NotImplementedError
