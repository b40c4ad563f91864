from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import SubscriptionTier
from .model import Tenant


class TenantRepository(Protocol):
    """Giao diện repository cho Tenant.

    Lưu ý (DIP): tầng service phụ thuộc vào interface này, không phụ thuộc trực tiếp DB cụ thể.
    """

    def get_by_id(self, tenant_id: str) -> Optional[Tenant]:
        raise NotImplementedError

    def create(self, tenant: Tenant) -> None:
        raise NotImplementedError

    def list_tenant_ids(self) -> Sequence[str]:
        raise NotImplementedError

    def update_subscription(self, tenant_id: str, *, tier: SubscriptionTier, max_members: Optional[int]) -> bool:
        raise NotImplementedError

    def update_kiosk_settings(self, tenant_id: str, *, enabled: bool, timeout_minutes: int) -> bool:
        raise NotImplementedError

    def factory_reset(self, tenant_id: str) -> None:
        """Remove every tenant-scoped row except the tenant itself and its staff accounts."""

        raise NotImplementedError
