from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from ..common.ids import new_id
from ..core.enums import StaffRole
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .model import Gathering, NewGathering
from .repository import GatheringRepository


class GatheringService:
    def __init__(self, gatherings: GatheringRepository):
        self._gatherings = gatherings

    def get(self, tenant_id: str, gathering_id: str) -> Gathering:
        gathering = self._gatherings.get_by_id(tenant_id, gathering_id)
        if gathering is None:
            raise NotFoundError("gathering", gathering_id)
        return gathering

    def create(self, tenant_id: str, data: NewGathering, *, current_role: StaffRole) -> Gathering:
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can create gatherings")
        if data.starts_at and data.ends_at and data.ends_at < data.starts_at:
            raise ValidationError("End time cannot be before start time")

        gathering = Gathering(
            gathering_id=new_id(),
            tenant_id=tenant_id,
            name=data.name,
            gathering_type=data.gathering_type,
            location=data.location,
            starts_at=data.starts_at,
            ends_at=data.ends_at,
        )
        self._gatherings.create(gathering)
        return gathering

    def set_active(self, tenant_id: str, gathering_id: str, active: bool, *, current_role: StaffRole) -> Gathering:
        if current_role != StaffRole.ADMIN:
            raise AuthorizationError("Only admins can change gathering status")
        gathering = self.get(tenant_id, gathering_id)
        self._gatherings.set_active(tenant_id, gathering_id, bool(active))
        return replace(gathering, is_active=bool(active))

    def list_gatherings(self, tenant_id: str, *, active_only: bool = False) -> Sequence[Gathering]:
        return self._gatherings.list_for_tenant(tenant_id, active_only=active_only)
