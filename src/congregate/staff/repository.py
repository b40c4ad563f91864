from __future__ import annotations

from typing import Optional, Protocol

from .model import StaffUser


class StaffRepository(Protocol):
    def get_by_email(self, email: str) -> Optional[StaffUser]:
        raise NotImplementedError

    def create(self, staff: StaffUser) -> None:
        raise NotImplementedError
