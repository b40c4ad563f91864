from __future__ import annotations

from dataclasses import dataclass

from werkzeug.security import check_password_hash

from ..core.enums import StaffRole
from ..core.exceptions import AuthenticationError
from .repository import StaffRepository


@dataclass(frozen=True)
class SessionStaff:
    """What we store into Flask session after login."""

    staff_id: str
    tenant_id: str
    full_name: str
    role: StaffRole


class AuthService:
    """Use case: authenticate staff (login)."""

    def __init__(self, staff: StaffRepository):
        self._staff = staff

    def authenticate(self, email: str, password: str) -> SessionStaff:
        user = self._staff.get_by_email((email or "").strip().lower())
        if not user or not user.is_active:
            raise AuthenticationError("Invalid email or password")

        try:
            ok = check_password_hash(user.password_hash, password or "")
        except ValueError:
            # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
            ok = False

        if not ok:
            raise AuthenticationError("Invalid email or password")

        return SessionStaff(
            staff_id=user.staff_id,
            tenant_id=user.tenant_id,
            full_name=user.full_name,
            role=user.role,
        )
