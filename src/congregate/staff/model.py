from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import StaffRole


@dataclass(frozen=True)
class StaffUser:
    """Thực thể miền (domain): tài khoản nhân sự của một tenant.

    Lưu ý: Đây là đối tượng dữ liệu thuần (không chứa code truy cập DB).
    """

    staff_id: str
    tenant_id: str
    email: str
    full_name: str
    password_hash: str
    role: StaffRole
    is_active: bool = True
