from __future__ import annotations

from typing import Optional

from ..core.enums import StaffRole
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import StaffUser
from .repository import StaffRepository


class MySQLStaffRepository(StaffRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_email(self, email: str) -> Optional[StaffUser]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT staff_id, tenant_id, email, full_name, password_hash, role, is_active
                FROM staff_users
                WHERE email=%s
                """,
                (email.strip().lower(),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return StaffUser(
                staff_id=str(r["staff_id"]),
                tenant_id=str(r["tenant_id"]),
                email=r["email"],
                full_name=r["full_name"],
                password_hash=r["password_hash"],
                role=StaffRole(r["role"]),
                is_active=bool(r["is_active"]),
            )

    def create(self, staff: StaffUser) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO staff_users(staff_id, tenant_id, email, full_name, password_hash, role, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    staff.staff_id,
                    staff.tenant_id,
                    staff.email.strip().lower(),
                    staff.full_name,
                    staff.password_hash,
                    staff.role.value,
                    int(staff.is_active),
                ),
            )
