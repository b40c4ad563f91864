from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import AgeGroup, Gender, VisitorFollowUpStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Visitor
from .repository import VisitorRepository

_COLUMNS = """
    visitor_id, tenant_id, first_name, surname, gender, age_group, phone, email,
    how_heard, prayer_points, follow_up_status, promoted_member_id, created_at
"""


def _row_to_visitor(r: dict) -> Visitor:
    return Visitor(
        visitor_id=str(r["visitor_id"]),
        tenant_id=str(r["tenant_id"]),
        first_name=r["first_name"],
        surname=r["surname"],
        gender=Gender(r["gender"]),
        age_group=AgeGroup(r["age_group"]),
        phone=r.get("phone"),
        email=r.get("email"),
        how_heard=r.get("how_heard"),
        prayer_points=r.get("prayer_points"),
        follow_up_status=VisitorFollowUpStatus(r["follow_up_status"]),
        promoted_member_id=r.get("promoted_member_id"),
        created_at=r.get("created_at"),
    )


class MySQLVisitorRepository(VisitorRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, tenant_id: str, visitor_id: str) -> Optional[Visitor]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM visitors WHERE tenant_id=%s AND visitor_id=%s",
                (tenant_id, visitor_id),
            )
            r = fetchone(cur)
            return _row_to_visitor(r) if r else None

    def create(self, visitor: Visitor) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO visitors(visitor_id, tenant_id, first_name, surname, gender, age_group, phone, email,
                                     how_heard, prayer_points, follow_up_status)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    visitor.visitor_id,
                    visitor.tenant_id,
                    visitor.first_name,
                    visitor.surname,
                    visitor.gender.value,
                    visitor.age_group.value,
                    visitor.phone,
                    visitor.email,
                    visitor.how_heard,
                    visitor.prayer_points,
                    visitor.follow_up_status.value,
                ),
            )

    def update_follow_up_status(
        self,
        tenant_id: str,
        visitor_id: str,
        *,
        status: VisitorFollowUpStatus,
        promoted_member_id: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE visitors
                SET follow_up_status=%s, promoted_member_id=COALESCE(%s, promoted_member_id)
                WHERE tenant_id=%s AND visitor_id=%s
                """,
                (status.value, promoted_member_id, tenant_id, visitor_id),
            )
            return cur.rowcount > 0

    def list_for_tenant(self, tenant_id: str, *, status: Optional[VisitorFollowUpStatus] = None) -> Sequence[Visitor]:
        clauses = ["tenant_id=%s"]
        params: list[object] = [tenant_id]
        if status is not None:
            clauses.append("follow_up_status=%s")
            params.append(status.value)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM visitors WHERE {' AND '.join(clauses)} ORDER BY created_at DESC",
                tuple(params),
            )
            return [_row_to_visitor(r) for r in fetchall(cur)]
