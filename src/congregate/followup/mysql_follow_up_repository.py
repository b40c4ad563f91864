from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import ContactMethod
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import FollowUpRecord
from .repository import FollowUpRepository

_COLUMNS = """
    member_id, tenant_id, last_contact_at, contact_method, consecutive_absences,
    needs_follow_up, last_attendance_date, last_scan_date, last_scan_at
"""


def _row_to_record(r: dict) -> FollowUpRecord:
    return FollowUpRecord(
        member_id=str(r["member_id"]),
        tenant_id=str(r["tenant_id"]),
        last_contact_at=r.get("last_contact_at"),
        contact_method=ContactMethod(r["contact_method"]) if r.get("contact_method") else None,
        consecutive_absences=int(r.get("consecutive_absences") or 0),
        needs_follow_up=bool(r.get("needs_follow_up")),
        last_attendance_date=r.get("last_attendance_date"),
        last_scan_date=r.get("last_scan_date"),
        last_scan_at=r.get("last_scan_at"),
    )


class MySQLFollowUpRepository(FollowUpRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, tenant_id: str, member_id: str) -> Optional[FollowUpRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM follow_up_records WHERE tenant_id=%s AND member_id=%s",
                (tenant_id, member_id),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def save(self, record: FollowUpRecord) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO follow_up_records({_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    last_contact_at=VALUES(last_contact_at),
                    contact_method=VALUES(contact_method),
                    consecutive_absences=VALUES(consecutive_absences),
                    needs_follow_up=VALUES(needs_follow_up),
                    last_attendance_date=VALUES(last_attendance_date),
                    last_scan_date=VALUES(last_scan_date),
                    last_scan_at=VALUES(last_scan_at)
                """,
                (
                    record.member_id,
                    record.tenant_id,
                    record.last_contact_at,
                    record.contact_method.value if record.contact_method else None,
                    int(record.consecutive_absences),
                    int(record.needs_follow_up),
                    record.last_attendance_date,
                    record.last_scan_date,
                    record.last_scan_at,
                ),
            )

    def list_for_tenant(self, tenant_id: str) -> Sequence[FollowUpRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM follow_up_records WHERE tenant_id=%s", (tenant_id,))
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_needing_follow_up(self, tenant_id: str) -> Sequence[FollowUpRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM follow_up_records
                WHERE tenant_id=%s AND needs_follow_up=1
                ORDER BY consecutive_absences DESC
                """,
                (tenant_id,),
            )
            return [_row_to_record(r) for r in fetchall(cur)]
