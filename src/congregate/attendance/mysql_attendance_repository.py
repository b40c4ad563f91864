from __future__ import annotations

from datetime import date, datetime
from typing import Mapping, Optional, Sequence

from ..common.datetime_utils import ensure_aware
from ..core.enums import AgeGroup, CheckInMethod, Gender
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import AttendanceRecord
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, tenant_id, gathering_id, member_id, visitor_id, attendance_date, check_in_method,
    checked_in_at, is_guest, visitor_name, visitor_gender, visitor_age_group
"""


def _row_to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=str(r["record_id"]),
        tenant_id=str(r["tenant_id"]),
        gathering_id=r.get("gathering_id"),
        member_id=r.get("member_id"),
        visitor_id=r.get("visitor_id"),
        attendance_date=r["attendance_date"],
        check_in_method=CheckInMethod(r["check_in_method"]),
        checked_in_at=r["checked_in_at"],
        is_guest=bool(r.get("is_guest")),
        visitor_name=r.get("visitor_name"),
        visitor_gender=Gender(r["visitor_gender"]) if r.get("visitor_gender") else None,
        visitor_age_group=AgeGroup(r["visitor_age_group"]) if r.get("visitor_age_group") else None,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert_if_absent(self, record: AttendanceRecord) -> Optional[AttendanceRecord]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"""
                    INSERT INTO attendance_records({_COLUMNS}, dedupe_key)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        record.record_id,
                        record.tenant_id,
                        record.gathering_id,
                        record.member_id,
                        record.visitor_id,
                        record.attendance_date,
                        record.check_in_method.value,
                        record.checked_in_at,
                        int(record.is_guest),
                        record.visitor_name,
                        record.visitor_gender.value if record.visitor_gender else None,
                        record.visitor_age_group.value if record.visitor_age_group else None,
                        record.dedupe_key,
                    ),
                )
        except Exception as exc:
            # UNIQUE(dedupe_key) is the authoritative duplicate guard
            if is_duplicate_key(exc):
                return None
            raise
        return record

    def get_by_key(self, dedupe_key: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE dedupe_key=%s", (dedupe_key,))
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def get_by_id(self, tenant_id: str, record_id: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE tenant_id=%s AND record_id=%s",
                (tenant_id, record_id),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def delete(self, tenant_id: str, record_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM attendance_records WHERE tenant_id=%s AND record_id=%s",
                (tenant_id, record_id),
            )
            return cur.rowcount > 0

    def list_for_gathering(self, tenant_id: str, gathering_id: str, attendance_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE tenant_id=%s AND gathering_id=%s AND attendance_date=%s
                ORDER BY checked_in_at ASC
                """,
                (tenant_id, gathering_id, attendance_date),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def last_attendance_dates(self, tenant_id: str) -> Mapping[str, date]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT member_id, MAX(attendance_date) AS last_date
                FROM attendance_records
                WHERE tenant_id=%s AND member_id IS NOT NULL
                GROUP BY member_id
                """,
                (tenant_id,),
            )
            return {str(r["member_id"]): r["last_date"] for r in fetchall(cur)}

    def last_check_in_times(self, tenant_id: str) -> Mapping[str, datetime]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT member_id, MAX(checked_in_at) AS last_seen
                FROM attendance_records
                WHERE tenant_id=%s AND member_id IS NOT NULL
                GROUP BY member_id
                """,
                (tenant_id,),
            )
            return {str(r["member_id"]): ensure_aware(r["last_seen"]) for r in fetchall(cur)}
