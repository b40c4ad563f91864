from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Gathering
from .repository import GatheringRepository

_COLUMNS = """
    gathering_id, tenant_id, name, gathering_type, location, starts_at, ends_at, is_active,
    external_checkin_enabled, external_checkin_url, external_checkin_pin
"""


def _row_to_gathering(r: dict) -> Gathering:
    return Gathering(
        gathering_id=str(r["gathering_id"]),
        tenant_id=str(r["tenant_id"]),
        name=r["name"],
        gathering_type=r["gathering_type"],
        location=r.get("location"),
        starts_at=r.get("starts_at"),
        ends_at=r.get("ends_at"),
        is_active=bool(r.get("is_active")),
        external_checkin_enabled=bool(r.get("external_checkin_enabled")),
        external_checkin_url=r.get("external_checkin_url"),
        external_checkin_pin=r.get("external_checkin_pin"),
    )


class MySQLGatheringRepository(GatheringRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, tenant_id: str, gathering_id: str) -> Optional[Gathering]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM gatherings WHERE tenant_id=%s AND gathering_id=%s",
                (tenant_id, gathering_id),
            )
            r = fetchone(cur)
            return _row_to_gathering(r) if r else None

    def get_by_external_url(self, url_token: str) -> Optional[Gathering]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM gatherings WHERE external_checkin_url=%s",
                (url_token,),
            )
            r = fetchone(cur)
            return _row_to_gathering(r) if r else None

    def create(self, gathering: Gathering) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO gatherings(gathering_id, tenant_id, name, gathering_type, location, starts_at, ends_at, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    gathering.gathering_id,
                    gathering.tenant_id,
                    gathering.name,
                    gathering.gathering_type,
                    gathering.location,
                    gathering.starts_at,
                    gathering.ends_at,
                    int(gathering.is_active),
                ),
            )

    def set_active(self, tenant_id: str, gathering_id: str, active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE gatherings SET is_active=%s WHERE tenant_id=%s AND gathering_id=%s",
                (int(active), tenant_id, gathering_id),
            )
            return cur.rowcount > 0

    def set_external_checkin(
        self,
        tenant_id: str,
        gathering_id: str,
        *,
        enabled: bool,
        url_token: Optional[str],
        pin: Optional[str],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE gatherings
                SET external_checkin_enabled=%s, external_checkin_url=%s, external_checkin_pin=%s
                WHERE tenant_id=%s AND gathering_id=%s
                """,
                (int(enabled), url_token, pin, tenant_id, gathering_id),
            )
            return cur.rowcount > 0

    def list_for_tenant(self, tenant_id: str, *, active_only: bool = False) -> Sequence[Gathering]:
        sql = f"SELECT {_COLUMNS} FROM gatherings WHERE tenant_id=%s"
        if active_only:
            sql += " AND is_active=1"
        sql += " ORDER BY starts_at DESC, name ASC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (tenant_id,))
            return [_row_to_gathering(r) for r in fetchall(cur)]
