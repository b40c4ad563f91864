from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .rate_limit import RateLimitRepository


def _utc_naive(value: datetime) -> datetime:
    # DATETIME columns hold naive UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class MySQLRateLimitRepository(RateLimitRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def count_since(self, key: str, action: str, since: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS n FROM rate_limits WHERE rate_key=%s AND action=%s AND created_at >= %s",
                (key, action, _utc_naive(since)),
            )
            r = fetchone(cur)
            return int(r["n"]) if r else 0

    def oldest_since(self, key: str, action: str, since: datetime) -> Optional[datetime]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT MIN(created_at) AS oldest FROM rate_limits
                WHERE rate_key=%s AND action=%s AND created_at >= %s
                """,
                (key, action, _utc_naive(since)),
            )
            r = fetchone(cur)
            return r["oldest"] if r else None

    def record(self, key: str, action: str, at: datetime, *, tenant_id: Optional[str] = None) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO rate_limits(tenant_id, rate_key, action, created_at) VALUES(%s,%s,%s,%s)",
                (tenant_id, key, action, _utc_naive(at)),
            )

    def purge_older_than(self, before: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM rate_limits WHERE created_at < %s", (_utc_naive(before),))
            return int(cur.rowcount or 0)
