from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import SubscriptionTier
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Tenant
from .repository import TenantRepository

_COLUMNS = """
    tenant_id, name, subscription_tier, trial_start, trial_end, max_members,
    kiosk_mode_enabled, kiosk_session_timeout, timezone, brand_color
"""


def _row_to_tenant(r: dict) -> Tenant:
    return Tenant(
        tenant_id=str(r["tenant_id"]),
        name=r["name"],
        subscription_tier=SubscriptionTier(r["subscription_tier"]),
        trial_start=r.get("trial_start"),
        trial_end=r.get("trial_end"),
        max_members=int(r["max_members"]) if r.get("max_members") is not None else None,
        kiosk_mode_enabled=bool(r.get("kiosk_mode_enabled")),
        kiosk_session_timeout=int(r.get("kiosk_session_timeout") or 60),
        timezone=r.get("timezone") or "UTC",
        brand_color=r.get("brand_color"),
    )


class MySQLTenantRepository(TenantRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, tenant_id: str) -> Optional[Tenant]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM tenants WHERE tenant_id=%s", (tenant_id,))
            r = fetchone(cur)
            return _row_to_tenant(r) if r else None

    def list_tenant_ids(self) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT tenant_id FROM tenants ORDER BY created_at ASC")
            return [str(r["tenant_id"]) for r in fetchall(cur)]

    def create(self, tenant: Tenant) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO tenants(tenant_id, name, subscription_tier, trial_start, trial_end, max_members,
                                    kiosk_mode_enabled, kiosk_session_timeout, timezone, brand_color)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    tenant.tenant_id,
                    tenant.name,
                    tenant.subscription_tier.value,
                    tenant.trial_start,
                    tenant.trial_end,
                    tenant.max_members,
                    int(tenant.kiosk_mode_enabled),
                    int(tenant.kiosk_session_timeout),
                    tenant.timezone,
                    tenant.brand_color,
                ),
            )

    def update_subscription(self, tenant_id: str, *, tier: SubscriptionTier, max_members: Optional[int]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE tenants SET subscription_tier=%s, max_members=%s WHERE tenant_id=%s",
                (tier.value, max_members, tenant_id),
            )
            return cur.rowcount > 0

    def update_kiosk_settings(self, tenant_id: str, *, enabled: bool, timeout_minutes: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE tenants SET kiosk_mode_enabled=%s, kiosk_session_timeout=%s WHERE tenant_id=%s",
                (int(enabled), int(timeout_minutes), tenant_id),
            )
            return cur.rowcount > 0

    def factory_reset(self, tenant_id: str) -> None:
        # Delete in order to respect foreign key constraints, all in one transaction.
        with db_cursor(self._conn_factory) as (_, cur):
            for table in (
                "attendance_records",
                "follow_up_records",
                "visitors",
                "members",
                "gatherings",
                "rate_limits",
            ):
                cur.execute(f"DELETE FROM {table} WHERE tenant_id=%s", (tenant_id,))
