"""Scheduled absence scan (cron entry point).

Run once per follow-up cycle, e.g. weekly after the main service:

    APP_ENV=production python scripts/scan_absences.py
"""
from __future__ import annotations

import argparse
import importlib
import logging
import sys

from dotenv import load_dotenv

from congregate.config import get_settings_module
from congregate.container import build_container
from congregate.core.enums import Capability

logger = logging.getLogger("congregate.scripts.scan_absences")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute consecutive absences and follow-up flags.")
    parser.add_argument("--tenant", action="append", help="Only scan this tenant id (repeatable)")
    args = parser.parse_args(argv)

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    container = build_container(db_config=dict(settings.DB_CONFIG), settings=settings)
    tenant_ids = args.tenant or list(container.tenants_repo.list_tenant_ids())

    failures = 0
    for tenant_id in tenant_ids:
        tenant = container.tenants_repo.get_by_id(tenant_id)
        if tenant is None:
            logger.warning("Unknown tenant %s, skipping", tenant_id)
            continue
        if not container.policy.authorize(tenant_id, Capability.FOLLOW_UP_QUEUE).allowed:
            logger.info("Follow-up not available for tenant %s, skipping", tenant_id)
            continue
        try:
            summary = container.follow_up_tracker.scan_absences(tenant_id)
        except Exception:
            failures += 1
            logger.exception("Absence scan failed tenant=%s", tenant_id)
            continue
        logger.info(
            "tenant=%s scanned=%d flagged=%d incremented=%d reset=%d skipped=%d baselined=%d",
            tenant_id,
            summary.scanned,
            summary.flagged,
            summary.incremented,
            summary.reset,
            summary.skipped,
            summary.baselined,
        )

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
