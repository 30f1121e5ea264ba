#!/usr/bin/env python3
"""Delete generated demo tenants and everything they own."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from crm_demo.core.errors import DemoGeneratorError
from crm_demo.core.log import get_logger, init_logging
from crm_demo.db.session import get_sessionmaker, session_scope
from crm_demo.services.tenant_service import DemoTenantService

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--tenant-id", type=int, action="append", help="Tenant to delete (repeatable)")
    target.add_argument("--all", action="store_true", help="Delete every demo-generated tenant")
    parser.add_argument("--database-url", type=str, default=None, help="Override the configured database URL")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    with session_scope(get_sessionmaker(args.database_url)) as session:
        service = DemoTenantService(session)
        if args.all:
            reports = service.delete_all()
        else:
            reports = []
            for tenant_id in args.tenant_id:
                try:
                    reports.append(service.delete_tenant(tenant_id))
                except DemoGeneratorError as exc:
                    logger.error("Skipping tenant %s: %s", tenant_id, exc)
        for report in reports:
            summary = ", ".join(f"{count} {label}" for label, count in report.deleted.items() if count)
            logger.info("Tenant %s removed: %s", report.tenant_id, summary or "nothing to delete")
            if report.stopped_jobs:
                logger.warning("Stopped generation jobs: %s", ", ".join(map(str, report.stopped_jobs)))
        logger.info("Cleanup complete (%s tenants)", len(reports))
        return 0


if __name__ == "__main__":
    init_logging(app_name="cleanup-demo")
    sys.exit(main())
