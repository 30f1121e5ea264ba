#!/usr/bin/env python3
"""Generate a demo tenant end to end from the command line."""
from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from crm_demo.core.errors import PlanValidationError
from crm_demo.core.log import get_logger, init_logging, log_context, progress_manager, timeit
from crm_demo.db.engine import create_schema
from crm_demo.db.session import get_sessionmaker, session_scope
from crm_demo.domain.enums import GenerationMode, GrowthCurve, Industry, JobStatus
from crm_demo.domain.types import (
    DemoConfig,
    GrowthConfig,
    MonthlyPlan,
    ToleranceConfig,
    VolumeTargets,
)
from crm_demo.generator.chunked import DemoGenerator

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    default_start = date(date.today().year - 1, date.today().month, 1).isoformat()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--country", type=str, default="US", help="Two-letter country code (US, GB, DE)")
    parser.add_argument(
        "--industry", type=str, default=Industry.SAAS.value, choices=[item.value for item in Industry]
    )
    parser.add_argument("--start-date", type=str, default=default_start, help="First day of history (YYYY-MM-DD)")
    parser.add_argument("--months", type=int, default=None, help="Months of history (defaults to start..today)")
    parser.add_argument("--tenant-name", type=str, default=None)
    parser.add_argument("--team-size", type=int, default=8)
    parser.add_argument("--leads", type=int, default=300)
    parser.add_argument("--contacts", type=int, default=500)
    parser.add_argument("--companies", type=int, default=200)
    parser.add_argument("--pipeline-value", type=Decimal, default=Decimal("500000"))
    parser.add_argument("--won-value", type=Decimal, default=Decimal("150000"))
    parser.add_argument("--won-count", type=int, default=100)
    parser.add_argument(
        "--curve", type=str, default=GrowthCurve.EXPONENTIAL.value, choices=[item.value for item in GrowthCurve]
    )
    parser.add_argument("--growth-rate", type=float, default=15.0, help="Monthly growth in percent")
    parser.add_argument("--seasonality", action="store_true", help="Apply calendar seasonality to the curve")
    parser.add_argument("--plan", type=Path, default=None, help="JSON monthly plan; switches to monthly-plan mode")
    parser.add_argument("--count-tolerance", type=int, default=0)
    parser.add_argument("--value-tolerance", type=float, default=0.005)
    parser.add_argument("--seed", type=str, default=None, help="Seed for reproducible output")
    parser.add_argument("--database-url", type=str, default=None, help="Override the configured database URL")
    parser.add_argument("--create-schema", action="store_true", help="Create missing tables first")
    return parser.parse_args()


def build_config(args: argparse.Namespace) -> DemoConfig:
    tolerances = ToleranceConfig(count_tolerance=args.count_tolerance, value_tolerance=args.value_tolerance)
    monthly_plan = None
    mode = GenerationMode.GROWTH_CURVE
    if args.plan is not None:
        monthly_plan = MonthlyPlan.from_wire(json.loads(args.plan.read_text(encoding="utf-8")))
        mode = GenerationMode.MONTHLY_PLAN
    return DemoConfig(
        mode=mode,
        country=args.country,
        industry=Industry(args.industry),
        start_date=date.fromisoformat(args.start_date),
        tenant_name=args.tenant_name,
        team_size=args.team_size,
        months=args.months,
        targets=VolumeTargets(
            leads=args.leads,
            contacts=args.contacts,
            companies=args.companies,
            pipeline_value=args.pipeline_value,
            closed_won_value=args.won_value,
            closed_won_count=args.won_count,
        ),
        growth=GrowthConfig(
            curve=GrowthCurve(args.curve),
            monthly_rate=args.growth_rate,
            seasonality=args.seasonality,
        ),
        monthly_plan=monthly_plan,
        tolerances=tolerances,
    )


def main() -> int:
    args = parse_args()
    factory = get_sessionmaker(args.database_url)
    if args.create_schema:
        create_schema(factory.kw["bind"])

    with session_scope(factory) as session:
        generator = DemoGenerator(session)
        try:
            job = generator.create_job(build_config(args), seed=args.seed)
        except PlanValidationError as exc:
            for issue in exc.issues:
                logger.error("%s: %s", issue.path, issue.message)
            return 2

        log_context.bind(job_id=job.id)
        logger.info("Created generation job %s (seed %s)", job.id, job.seed)
        with timeit(f"generation job {job.id}", logger=logger), progress_manager.generation(job.id) as bar:
            progress = generator.start(job.id)
            bar.show(progress.progress, progress.current_step)
            while progress.status is JobStatus.RUNNING:
                progress = generator.continue_generation(job.id)
                bar.show(progress.progress, progress.current_step)

        if progress.status is JobStatus.FAILED:
            logger.error("Job %s failed: %s", job.id, progress.error_message)
            return 1

        session.refresh(job)
        report = job.verification_report or {}
        logger.info(
            "Tenant %s ready; verification %s (%s/%s metrics within tolerance)",
            progress.tenant_id,
            "passed" if progress.verification_passed else "FAILED",
            report.get("passedMetrics", 0),
            report.get("totalMetrics", 0),
        )
        for month in report.get("months", []):
            for check in month.get("metrics", []):
                if not check.get("passed"):
                    logger.warning(
                        "%s %s: target %s, actual %s",
                        month.get("month"),
                        check.get("metric"),
                        check.get("target"),
                        check.get("actual"),
                    )
        return 0


if __name__ == "__main__":
    init_logging(app_name="gen-demo-tenant")
    log_context.bind(job="gen_demo_tenant")
    sys.exit(main())
