"""Builders for plans and configs used across the test modules."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from crm_demo.core.config import GeneratorSettings
from crm_demo.domain.enums import GenerationMode, Industry
from crm_demo.domain.types import (
    DemoConfig,
    MonthlyMetricTargets,
    MonthlyPlan,
    MonthlyTarget,
    ToleranceConfig,
)
from crm_demo.generator.chunked import DemoGenerator

NOW = datetime(2024, 6, 15, 12, 0)
TODAY = NOW.date()


def fixed_now() -> datetime:
    return NOW


def month_target(
    month: str,
    *,
    leads: int = 0,
    contacts: int = 0,
    companies: int = 0,
    deals: int = 0,
    won: int = 0,
    won_value: str = "0",
    pipeline: str = "0",
) -> MonthlyTarget:
    return MonthlyTarget(
        month=month,
        targets=MonthlyMetricTargets(
            leads_created=leads,
            contacts_created=contacts,
            companies_created=companies,
            deals_created=deals,
            closed_won_count=won,
            closed_won_value=Decimal(won_value),
            pipeline_added_value=Decimal(pipeline),
        ),
    )


def small_plan() -> MonthlyPlan:
    return MonthlyPlan(
        months=(
            month_target(
                "2024-01", leads=8, contacts=20, companies=6, deals=10, won=3, won_value="9000", pipeline="25000"
            ),
            month_target(
                "2024-02", leads=10, contacts=24, companies=7, deals=12, won=4, won_value="12500", pipeline="30000"
            ),
            month_target(
                "2024-03", leads=12, contacts=28, companies=8, deals=14, won=5, won_value="15250.50", pipeline="41000"
            ),
        ),
        tolerances=ToleranceConfig(count_tolerance=0, value_tolerance=0.005),
    )


def plan_config(plan: MonthlyPlan | None = None, **overrides) -> DemoConfig:
    values = dict(
        mode=GenerationMode.MONTHLY_PLAN,
        country="US",
        industry=Industry.SAAS,
        start_date=date(2024, 1, 1),
        team_size=4,
        monthly_plan=plan or small_plan(),
    )
    values.update(overrides)
    return DemoConfig(**values)


def budgeted_generator(session: Session, rows: int, batch_size: int = 7) -> DemoGenerator:
    """A generator that stops each invocation after ``rows`` inserted rows."""

    settings = GeneratorSettings(batch_size=batch_size, max_execution_seconds=600, max_rows_per_invocation=rows)
    return DemoGenerator(session, settings, now=fixed_now, today=TODAY)
