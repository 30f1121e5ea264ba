"""Use cases behind the demo generator endpoints and scripts."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from crm_demo.core.errors import JobNotFoundError, PlanValidationError, TenantNotFoundError
from crm_demo.core.log import get_logger
from crm_demo.domain.enums import GenerationMode
from crm_demo.domain.months import current_month_key, is_month_key, month_key
from crm_demo.domain.types import (
    DemoConfig,
    MonthlyKpiSnapshot,
    MonthlyMetricTargets,
    MonthlyPlan,
    MonthlyTarget,
    ValidationIssue,
    sum_targets,
)
from crm_demo.generator.chunked import DemoGenerator, JobProgress
from crm_demo.generator.growth_planner import GrowthPlanner
from crm_demo.generator.kpi import KpiAggregator
from crm_demo.generator.plan_validator import (
    PlanValidationResult,
    validate_config,
    validate_monthly_plan,
)
from crm_demo.models import DemoGenerationJob
from crm_demo.repositories.demo_repository import DemoRepository

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ConfigPreview:
    """Per-month targets a configuration would generate, without touching the database."""

    mode: GenerationMode
    months: list[MonthlyTarget]
    totals: MonthlyMetricTargets
    estimated_seconds: int
    warnings: list[ValidationIssue] = field(default_factory=list)


@dataclass
class PreviewPlan:
    today: Optional[date] = None

    def execute(self, config: DemoConfig) -> ConfigPreview:
        config = config.resolved()
        issues = validate_config(config, today=self.today)
        if config.mode is GenerationMode.GROWTH_CURVE:
            planner = GrowthPlanner(config, today=self.today)
            issues.extend(planner.validate())
            if issues:
                raise PlanValidationError(issues)
            preview = planner.preview()
            return ConfigPreview(
                mode=config.mode,
                months=[allocation.as_target() for allocation in preview.months],
                totals=preview.totals,
                estimated_seconds=preview.estimated_seconds,
            )

        if issues:
            raise PlanValidationError(issues)
        assert config.monthly_plan is not None
        result = validate_monthly_plan(config.monthly_plan, today=self.today)
        months = list(config.monthly_plan.months)
        return ConfigPreview(
            mode=config.mode,
            months=months,
            totals=sum_targets(months),
            estimated_seconds=result.estimated_generation_seconds,
            warnings=list(result.warnings),
        )


@dataclass
class ValidatePlan:
    today: Optional[date] = None

    def execute(self, plan: MonthlyPlan) -> PlanValidationResult:
        result = validate_monthly_plan(plan, today=self.today)
        LOGGER.debug(
            "Validated plan of %s months: %s errors, %s warnings",
            len(plan.months),
            len(result.errors),
            len(result.warnings),
        )
        return result


@dataclass
class CreateJob:
    session: Session

    def execute(
        self,
        config: DemoConfig,
        *,
        seed: Optional[str] = None,
        created_by: Optional[int] = None,
        start: bool = True,
    ) -> JobProgress:
        """Persist a job and, unless ``start`` is false, run its first invocation."""

        generator = DemoGenerator(self.session)
        job = generator.create_job(config, seed=seed, created_by=created_by)
        if not start:
            return generator.status(job.id)
        return generator.start(job.id)


@dataclass
class ContinueJob:
    session: Session

    def execute(self, job_id: int) -> JobProgress:
        return DemoGenerator(self.session).continue_generation(job_id)


@dataclass
class RetryJob:
    session: Session

    def execute(self, job_id: int) -> JobProgress:
        return DemoGenerator(self.session).retry(job_id)


@dataclass
class GetJob:
    session: Session

    def execute(self, job_id: int) -> tuple[DemoGenerationJob, JobProgress]:
        job = DemoRepository(self.session).get_generation_job(job_id)
        if job is None:
            raise JobNotFoundError("Generation", job_id)
        return job, DemoGenerator(self.session).status(job_id)


@dataclass(frozen=True)
class TenantKpis:
    tenant_id: int
    from_month: str
    to_month: str
    include_overrides: bool
    months: list[MonthlyKpiSnapshot]


@dataclass
class GetTenantKpis:
    session: Session
    today: Optional[date] = None

    def execute(
        self,
        tenant_id: int,
        *,
        from_month: Optional[str] = None,
        to_month: Optional[str] = None,
        include_overrides: bool = False,
    ) -> TenantKpis:
        """Monthly KPIs of a tenant; the range defaults to its demo start month through now."""

        repository = DemoRepository(self.session)
        if repository.get_tenant(tenant_id) is None:
            raise TenantNotFoundError(tenant_id)
        to_month = to_month or current_month_key(self.today)
        if from_month is None:
            metadata = repository.get_tenant_metadata(tenant_id)
            from_month = month_key(metadata.start_date) if metadata is not None else to_month

        issues = [
            ValidationIssue(name, f"Invalid month format: {value}. Expected YYYY-MM.")
            for name, value in (("fromMonth", from_month), ("toMonth", to_month))
            if not is_month_key(value)
        ]
        if not issues and from_month > to_month:
            issues.append(ValidationIssue("fromMonth", "fromMonth must not be after toMonth"))
        if issues:
            raise PlanValidationError(issues)

        snapshots = KpiAggregator(self.session, tenant_id).query_monthly_kpis(
            from_month, to_month, include_overrides=include_overrides
        )
        return TenantKpis(
            tenant_id=tenant_id,
            from_month=from_month,
            to_month=to_month,
            include_overrides=include_overrides,
            months=snapshots,
        )
