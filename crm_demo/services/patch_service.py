"""Validates patch plans and runs them as audited patch jobs."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from crm_demo.core.errors import PatchBlockedError, PlanValidationError, TenantNotDemoError
from crm_demo.core.log import get_logger, log_context
from crm_demo.domain.enums import JobStatus, PatchMode
from crm_demo.domain.months import is_month_key
from crm_demo.domain.types import MonthlyKpiSnapshot, PatchPlan
from crm_demo.generator.kpi import KpiAggregator
from crm_demo.generator.patch_engine import PatchEngine
from crm_demo.generator.patch_validator import (
    PatchPreview,
    PatchValidationResult,
    generate_preview,
    validate_patch_plan,
)
from crm_demo.generator.rng import generate_seed
from crm_demo.models import DemoPatchJob
from crm_demo.repositories.demo_repository import DemoRepository

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class PatchCheck:
    validation: PatchValidationResult
    preview: Optional[PatchPreview]


class PatchService:
    """Entry point for patching an already generated demo tenant."""

    def __init__(
        self,
        session: Session,
        *,
        now: Callable[[], datetime] = datetime.now,
        today: Optional[date] = None,
    ) -> None:
        self._session = session
        self._now = now
        self._today = today
        self._repository = DemoRepository(session)

    def current_kpis(self, tenant_id: int, plan: PatchPlan) -> list[MonthlyKpiSnapshot]:
        """Snapshots of the plan's months; metrics-only plans see the displayed values."""

        months = [month.month for month in plan.months if is_month_key(month.month)]
        return KpiAggregator(self._session, tenant_id).snapshots_for(
            months, include_overrides=plan.mode is PatchMode.METRICS_ONLY
        )

    def validate(self, tenant_id: int, plan: PatchPlan) -> PatchCheck:
        current = self.current_kpis(tenant_id, plan)
        validation = validate_patch_plan(self._session, tenant_id, plan, current, today=self._today)
        preview = generate_preview(plan, current) if validation.valid else None
        return PatchCheck(validation=validation, preview=preview)

    def apply(self, tenant_id: int, plan: PatchPlan, created_by: Optional[int] = None) -> DemoPatchJob:
        """Create a patch job for ``plan`` and run it to completion.

        Raises :class:`TenantNotDemoError` for tenants the generator did not
        create, :class:`PlanValidationError` for invalid plans and
        :class:`PatchBlockedError` when the mode forbids a requested change.
        """

        check = self.validate(tenant_id, plan)
        if not check.validation.valid:
            if any(issue.path == "tenantId" for issue in check.validation.errors):
                raise TenantNotDemoError(check.validation.errors[0].message)
            raise PlanValidationError(check.validation.errors)
        assert check.preview is not None
        if not check.preview.feasible:
            raise PatchBlockedError(check.preview.blockers)

        metadata = self._repository.get_tenant_metadata(tenant_id)
        months = plan.month_keys
        now = self._now()
        job = DemoPatchJob(
            tenant_id=tenant_id,
            original_job_id=metadata.generation_job_id if metadata is not None else None,
            created_by_id=created_by,
            mode=plan.mode.value,
            plan_type=plan.plan_type.value,
            patch_plan=plan.to_wire(),
            seed=plan.seed or generate_seed(),
            range_start_month=months[0],
            range_end_month=months[-1],
            tolerance_config=plan.tolerances.to_wire(),
            status=JobStatus.PENDING.value,
            progress=0,
            current_step="Pending",
            logs=[],
            created_at=now,
            updated_at=now,
        )
        self._session.add(job)
        self._session.commit()
        LOGGER.info(
            "Created patch job %s for tenant %s (%s, %s..%s)",
            job.id,
            tenant_id,
            plan.mode.value,
            months[0],
            months[-1],
        )

        with log_context.scoped(tenant_id=tenant_id):
            return PatchEngine(self._session, job.id, now=self._now).execute()
