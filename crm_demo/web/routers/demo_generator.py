"""Routes for generating, inspecting, patching and deleting demo tenants."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm_demo.generator.chunked import JobProgress
from crm_demo.models import DemoPatchJob
from crm_demo.schemas.demo import (
    DemoConfigRequest,
    JobDetailResponse,
    JobProgressResponse,
    KpiSnapshotPayload,
    MonthlyPlanPayload,
    MonthPreviewPayload,
    MonthTargetsPayload,
    PlanValidationResponse,
    PreviewResponse,
    TenantKpisResponse,
    ValidationIssuePayload,
)
from crm_demo.schemas.patch import PatchJobResponse, PatchPlanRequest, PatchValidationResponse
from crm_demo.services import (
    ContinueJob,
    CreateJob,
    DemoTenantService,
    GetJob,
    GetTenantKpis,
    PatchService,
    PreviewPlan,
    RetryJob,
    ValidatePlan,
)
from crm_demo.web.dependencies import get_db_session

router = APIRouter(prefix="/demo-generator", tags=["demo-generator"])

_MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def _progress_response(progress: JobProgress) -> JobProgressResponse:
    return JobProgressResponse(**progress.to_wire())


def _patch_job_response(job: DemoPatchJob) -> PatchJobResponse:
    return PatchJobResponse(
        id=job.id,
        tenant_id=job.tenant_id,
        status=job.status,
        mode=job.mode,
        plan_type=job.plan_type,
        range_start_month=job.range_start_month,
        range_end_month=job.range_end_month,
        progress=job.progress,
        current_step=job.current_step,
        metrics=job.metrics,
        diff_report=job.diff_report,
        before_kpis=job.before_kpis,
        after_kpis=job.after_kpis,
        error_message=job.error_message,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


@router.post("/preview", response_model=PreviewResponse)
def preview_config(body: DemoConfigRequest) -> PreviewResponse:
    """Return the per-month targets a configuration would generate."""

    preview = PreviewPlan().execute(body.to_domain())
    return PreviewResponse(
        mode=preview.mode,
        months=[
            MonthPreviewPayload(month=target.month, targets=MonthTargetsPayload.from_domain(target.targets))
            for target in preview.months
        ],
        totals=MonthTargetsPayload.from_domain(preview.totals),
        estimated_seconds=preview.estimated_seconds,
        warnings=[ValidationIssuePayload.from_domain(issue) for issue in preview.warnings],
    )


@router.post("/validate-plan", response_model=PlanValidationResponse)
def validate_plan(body: MonthlyPlanPayload) -> PlanValidationResponse:
    result = ValidatePlan().execute(body.to_domain())
    return PlanValidationResponse(
        valid=result.valid,
        errors=[ValidationIssuePayload.from_domain(issue) for issue in result.errors],
        warnings=[ValidationIssuePayload.from_domain(issue) for issue in result.warnings],
        derived=result.derived.to_wire() if result.derived is not None else None,
        estimated_generation_seconds=result.estimated_generation_seconds,
    )


@router.post("/jobs", response_model=JobProgressResponse, status_code=201)
def create_job(
    body: DemoConfigRequest,
    start: bool = Query(True, description="Run the first invocation immediately"),
    session: Session = Depends(get_db_session),
) -> JobProgressResponse:
    progress = CreateJob(session).execute(body.to_domain(), seed=body.seed, start=start)
    return _progress_response(progress)


@router.post("/jobs/{job_id}/continue", response_model=JobProgressResponse)
def continue_job(job_id: int, session: Session = Depends(get_db_session)) -> JobProgressResponse:
    """Run the next invocation of a running job; safe to call repeatedly."""

    return _progress_response(ContinueJob(session).execute(job_id))


@router.post("/jobs/{job_id}/retry", response_model=JobProgressResponse)
def retry_job(job_id: int, session: Session = Depends(get_db_session)) -> JobProgressResponse:
    return _progress_response(RetryJob(session).execute(job_id))


@router.get("/jobs/{job_id}", response_model=JobDetailResponse)
def get_job(job_id: int, session: Session = Depends(get_db_session)) -> JobDetailResponse:
    job, progress = GetJob(session).execute(job_id)
    return JobDetailResponse(
        **progress.to_wire(),
        mode=job.mode,
        seed=job.seed,
        config=job.config,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        metrics=job.metrics,
        verification_report=job.verification_report,
        logs=job.logs or [],
    )


@router.get("/tenants/{tenant_id}/kpis", response_model=TenantKpisResponse)
def tenant_kpis(
    tenant_id: int,
    from_month: Optional[str] = Query(None, alias="fromMonth", pattern=_MONTH_PATTERN),
    to_month: Optional[str] = Query(None, alias="toMonth", pattern=_MONTH_PATTERN),
    include_overrides: bool = Query(False, alias="includeOverrides"),
    session: Session = Depends(get_db_session),
) -> TenantKpisResponse:
    kpis = GetTenantKpis(session).execute(
        tenant_id, from_month=from_month, to_month=to_month, include_overrides=include_overrides
    )
    return TenantKpisResponse(
        tenant_id=kpis.tenant_id,
        from_month=kpis.from_month,
        to_month=kpis.to_month,
        include_overrides=kpis.include_overrides,
        months=[KpiSnapshotPayload(**snapshot.to_wire()) for snapshot in kpis.months],
    )


@router.post("/tenants/{tenant_id}/patch/validate", response_model=PatchValidationResponse)
def validate_patch(
    tenant_id: int,
    body: PatchPlanRequest,
    session: Session = Depends(get_db_session),
) -> PatchValidationResponse:
    check = PatchService(session).validate(tenant_id, body.to_domain())
    return PatchValidationResponse(
        valid=check.validation.valid,
        errors=[ValidationIssuePayload.from_domain(issue) for issue in check.validation.errors],
        warnings=[ValidationIssuePayload.from_domain(issue) for issue in check.validation.warnings],
        preview=check.preview.to_wire() if check.preview is not None else None,
    )


@router.post("/tenants/{tenant_id}/patch/apply", response_model=PatchJobResponse)
def apply_patch(
    tenant_id: int,
    body: PatchPlanRequest,
    session: Session = Depends(get_db_session),
) -> PatchJobResponse:
    job = PatchService(session).apply(tenant_id, body.to_domain())
    return _patch_job_response(job)


@router.delete("/tenants/{tenant_id}")
def delete_tenant(tenant_id: int, session: Session = Depends(get_db_session)) -> dict[str, object]:
    return DemoTenantService(session).delete_tenant(tenant_id).to_wire()
