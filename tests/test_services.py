from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crm_demo.core.errors import PlanValidationError, TenantNotDemoError, TenantNotFoundError
from crm_demo.domain.enums import GenerationMode, Industry, JobStatus, PatchMode, PlanType
from crm_demo.domain.types import DemoConfig, PatchMonth, PatchPlan, VolumeTargets
from crm_demo.generator.chunked import DemoGenerator, JobProgress
from crm_demo.models import (
    Contact,
    Deal,
    DemoGenerationJob,
    DemoPatchJob,
    DemoTenantMetadata,
    Tenant,
)
from crm_demo.services import (
    DemoTenantService,
    GetTenantKpis,
    PatchService,
    PreviewPlan,
    ReportingService,
    ValidatePlan,
)

from factories import TODAY, budgeted_generator, fixed_now, plan_config, small_plan


def test_preview_monthly_plan_totals() -> None:
    preview = PreviewPlan(today=TODAY).execute(plan_config())

    assert preview.mode is GenerationMode.MONTHLY_PLAN
    assert [month.month for month in preview.months] == ["2024-01", "2024-02", "2024-03"]
    assert preview.totals.contacts_created == 72
    assert preview.totals.closed_won_value == Decimal("36750.50")
    assert preview.estimated_seconds == 2


def test_preview_growth_curve() -> None:
    config = DemoConfig(
        country="de",
        industry=Industry.ECOMMERCE,
        start_date=date(2024, 1, 1),
        months=4,
        targets=VolumeTargets(leads=400, contacts=800),
    )

    preview = PreviewPlan(today=TODAY).execute(config)

    assert len(preview.months) == 4
    assert preview.totals.contacts_created == 800
    assert preview.totals.leads_created == 400
    assert preview.estimated_seconds >= 5


def test_preview_rejects_invalid_config() -> None:
    with pytest.raises(PlanValidationError):
        PreviewPlan(today=TODAY).execute(plan_config(start_date=date(2025, 1, 1)))


def test_validate_plan_use_case() -> None:
    result = ValidatePlan(today=TODAY).execute(small_plan())

    assert result.valid
    assert result.derived.total_contacts == 72


def test_tenant_kpis_default_range(session: Session, generated_tenant: JobProgress) -> None:
    kpis = GetTenantKpis(session, today=TODAY).execute(generated_tenant.tenant_id)

    assert kpis.from_month == "2024-01"
    assert kpis.to_month == "2024-06"
    assert len(kpis.months) == 6
    assert kpis.months[0].get("contacts_created") == 20
    assert kpis.months[5].get("contacts_created") == 0


def test_tenant_kpis_errors(session: Session, generated_tenant: JobProgress) -> None:
    use_case = GetTenantKpis(session, today=TODAY)

    with pytest.raises(TenantNotFoundError):
        use_case.execute(9999)
    with pytest.raises(PlanValidationError):
        use_case.execute(generated_tenant.tenant_id, from_month="2024-05", to_month="2024-02")


def test_reporting_totals(session: Session, generated_tenant: JobProgress) -> None:
    metrics = ReportingService(session).period_metrics(generated_tenant.tenant_id, "2024-01", date(2024, 3, 1))

    assert metrics.end_month == "2024-03"
    assert metrics.totals.get("deals_created") == 36
    assert metrics.totals.get("closed_won_value") == Decimal("36750.50")
    with pytest.raises(PlanValidationError):
        ReportingService(session).period_metrics(generated_tenant.tenant_id, "2024-1", "2024-03")
    with pytest.raises(TenantNotFoundError):
        ReportingService(session).period_metrics(9999, "2024-01", "2024-03")


def test_delete_tenant_removes_rows_and_detaches_jobs(session: Session, generated_tenant: JobProgress) -> None:
    tenant_id = generated_tenant.tenant_id
    patch_job = PatchService(session, now=fixed_now, today=TODAY).apply(
        tenant_id,
        PatchPlan(
            mode=PatchMode.METRICS_ONLY,
            plan_type=PlanType.DELTAS,
            months=(PatchMonth("2024-01", {"contacts_created": 5}),),
        ),
    )

    report = DemoTenantService(session, now=fixed_now).delete_tenant(tenant_id)

    assert report.deleted["contacts"] == 72
    assert report.deleted["metricOverrides"] == 1
    assert report.deleted["tenant"] == 1
    assert report.stopped_jobs == []
    assert session.get(Tenant, tenant_id) is None
    assert session.scalar(select(func.count()).select_from(Contact).where(Contact.tenant_id == tenant_id)) == 0
    assert session.scalar(select(func.count()).select_from(Deal).where(Deal.tenant_id == tenant_id)) == 0
    assert session.scalars(select(DemoTenantMetadata)).first() is None

    job = session.get(DemoGenerationJob, generated_tenant.job_id)
    assert job.created_tenant_id is None
    assert job.status == JobStatus.COMPLETED.value
    session.expire_all()
    assert session.get(DemoPatchJob, patch_job.id).tenant_id is None
    assert report.to_wire()["totalDeleted"] == report.total_deleted


def test_delete_tenant_stops_running_job(session: Session) -> None:
    generator = budgeted_generator(session, rows=21)
    job = generator.create_job(plan_config(), seed="teardown")
    progress = generator.start(job.id)
    assert progress.status is JobStatus.RUNNING

    report = DemoTenantService(session, now=fixed_now).delete_tenant(progress.tenant_id)

    assert report.stopped_jobs == [job.id]
    after = generator.continue_generation(job.id)
    assert after.status is JobStatus.FAILED
    assert "was deleted" in after.error_message
    assert session.scalar(select(func.count()).select_from(Contact)) == 0


def test_delete_rejects_non_demo_tenant(session: Session) -> None:
    tenant = Tenant(name="Real customer", is_demo=False)
    session.add(tenant)
    session.commit()

    with pytest.raises(TenantNotDemoError):
        DemoTenantService(session).delete_tenant(tenant.id)
    with pytest.raises(TenantNotFoundError):
        DemoTenantService(session).delete_tenant(9999)


def test_delete_all_demo_tenants(session: Session, generator: DemoGenerator) -> None:
    plan = small_plan()
    tenants = [
        generator.run_to_completion(generator.create_job(plan_config(plan), seed=seed).id).tenant_id
        for seed in ("one", "two")
    ]
    real = Tenant(name="Real customer", is_demo=False)
    session.add(real)
    session.commit()

    reports = DemoTenantService(session).delete_all()

    assert sorted(report.tenant_id for report in reports) == sorted(tenants)
    assert session.get(Tenant, real.id) is not None

