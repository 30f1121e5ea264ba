from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crm_demo.core.errors import PatchBlockedError, PlanValidationError, TenantNotDemoError
from crm_demo.domain.enums import JobStatus, PatchMode, PlanType
from crm_demo.domain.types import PatchMonth, PatchPlan
from crm_demo.generator.chunked import JobProgress
from crm_demo.generator.kpi import KpiAggregator
from crm_demo.generator.patch_engine import PatchEngine, shift_values
from crm_demo.models import Contact, Deal, DemoMetricOverride, DemoPatchJob, Tenant
from crm_demo.services.patch_service import PatchService
from crm_demo.services.reporting import ReportingService

from factories import TODAY, fixed_now


def _plan(mode: PatchMode, month: str, plan_type: PlanType = PlanType.TARGETS, **metrics) -> PatchPlan:
    return PatchPlan(
        mode=mode,
        plan_type=plan_type,
        months=(PatchMonth(month, metrics),),
        seed="patch-seed",
    )


def _service(session: Session) -> PatchService:
    return PatchService(session, now=fixed_now, today=TODAY)


def _kpis(session: Session, tenant_id: int, month: str):
    return KpiAggregator(session, tenant_id).month_snapshot(month)


def test_shift_values_moves_sum_exactly() -> None:
    values = [Decimal("100.00"), Decimal("200.00"), Decimal("33.33")]

    shifted = shift_values(values, Decimal("10.01"))

    assert sum(shifted) == Decimal("343.34")
    assert all(value >= 0 for value in shifted)
    assert shift_values(values, Decimal("-1000")) == [Decimal("0.00")] * 3
    assert sum(shift_values([Decimal("0"), Decimal("0")], Decimal("0.03"))) == Decimal("0.03")
    assert shift_values([], Decimal("5")) == []


def test_additive_targets_create_missing_rows(session: Session, generated_tenant: JobProgress) -> None:
    tenant_id = generated_tenant.tenant_id
    plan = _plan(
        PatchMode.ADDITIVE,
        "2024-01",
        contacts_created=25,
        deals_created=13,
        closed_won_count=4,
        closed_won_value=Decimal("11000"),
        pipeline_added_value=Decimal("30000"),
    )

    job = _service(session).apply(tenant_id, plan)

    assert job.status == JobStatus.COMPLETED.value
    assert job.diff_report["overallPassed"] is True
    assert job.original_job_id == generated_tenant.job_id
    assert job.metrics["byEntity"]["contacts"]["created"] == 5
    assert job.metrics["byEntity"]["deals"]["created"] == 3
    assert job.metrics["recordsDeleted"] == 0

    after = _kpis(session, tenant_id, "2024-01")
    assert after.get("contacts_created") == 25
    assert after.get("leads_created") == 8
    assert after.get("deals_created") == 13
    assert after.get("closed_won_count") == 4
    assert after.get("closed_won_value") == Decimal("11000.00")
    assert after.get("pipeline_added_value") == Decimal("30000.00")
    assert session.scalar(
        select(func.count()).select_from(Contact).where(Contact.demo_patch_job_id == job.id)
    ) == 5


def test_additive_won_without_pipeline_keeps_pipeline_flat(session: Session, generated_tenant: JobProgress) -> None:
    """Extra deals are created lost when the plan leaves pipeline alone."""

    tenant_id = generated_tenant.tenant_id
    plan = _plan(
        PatchMode.ADDITIVE,
        "2024-02",
        PlanType.DELTAS,
        deals_created=4,
        closed_won_count=1,
        closed_won_value=Decimal("3000"),
    )

    job = _service(session).apply(tenant_id, plan)

    after = _kpis(session, tenant_id, "2024-02")
    assert job.diff_report["overallPassed"] is True
    assert after.get("deals_created") == 16
    assert after.get("closed_won_value") == Decimal("15500.00")
    assert after.get("pipeline_added_value") == Decimal("33000.00")


def test_additive_activities_delta(session: Session, generated_tenant: JobProgress) -> None:
    tenant_id = generated_tenant.tenant_id
    before = _kpis(session, tenant_id, "2024-03").get("activities_created")

    job = _service(session).apply(
        tenant_id, _plan(PatchMode.ADDITIVE, "2024-03", PlanType.DELTAS, activities_created=10)
    )

    assert job.metrics["byEntity"]["activities"]["created"] == 10
    assert _kpis(session, tenant_id, "2024-03").get("activities_created") == before + 10


def test_additive_refuses_reductions(session: Session, generated_tenant: JobProgress) -> None:
    plan = _plan(PatchMode.ADDITIVE, "2024-01", contacts_created=10)

    with pytest.raises(PlanValidationError) as excinfo:
        _service(session).apply(generated_tenant.tenant_id, plan)

    assert "cannot reduce" in str(excinfo.value)
    assert session.scalar(select(func.count()).select_from(DemoPatchJob)) == 0


def test_metrics_only_writes_override(session: Session, generated_tenant: JobProgress) -> None:
    """Reported KPIs move while the underlying rows stay as generated."""

    tenant_id = generated_tenant.tenant_id
    plan = _plan(
        PatchMode.METRICS_ONLY,
        "2024-02",
        contacts_created=54,
        closed_won_value=Decimal("13000.25"),
    )

    job = _service(session).apply(tenant_id, plan)

    assert job.status == JobStatus.COMPLETED.value
    assert job.metrics["metricOverridesApplied"] == 1
    assert job.metrics["recordsCreated"] == 0
    assert job.diff_report["overallPassed"] is True

    raw = _kpis(session, tenant_id, "2024-02")
    assert raw.get("contacts_created") == 24
    assert raw.get("closed_won_value") == Decimal("12500.00")

    reported = ReportingService(session).period_metrics(tenant_id, "2024-01", "2024-03")
    february = reported.months[1]
    assert february.get("contacts_created") == 54
    assert february.get("closed_won_value") == Decimal("13000.25")
    assert reported.totals.get("contacts_created") == 20 + 54 + 28

    override = session.scalars(select(DemoMetricOverride)).one()
    assert override.patch_job_id == job.id
    assert override.contacts_created_override == 30


def test_metrics_only_second_patch_accumulates(session: Session, generated_tenant: JobProgress) -> None:
    tenant_id = generated_tenant.tenant_id
    service = _service(session)

    service.apply(tenant_id, _plan(PatchMode.METRICS_ONLY, "2024-02", contacts_created=54))
    service.apply(tenant_id, _plan(PatchMode.METRICS_ONLY, "2024-02", contacts_created=60))

    reported = ReportingService(session).period_metrics(tenant_id, "2024-02", "2024-02")
    assert reported.months[0].get("contacts_created") == 60
    assert session.scalars(select(DemoMetricOverride)).one().contacts_created_override == 36


def test_metrics_only_blocks_reductions(session: Session, generated_tenant: JobProgress) -> None:
    plan = _plan(PatchMode.METRICS_ONLY, "2024-02", contacts_created=10)

    with pytest.raises(PatchBlockedError) as excinfo:
        _service(session).apply(generated_tenant.tenant_id, plan)

    assert "Cannot reduce" in excinfo.value.blockers[0]


def test_metrics_only_rejects_leads(session: Session, generated_tenant: JobProgress) -> None:
    plan = _plan(PatchMode.METRICS_ONLY, "2024-02", leads_created=40)

    with pytest.raises(PlanValidationError) as excinfo:
        _service(session).apply(generated_tenant.tenant_id, plan)

    assert excinfo.value.issues[0].path == "months[0].metrics.leadsCreated"


def test_reconcile_deletes_surplus_and_corrects_value(session: Session, generated_tenant: JobProgress) -> None:
    tenant_id = generated_tenant.tenant_id
    plan = _plan(
        PatchMode.RECONCILE,
        "2024-02",
        contacts_created=20,
        deals_created=10,
        closed_won_value=Decimal("13000"),
    )

    job = _service(session).apply(tenant_id, plan)

    assert job.status == JobStatus.COMPLETED.value
    assert job.diff_report["overallPassed"] is True
    by_entity = job.metrics["byEntity"]
    assert by_entity["contacts"]["deleted"] == 4
    assert by_entity["deals"]["deleted"] == 2
    assert by_entity["deals"]["modified"] >= 1

    after = _kpis(session, tenant_id, "2024-02")
    assert after.get("contacts_created") == 20
    assert after.get("leads_created") == 10
    assert after.get("deals_created") == 10
    assert after.get("closed_won_count") == 4
    assert after.get("closed_won_value") == Decimal("13000.00")

    deleted = session.scalars(select(Deal).where(Deal.tenant_id == tenant_id, Deal.deleted_at.is_not(None))).all()
    assert len(deleted) == 2
    assert all(deal.demo_generated for deal in deleted)


def test_patch_rejects_non_demo_tenant(session: Session) -> None:
    tenant = Tenant(name="Real customer", is_demo=False)
    session.add(tenant)
    session.commit()

    with pytest.raises(TenantNotDemoError):
        _service(session).apply(tenant.id, _plan(PatchMode.ADDITIVE, "2024-01", contacts_created=5))


def test_failed_patch_job_is_recorded(session: Session) -> None:
    job = DemoPatchJob(
        tenant_id=None,
        mode=PatchMode.ADDITIVE.value,
        plan_type=PlanType.DELTAS.value,
        patch_plan=_plan(PatchMode.ADDITIVE, "2024-01", PlanType.DELTAS, contacts_created=1).to_wire(),
        seed="orphan",
        range_start_month="2024-01",
        range_end_month="2024-01",
        status=JobStatus.PENDING.value,
        logs=[],
    )
    session.add(job)
    session.commit()

    with pytest.raises(TenantNotDemoError):
        PatchEngine(session, job.id, now=fixed_now, batch_size=10).execute()

    failed = session.get(DemoPatchJob, job.id)
    assert failed.status == JobStatus.FAILED.value
    assert "no tenant" in failed.error_message
    assert failed.error_stack


def test_completed_patch_job_is_not_rerun(session: Session, generated_tenant: JobProgress) -> None:
    tenant_id = generated_tenant.tenant_id
    job = _service(session).apply(
        tenant_id, _plan(PatchMode.ADDITIVE, "2024-01", PlanType.DELTAS, contacts_created=2)
    )

    again = PatchEngine(session, job.id, now=fixed_now, batch_size=10).execute()

    assert again.id == job.id
    assert _kpis(session, tenant_id, "2024-01").get("contacts_created") == 22
