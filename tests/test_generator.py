from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from crm_demo.core.config import GeneratorSettings
from crm_demo.core.errors import JobNotFoundError, PlanValidationError
from crm_demo.domain.enums import GenerationMode, GenerationPhase, GrowthCurve, Industry, JobStatus
from crm_demo.domain.types import DemoConfig, GrowthConfig, VolumeTargets
from crm_demo.generator.chunked import DemoGenerator, JobProgress
from crm_demo.generator.kpi import KpiAggregator
from crm_demo.models import (
    Company,
    Contact,
    Deal,
    DemoGenerationJob,
    DemoTenantMetadata,
    PipelineStage,
    Tenant,
    User,
)

from factories import TODAY, budgeted_generator, fixed_now, plan_config


def _company_names(session: Session, tenant_id: int) -> list[str]:
    return list(session.scalars(select(Company.name).where(Company.tenant_id == tenant_id).order_by(Company.id)))


def _deal_values(session: Session, tenant_id: int) -> list[Decimal]:
    return list(session.scalars(select(Deal.value).where(Deal.tenant_id == tenant_id).order_by(Deal.id)))


def test_monthly_plan_job_hits_every_target(session: Session, generated_tenant: JobProgress) -> None:
    """A completed monthly-plan job matches each month's targets exactly."""

    progress = generated_tenant

    assert progress.status is JobStatus.COMPLETED
    assert progress.phase is GenerationPhase.COMPLETED
    assert progress.progress == 100
    assert progress.verification_passed is True

    snapshots = KpiAggregator(session, progress.tenant_id).query_monthly_kpis("2024-01", "2024-03")
    march = snapshots[-1]
    assert march.get("contacts_created") == 28
    assert march.get("leads_created") == 12
    assert march.get("companies_created") == 8
    assert march.get("deals_created") == 14
    assert march.get("closed_won_count") == 5
    assert march.get("closed_won_value") == Decimal("15250.50")
    assert march.get("pipeline_added_value") == Decimal("41000.00")


def test_completed_job_records_tenant_and_report(session: Session, generated_tenant: JobProgress) -> None:
    job = session.get(DemoGenerationJob, generated_tenant.job_id)
    tenant = session.get(Tenant, generated_tenant.tenant_id)
    metadata = session.scalars(
        select(DemoTenantMetadata).where(DemoTenantMetadata.tenant_id == tenant.id)
    ).one()

    assert tenant.is_demo
    assert tenant.currency == "USD"
    assert metadata.is_demo_generated
    assert metadata.start_date == date(2024, 1, 1)
    assert metadata.generation_job_id == job.id
    assert job.verification_report["overallPassed"] is True
    assert job.verification_report["totalMetrics"] == 21
    assert job.metrics["companies"] == 21
    assert job.metrics["contacts"] == 72
    assert job.metrics["users"] == 4
    assert job.completed_at is not None
    assert any(entry["message"] == "Generation completed" for entry in job.logs)
    assert session.scalar(select(User.id).where(User.tenant_id == tenant.id)) is not None
    stages = session.scalars(select(PipelineStage).where(PipelineStage.tenant_id == tenant.id)).all()
    assert any(stage.is_won for stage in stages)
    assert any(stage.is_lost for stage in stages)


def test_generated_rows_carry_provenance(session: Session, generated_tenant: JobProgress) -> None:
    contacts = session.scalars(select(Contact).where(Contact.tenant_id == generated_tenant.tenant_id)).all()

    assert contacts
    assert all(contact.demo_generated for contact in contacts)
    assert all(contact.demo_job_id == generated_tenant.job_id for contact in contacts)
    assert {contact.demo_source_month for contact in contacts} == {"2024-01", "2024-02", "2024-03"}
    assert len({contact.email for contact in contacts}) == len(contacts)


def test_growth_curve_job_passes_verification(session: Session, generator: DemoGenerator) -> None:
    config = DemoConfig(
        country="GB",
        industry=Industry.SAAS,
        start_date=date(2024, 1, 1),
        months=3,
        team_size=5,
        targets=VolumeTargets(
            leads=150,
            contacts=300,
            companies=30,
            pipeline_value=Decimal("60000"),
            closed_won_value=Decimal("20000"),
            closed_won_count=12,
        ),
        growth=GrowthConfig(curve=GrowthCurve.RAMP, monthly_rate=10),
    )

    job = generator.create_job(config, seed="42")
    progress = generator.run_to_completion(job.id)

    assert progress.status is JobStatus.COMPLETED
    assert progress.verification_passed is True
    assert sum(
        snapshot.get("contacts_created")
        for snapshot in KpiAggregator(session, progress.tenant_id).query_monthly_kpis("2024-01", "2024-03")
    ) == 300
    assert session.get(Tenant, progress.tenant_id).currency == "GBP"


def test_linear_growth_job_splits_contacts_evenly(session: Session, generator: DemoGenerator) -> None:
    """300 contacts over three months on a linear curve is 100 a month."""

    config = DemoConfig(
        country="US",
        industry=Industry.SAAS,
        start_date=date(2024, 4, 1),
        months=3,
        targets=VolumeTargets(contacts=300),
        growth=GrowthConfig(curve=GrowthCurve.LINEAR),
    )

    progress = generator.run_to_completion(generator.create_job(config, seed="42").id)

    assert progress.status is JobStatus.COMPLETED
    assert progress.verification_passed is True
    snapshots = KpiAggregator(session, progress.tenant_id).query_monthly_kpis("2024-04", "2024-06")
    assert [snapshot.get("contacts_created") for snapshot in snapshots] == [100, 100, 100]
    contacts = list(session.scalars(select(Contact).where(Contact.tenant_id == progress.tenant_id)))
    assert len(contacts) == 300
    assert all(contact.demo_generated for contact in contacts)
    assert {contact.demo_source_month for contact in contacts} == {"2024-04", "2024-05", "2024-06"}


def test_growth_job_meets_pipeline_in_months_without_wins(session: Session, generator: DemoGenerator) -> None:
    """Ten wins over twelve months leave two months without a won deal."""

    config = DemoConfig(
        country="US",
        industry=Industry.SAAS,
        start_date=date(2023, 7, 1),
        months=12,
        targets=VolumeTargets(
            leads=24,
            contacts=60,
            companies=12,
            pipeline_value=Decimal("500000"),
            closed_won_value=Decimal("50000"),
            closed_won_count=10,
        ),
        growth=GrowthConfig(curve=GrowthCurve.LINEAR, monthly_rate=0),
    )

    progress = generator.run_to_completion(generator.create_job(config, seed="wins").id)

    assert progress.status is JobStatus.COMPLETED
    assert progress.verification_passed is True
    snapshots = KpiAggregator(session, progress.tenant_id).query_monthly_kpis("2023-07", "2024-06")
    assert sum(snapshot.get("pipeline_added_value") for snapshot in snapshots) == Decimal("500000")


def test_create_job_rejects_invalid_config(generator: DemoGenerator) -> None:
    with pytest.raises(PlanValidationError) as excinfo:
        generator.create_job(plan_config(team_size=1, country="usa"))

    paths = {issue.path for issue in excinfo.value.issues}
    assert {"teamSize", "country"} <= paths


def test_create_job_fixes_growth_months(session: Session, generator: DemoGenerator) -> None:
    """Growth jobs created without ``months`` keep the span from creation day."""

    config = DemoConfig(
        country="US",
        industry=Industry.TRADING,
        start_date=date(2024, 2, 10),
        mode=GenerationMode.GROWTH_CURVE,
    )

    job = generator.create_job(config)

    assert job.config["months"] == 5
    assert job.status == JobStatus.PENDING.value
    assert len(job.seed) == 32


def test_row_budget_pauses_and_resumes(session: Session) -> None:
    """A row budget stops the job mid-phase; continuations finish it."""

    generator = budgeted_generator(session, rows=21)
    job = generator.create_job(plan_config(), seed="resume-seed")

    first = generator.start(job.id)

    assert first.status is JobStatus.RUNNING
    assert first.phase is GenerationPhase.CONTACTS
    assert 0 < first.progress < 100
    assert session.scalar(select(Contact.id).where(Contact.tenant_id == first.tenant_id)) is None

    progress = first
    invocations = 1
    while progress.status is JobStatus.RUNNING:
        progress = generator.continue_generation(job.id)
        invocations += 1

    assert progress.status is JobStatus.COMPLETED
    assert progress.verification_passed is True
    assert invocations > 3


def test_resumed_job_matches_uninterrupted_job(session: Session, generator: DemoGenerator) -> None:
    """Interrupting a job does not change a single generated row."""

    straight = generator.run_to_completion(generator.create_job(plan_config(), seed="same-seed").id)
    chunked = budgeted_generator(session, rows=11, batch_size=4)
    resumed = chunked.run_to_completion(chunked.create_job(plan_config(), seed="same-seed").id)

    assert resumed.status is JobStatus.COMPLETED
    assert _company_names(session, straight.tenant_id) == _company_names(session, resumed.tenant_id)
    assert _deal_values(session, straight.tenant_id) == _deal_values(session, resumed.tenant_id)


def test_different_seeds_differ(session: Session, generator: DemoGenerator) -> None:
    first = generator.run_to_completion(generator.create_job(plan_config(), seed="seed-a").id)
    second = generator.run_to_completion(generator.create_job(plan_config(), seed="seed-b").id)

    assert _company_names(session, first.tenant_id) != _company_names(session, second.tenant_id)


def test_zero_time_budget_does_no_work(session: Session) -> None:
    settings = GeneratorSettings(batch_size=50, max_execution_seconds=0)
    generator = DemoGenerator(session, settings, now=fixed_now, today=TODAY)
    job = generator.create_job(plan_config(), seed="slow")

    progress = generator.start(job.id)

    assert progress.status is JobStatus.RUNNING
    assert progress.phase is GenerationPhase.INIT
    assert progress.tenant_id is None


def test_concurrent_continuation_is_a_no_op(session: Session) -> None:
    """A continuation holding a stale revision rolls back instead of writing."""

    generator = budgeted_generator(session, rows=21)
    job = generator.create_job(plan_config(), seed="race")
    first = generator.start(job.id)
    assert first.phase is GenerationPhase.CONTACTS

    # another invocation advances the job behind this session's back
    session.execute(
        update(DemoGenerationJob)
        .where(DemoGenerationJob.id == job.id)
        .values(revision=DemoGenerationJob.revision + 1)
        .execution_options(synchronize_session=False)
    )
    session.commit()

    progress = generator.continue_generation(job.id)

    assert progress.status is JobStatus.RUNNING
    assert progress.phase is GenerationPhase.CONTACTS
    assert progress.revision == first.revision + 1
    assert session.scalar(select(Contact.id).where(Contact.tenant_id == first.tenant_id)) is None


def test_failure_is_recorded_and_retry_resumes(session: Session) -> None:
    generator = budgeted_generator(session, rows=21)
    job = generator.create_job(plan_config(), seed="flaky")
    generator.start(job.id)
    good_state = dict(job.generation_state)

    job.generation_state = {**good_state, "version": 99}
    session.commit()
    failed = generator.continue_generation(job.id)

    assert failed.status is JobStatus.FAILED
    assert "version" in failed.error_message
    assert session.get(DemoGenerationJob, job.id).error_stack

    assert generator.continue_generation(job.id).status is JobStatus.FAILED

    job = session.get(DemoGenerationJob, job.id)
    job.generation_state = good_state
    session.commit()
    retried = generator.retry(job.id)
    while retried.status is JobStatus.RUNNING:
        retried = generator.continue_generation(job.id)

    assert retried.status is JobStatus.COMPLETED
    assert retried.error_message is None
    assert retried.verification_passed is True


def test_entry_points_ignore_wrong_status(generator: DemoGenerator, generated_tenant: JobProgress) -> None:
    job_id = generated_tenant.job_id

    assert generator.start(job_id) == generated_tenant
    assert generator.continue_generation(job_id) == generated_tenant
    assert generator.retry(job_id) == generated_tenant


def test_unknown_job(generator: DemoGenerator) -> None:
    with pytest.raises(JobNotFoundError):
        generator.status(404)


def test_progress_wire_is_camel_case(generated_tenant: JobProgress) -> None:
    wire = generated_tenant.to_wire()

    assert wire["status"] == "completed"
    assert wire["verificationPassed"] is True
    assert wire["tenantId"] == generated_tenant.tenant_id
