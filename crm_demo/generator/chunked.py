"""Chunked, resumable generation of a demo tenant.

A job advances through :class:`GenerationPhase` one invocation at a time.
Every invocation works until its wall-clock or row budget is spent, committing
each batch together with the updated :class:`GenerationState`. An external
scheduler keeps calling :meth:`DemoGenerator.continue_generation` until the job
reaches a terminal status.

Rows of a phase are derived from ``SeededRNG(seed).child(phase)`` and the state
left by earlier phases, so a phase interrupted half-way rebuilds the same rows
and skips the ``cursor`` already inserted.
"""
from __future__ import annotations

import logging
import time as time_module
import traceback
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import insert
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from crm_demo.core.config import GeneratorSettings, get_settings
from crm_demo.core.errors import (
    ConcurrentContinuationError,
    DemoGeneratorError,
    JobNotFoundError,
    PlanValidationError,
)
from crm_demo.core.log import get_logger, log_context, timeit
from crm_demo.domain.enums import GenerationMode, GenerationPhase, JobStatus, StageType
from crm_demo.domain.months import parse_month
from crm_demo.domain.types import PLAN_VERSION, DemoConfig, MonthlyTarget
from crm_demo.generator.growth_planner import GrowthPlanner
from crm_demo.generator.job_log import append_job_log
from crm_demo.generator.kpi import KpiVerifier, VerificationReport
from crm_demo.generator.locales import get_provider
from crm_demo.generator.locales.base import ascii_fold
from crm_demo.generator.plan_validator import validate_config
from crm_demo.generator.records import (
    BuildContext,
    PlannedRow,
    Provenance,
    RecordBuilder,
)
from crm_demo.generator.rng import SeededRNG, generate_seed
from crm_demo.generator.state import GenerationState, StageIds
from crm_demo.generator.strategies import TargetStrategy, strategy_for
from crm_demo.generator.templates import TAG_DEFINITIONS, get_template
from crm_demo.models import (
    Activity,
    Company,
    Contact,
    Deal,
    DemoGenerationJob,
    DemoTenantMetadata,
    PipelineStage,
    Tag,
    Tenant,
    User,
)
from crm_demo.repositories.demo_repository import DemoRepository

LOGGER = get_logger(__name__)

PHASES = GenerationPhase.ordered()


@dataclass(frozen=True, slots=True)
class JobProgress:
    """Snapshot of a generation job returned by every entry point."""

    job_id: int
    status: JobStatus
    phase: GenerationPhase
    progress: int
    current_step: Optional[str]
    tenant_id: Optional[int]
    revision: int
    verification_passed: Optional[bool] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def to_wire(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "phase": self.phase.value,
            "progress": self.progress,
            "currentStep": self.current_step,
            "tenantId": self.tenant_id,
            "revision": self.revision,
            "verificationPassed": self.verification_passed,
            "errorMessage": self.error_message,
        }


class _Budget:
    def __init__(
        self, seconds: float, rows: Optional[int], clock: Callable[[], float]
    ) -> None:
        self._clock = clock
        self.deadline = clock() + seconds
        self.rows_left = rows

    def exhausted(self) -> bool:
        if self.rows_left is not None and self.rows_left <= 0:
            return True
        return self._clock() >= self.deadline

    def batch_size(self, preferred: int) -> int:
        if self.rows_left is None:
            return preferred
        return max(0, min(preferred, self.rows_left))

    def consume(self, rows: int) -> None:
        if self.rows_left is not None:
            self.rows_left -= rows


@dataclass(slots=True)
class _RunContext:
    config: DemoConfig
    strategy: TargetStrategy
    targets: list[MonthlyTarget]
    budget: _Budget
    timer: Any = None
    inserted: dict[str, int] = field(default_factory=dict)


class DemoGenerator:
    """One generator for both growth-curve and monthly-plan jobs."""

    def __init__(
        self,
        session: Session,
        settings: Optional[GeneratorSettings] = None,
        *,
        clock: Callable[[], float] = time_module.monotonic,
        now: Callable[[], datetime] = datetime.now,
        today: Optional[date] = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings().generator
        self.repository = DemoRepository(session)
        self._clock = clock
        self._now = now
        self._today = today
        self._handlers: dict[GenerationPhase, Callable[[DemoGenerationJob, GenerationState, _RunContext], bool]] = {
            GenerationPhase.INIT: self._phase_init,
            GenerationPhase.TENANT: self._phase_tenant,
            GenerationPhase.USERS: self._phase_users,
            GenerationPhase.PIPELINE: self._phase_pipeline,
            GenerationPhase.TAGS: self._phase_tags,
            GenerationPhase.COMPANIES: self._phase_companies,
            GenerationPhase.CONTACTS: self._phase_contacts,
            GenerationPhase.DEALS: self._phase_deals,
            GenerationPhase.ACTIVITIES: self._phase_activities,
            GenerationPhase.VERIFY: self._phase_verify,
        }

    @property
    def today(self) -> date:
        return self._today or self._now().date()

    # ------------------------------------------------------------------
    # entry points

    def create_job(
        self,
        config: DemoConfig,
        *,
        seed: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> DemoGenerationJob:
        """Validate ``config`` and persist a pending job."""

        config = config.resolved()
        issues = validate_config(config, today=self.today)
        if config.mode is GenerationMode.GROWTH_CURVE:
            planner = GrowthPlanner(config, today=self.today)
            issues.extend(planner.validate())
            if config.months is None:
                config = replace(config, months=planner.span)
        if issues:
            raise PlanValidationError(issues)

        strategy = strategy_for(config, today=self.today)
        now = self._now()
        job = DemoGenerationJob(
            status=JobStatus.PENDING.value,
            mode=config.mode.value,
            config=config.to_wire(),
            seed=seed or generate_seed(),
            monthly_plan=config.monthly_plan.to_wire() if config.monthly_plan else None,
            plan_version=config.monthly_plan.version if config.monthly_plan else PLAN_VERSION,
            tolerance_config=strategy.tolerances.to_wire(),
            created_by_id=created_by,
            progress=0,
            current_step="Pending",
            generation_phase=GenerationPhase.INIT.value,
            logs=[],
            created_at=now,
            updated_at=now,
        )
        self.session.add(job)
        self.session.flush()
        self._log(job, logging.INFO, f"Job created ({config.mode.value}, {len(strategy.monthly_targets())} months)")
        self.session.commit()
        return job

    def start(self, job_id: int) -> JobProgress:
        job = self._load(job_id)
        if job.status != JobStatus.PENDING.value:
            LOGGER.info("Job %s is %s; start ignored", job_id, job.status)
            return self._progress(job)
        now = self._now()
        state = GenerationState(reference_time=now.replace(microsecond=0))
        job.status = JobStatus.RUNNING.value
        job.started_at = now
        job.generation_phase = GenerationPhase.INIT.value
        job.generation_state = state.to_wire()
        job.current_step = "Starting"
        self._log(job, logging.INFO, "Generation started")
        if not self._commit_job():
            return self.status(job_id)
        return self._run(job_id)

    def continue_generation(self, job_id: int) -> JobProgress:
        job = self._load(job_id)
        if job.status != JobStatus.RUNNING.value:
            LOGGER.info("Job %s is %s; continue ignored", job_id, job.status)
            return self._progress(job)
        return self._run(job_id)

    def retry(self, job_id: int) -> JobProgress:
        """Move a failed job back to running and resume from its last checkpoint."""

        job = self._load(job_id)
        if job.status != JobStatus.FAILED.value:
            LOGGER.info("Job %s is %s; retry ignored", job_id, job.status)
            return self._progress(job)
        job.status = JobStatus.RUNNING.value
        job.error_message = None
        job.error_stack = None
        self._log(job, logging.INFO, f"Retrying from phase {job.generation_phase}")
        if not self._commit_job():
            return self.status(job_id)
        return self._run(job_id)

    def status(self, job_id: int) -> JobProgress:
        return self._progress(self._load(job_id))

    def run_to_completion(self, job_id: int, *, max_invocations: int = 1000) -> JobProgress:
        """Drive ``start``/``continue`` in-process; used by scripts and tests."""

        progress = self.start(job_id)
        invocations = 1
        while progress.status is JobStatus.RUNNING and invocations < max_invocations:
            progress = self.continue_generation(job_id)
            invocations += 1
        return progress

    # ------------------------------------------------------------------
    # job bookkeeping

    def _load(self, job_id: int) -> DemoGenerationJob:
        job = self.repository.get_generation_job(job_id)
        if job is None:
            raise JobNotFoundError("Generation", job_id)
        return job

    @staticmethod
    def _progress(job: DemoGenerationJob) -> JobProgress:
        return JobProgress(
            job_id=job.id,
            status=JobStatus(job.status),
            phase=GenerationPhase(job.generation_phase),
            progress=job.progress,
            current_step=job.current_step,
            tenant_id=job.created_tenant_id,
            revision=job.revision,
            verification_passed=job.verification_passed,
            error_message=job.error_message,
        )

    def _log(self, job: DemoGenerationJob, level: int, message: str) -> None:
        append_job_log(job, level, message, logger=LOGGER, now=self._now())

    def _commit_job(self) -> bool:
        try:
            self.session.commit()
        except StaleDataError:
            self.session.rollback()
            LOGGER.warning("Job was modified by another invocation; nothing done")
            return False
        return True

    def _checkpoint(
        self,
        job: DemoGenerationJob,
        state: GenerationState,
        *,
        step: str,
        fraction: float = 0.0,
    ) -> None:
        phase = GenerationPhase(job.generation_phase)
        index = PHASES.index(phase)
        job.generation_state = state.to_wire()
        job.current_step = step
        if job.status == JobStatus.COMPLETED.value:
            job.progress = 100
        else:
            job.progress = min(99, int((index + fraction) / (len(PHASES) - 1) * 100))
        job.updated_at = self._now()
        try:
            self.session.commit()
        except StaleDataError as exc:
            raise ConcurrentContinuationError(
                f"Job {job.id} was advanced by another invocation"
            ) from exc

    def _advance(self, job: DemoGenerationJob, state: GenerationState, phase: GenerationPhase) -> None:
        following = phase.next()
        state.cursor = 0
        job.generation_phase = following.value
        self._log(job, logging.INFO, f"Phase {phase.value} complete; next {following.value}")
        self._checkpoint(job, state, step=f"Starting {following.value}")

    def _fail(self, job_id: int, exc: BaseException) -> None:
        job = self._load(job_id)
        job.status = JobStatus.FAILED.value
        job.error_message = str(exc) or exc.__class__.__name__
        job.error_stack = traceback.format_exc()
        job.updated_at = self._now()
        self._log(job, logging.ERROR, f"Generation failed in phase {job.generation_phase}: {job.error_message}")
        self._commit_job()

    # ------------------------------------------------------------------
    # execution loop

    def _run(self, job_id: int) -> JobProgress:
        job = self._load(job_id)
        budget = _Budget(
            self.settings.max_execution_seconds,
            self.settings.max_rows_per_invocation,
            self._clock,
        )
        with log_context.scoped(job_id=job.id, tenant_id=job.created_tenant_id):
            try:
                state = GenerationState.from_wire(job.generation_state or {})
                config = DemoConfig.from_wire(job.config)
                strategy = strategy_for(config, today=state.reference_time.date())
                context = _RunContext(config, strategy, strategy.monthly_targets(), budget)
                while True:
                    phase = GenerationPhase(job.generation_phase)
                    if phase is GenerationPhase.COMPLETED:
                        break
                    if budget.exhausted():
                        self._log(job, logging.INFO, f"Budget spent during {phase.value}; awaiting continuation")
                        self._checkpoint(job, state, step=job.current_step or phase.value, fraction=0.0)
                        break
                    with log_context.scoped(phase=phase.value), timeit(
                        f"phase {phase.value}", logger=LOGGER, unit="rows"
                    ) as timer:
                        context.timer = timer
                        finished = self._handlers[phase](job, state, context)
                    if not finished:
                        continue
                    if phase is not GenerationPhase.VERIFY:
                        self._advance(job, state, phase)
            except (ConcurrentContinuationError, StaleDataError):
                self.session.rollback()
                LOGGER.warning("Job %s was advanced by another invocation; stopping", job_id)
            except Exception as exc:
                self.session.rollback()
                LOGGER.exception("Generation job %s failed", job_id)
                self._fail(job_id, exc)
        return self.status(job_id)

    # ------------------------------------------------------------------
    # helpers

    def _rng(self, job: DemoGenerationJob, phase: GenerationPhase) -> SeededRNG:
        return SeededRNG(job.seed).child(phase.value)

    def _builder(
        self,
        job: DemoGenerationJob,
        state: GenerationState,
        context: _RunContext,
        phase: GenerationPhase,
    ) -> RecordBuilder:
        config = context.config
        build_context = BuildContext(
            tenant_id=int(state.tenant_id),
            country=config.country,
            currency=config.currency or "USD",
            template=get_template(config.industry),
            user_ids=state.user_ids,
            stages=state.stages,
            reference_time=state.reference_time,
            realism=config.realism,
            provenance=Provenance(job_id=job.id),
        )
        return RecordBuilder(build_context, self._rng(job, phase))

    def _insert(
        self,
        job: DemoGenerationJob,
        state: GenerationState,
        context: _RunContext,
        model: type,
        planned: Sequence[PlannedRow],
        on_inserted: Callable[[PlannedRow, Optional[int]], None],
        *,
        label: str,
        need_ids: bool = True,
    ) -> bool:
        """Insert ``planned[cursor:]`` in batches; ``False`` when the budget ran out first."""

        total = len(planned)
        while state.cursor < total:
            size = context.budget.batch_size(self.settings.batch_size)
            if size <= 0 or context.budget.exhausted():
                return False
            batch = list(planned[state.cursor : state.cursor + size])
            if need_ids:
                objects = [model(**row.values) for row in batch]
                self.session.add_all(objects)
                self.session.flush()
                for row, obj in zip(batch, objects):
                    on_inserted(row, obj.id)
            else:
                self.session.execute(insert(model), [row.values for row in batch])
                for row in batch:
                    on_inserted(row, None)
            state.cursor += len(batch)
            context.budget.consume(len(batch))
            context.inserted[label] = context.inserted.get(label, 0) + len(batch)
            if context.timer is not None:
                context.timer.add(len(batch))
            self._checkpoint(
                job, state, step=f"Creating {label}: {state.cursor}/{total}", fraction=state.cursor / total
            )
        self._log(job, logging.INFO, f"Created {total} {label}")
        return True

    # ------------------------------------------------------------------
    # phases

    def _phase_init(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        if not context.targets:
            raise DemoGeneratorError("Plan has no months to generate")
        first, last = context.targets[0].month, context.targets[-1].month
        self._log(job, logging.INFO, f"Generating {len(context.targets)} months ({first} to {last})")
        return True

    def _phase_tenant(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        if state.tenant_id is not None:
            return True
        config = context.config
        tenant = Tenant(
            name=config.tenant_name,
            country=config.country,
            timezone=config.timezone,
            currency=config.currency,
            industry=config.industry.value,
            is_demo=True,
            created_at=state.reference_time,
        )
        self.session.add(tenant)
        self.session.flush()
        self.session.add(
            DemoTenantMetadata(
                tenant_id=tenant.id,
                generation_job_id=job.id,
                country=config.country,
                industry=config.industry.value,
                start_date=parse_month(context.targets[0].month),
                is_demo_generated=True,
                excluded_from_analytics=True,
                created_at=state.reference_time,
            )
        )
        job.created_tenant_id = tenant.id
        state.tenant_id = tenant.id
        log_context.bind(tenant_id=tenant.id)
        self._log(job, logging.INFO, f"Created tenant {tenant.id} ({tenant.name})")
        return True

    def _phase_users(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        if state.user_ids:
            return True
        config = context.config
        rng = self._rng(job, GenerationPhase.USERS)
        provider = get_provider(config.country, rng)
        domain = provider.company_domain(config.tenant_name or "demo")
        joined = datetime.combine(parse_month(context.targets[0].month), time(9))
        taken: set[str] = set()
        users: list[User] = []
        for index in range(config.team_size):
            first, last = provider.first_name(), provider.last_name()
            local = ".".join(
                part for part in (ascii_fold(first).lower(), ascii_fold(last).lower()) if part
            ).replace(" ", "")
            email = f"{local}@{domain}"
            if email in taken:
                email = f"{local}{index}@{domain}"
            taken.add(email)
            users.append(
                User(
                    tenant_id=state.tenant_id,
                    email=email,
                    first_name=first,
                    last_name=last,
                    role="owner" if index == 0 else "member",
                    created_at=joined,
                )
            )
        self.session.add_all(users)
        self.session.flush()
        state.user_ids = [user.id for user in users]
        self._log(job, logging.INFO, f"Created {len(users)} team members")
        return True

    def _phase_pipeline(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        if state.stages.is_ready():
            return True
        template = get_template(context.config.industry)
        stages: list[PipelineStage] = []
        for position, stage in enumerate(template.stages):
            stages.append(
                PipelineStage(
                    tenant_id=state.tenant_id,
                    name=stage.name,
                    position=position,
                    color=stage.color,
                    probability=stage.probability,
                    is_won=stage.type is StageType.WON,
                    is_lost=stage.type is StageType.LOST,
                )
            )
        self.session.add_all(stages)
        self.session.flush()
        ids = StageIds()
        for row in stages:
            if row.is_won:
                ids.won.append(row.id)
            elif row.is_lost:
                ids.lost.append(row.id)
            else:
                ids.open.append((row.id, row.probability))
        state.stages = ids
        self._log(job, logging.INFO, f"Created pipeline '{template.pipeline_name}' with {len(stages)} stages")
        return True

    def _phase_tags(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        if state.tag_ids:
            return True
        tags = [Tag(tenant_id=state.tenant_id, name=name, color=color) for name, color in TAG_DEFINITIONS]
        self.session.add_all(tags)
        self.session.flush()
        state.tag_ids = [tag.id for tag in tags]
        return True

    def _phase_companies(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        builder = self._builder(job, state, context, GenerationPhase.COMPANIES)
        taken: set[str] = set()
        planned: list[PlannedRow] = []
        for target in context.targets:
            planned.extend(builder.companies(target.month, target.targets.companies_created, taken))

        def inserted(row: PlannedRow, row_id: Optional[int]) -> None:
            state.company_ids.setdefault(row.month, []).append(int(row_id))
            state.month_actuals(row.month).companies += 1

        return self._insert(job, state, context, Company, planned, inserted, label="companies")

    def _phase_contacts(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        builder = self._builder(job, state, context, GenerationPhase.CONTACTS)
        taken: set[str] = set()
        planned: list[PlannedRow] = []
        for target in context.targets:
            planned.extend(
                builder.contacts(
                    target.month,
                    target.targets.contacts_created,
                    target.targets.leads_created,
                    state.companies_up_to(target.month),
                    taken,
                )
            )

        def inserted(row: PlannedRow, row_id: Optional[int]) -> None:
            state.contacts.setdefault(row.month, []).append((int(row_id), str(row.tag)))
            actuals = state.month_actuals(row.month)
            actuals.contacts += 1
            if row.tag == "lead":
                actuals.leads += 1

        return self._insert(job, state, context, Contact, planned, inserted, label="contacts")

    def _phase_deals(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        builder = self._builder(job, state, context, GenerationPhase.DEALS)
        tenant_id = int(state.tenant_id)
        refs = self.repository.contact_refs(tenant_id, job_id=job.id)
        contact_month = {
            contact_id: month for month, entries in state.contacts.items() for contact_id, _ in entries
        }
        names = self.repository.company_names(tenant_id)
        planned: list[PlannedRow] = []
        for target in context.targets:
            month = target.month
            pool = [ref for ref in refs if contact_month.get(ref.id, month) <= month]
            available = set(state.companies_up_to(month))
            month_names = {company_id: name for company_id, name in names.items() if company_id in available}
            planned.extend(builder.deals(month, target.targets, pool, month_names))

        def inserted(row: PlannedRow, row_id: Optional[int]) -> None:
            state.deal_ids.setdefault(row.month, []).append(int(row_id))
            actuals = state.month_actuals(row.month)
            actuals.deals += 1
            value = row.values["value"]
            if row.tag == StageType.WON.value:
                actuals.closed_won_count += 1
                actuals.closed_won_value += value
                actuals.pipeline_value += value
            elif row.tag == StageType.OPEN.value:
                actuals.pipeline_value += value

        return self._insert(job, state, context, Deal, planned, inserted, label="deals")

    def _phase_activities(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        builder = self._builder(job, state, context, GenerationPhase.ACTIVITIES)
        tenant_id = int(state.tenant_id)
        refs = self.repository.contact_refs(tenant_id, job_id=job.id)
        deals_by_contact = self.repository.deals_by_contact(tenant_id, job_id=job.id)
        planned = builder.contact_activities(refs, deals_by_contact)

        def inserted(row: PlannedRow, row_id: Optional[int]) -> None:
            state.activities_created += 1

        return self._insert(
            job, state, context, Activity, planned, inserted, label="activities", need_ids=False
        )

    def _phase_verify(self, job: DemoGenerationJob, state: GenerationState, context: _RunContext) -> bool:
        report = KpiVerifier(self.session).verify(
            job.id, int(state.tenant_id), context.targets, context.strategy.tolerances
        )
        job.verification_report = report.to_wire()
        job.verification_passed = report.overall_passed
        job.metrics = self._metrics(state, report)
        if report.overall_passed:
            self._log(job, logging.INFO, f"Verification passed ({report.total_metrics} metrics)")
        else:
            self._log(
                job,
                logging.WARNING,
                f"Verification failed for {report.failed_metrics} of {report.total_metrics} metrics",
            )
        job.status = JobStatus.COMPLETED.value
        job.generation_phase = GenerationPhase.COMPLETED.value
        job.completed_at = self._now()
        self._log(job, logging.INFO, "Generation completed")
        self._checkpoint(job, state, step="Completed")
        return True

    @staticmethod
    def _metrics(state: GenerationState, report: VerificationReport) -> dict[str, Any]:
        summary: dict[str, Any] = dict(state.summary())
        totals = {check.metric: check.actual for check in report.totals}
        summary.update(
            {
                "closedWonCount": int(totals.get("closed_won_count", 0)),
                "closedWonValue": float(totals.get("closed_won_value", 0)),
                "pipelineValue": float(totals.get("pipeline_added_value", 0)),
                "monthlyBreakdown": [
                    {"month": month, **actuals.to_wire()} for month, actuals in sorted(state.actuals.items())
                ],
            }
        )
        return summary
