"""Apply a stored patch plan to an existing demo tenant.

One execution runs the whole plan in a single transaction:

1. snapshot the plan's months (folding overrides in metrics-only mode)
2. compute deltas; blockers abort the job
3. reconcile mode soft-deletes surplus generated rows
4. create rows for positive deltas (or upsert overrides in metrics-only mode)
5. reconcile mode corrects won and open deal values
6. snapshot again and store the before/after diff
"""
from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Sequence

from sqlalchemy import insert
from sqlalchemy.orm import Session

from crm_demo.core.config import get_settings
from crm_demo.core.errors import DemoGeneratorError, JobNotFoundError, PatchBlockedError, TenantNotDemoError
from crm_demo.core.log import get_logger, log_context, timeit
from crm_demo.domain.enums import ContactStatus, JobStatus, PatchMode, PlanType
from crm_demo.domain.months import month_bounds
from crm_demo.domain.types import (
    ACTIVITIES,
    COMPANIES,
    CONTACTS,
    DEALS,
    LEADS,
    PIPELINE,
    WON_COUNT,
    WON_VALUE,
    MonthlyKpiSnapshot,
    MonthlyMetricTargets,
    Number,
    PatchMonth,
    PatchPlan,
    from_cents,
    snapshot_index,
    to_cents,
    to_decimal,
)
from crm_demo.generator.job_log import append_job_log
from crm_demo.generator.kpi import KpiAggregator, compute_diff
from crm_demo.generator.overrides import MetricOverrideStore
from crm_demo.generator.patch_validator import compute_deltas
from crm_demo.generator.records import BuildContext, PlannedRow, Provenance, RecordBuilder, chunked
from crm_demo.generator.rng import SeededRNG
from crm_demo.generator.state import StageIds
from crm_demo.generator.templates import get_template
from crm_demo.models import Activity, Company, Contact, Deal, DemoPatchJob
from crm_demo.repositories.demo_repository import DemoRepository

LOGGER = get_logger(__name__)

ENTITIES = ("companies", "contacts", "deals", "activities")


@dataclass(slots=True)
class EntityCounts:
    created: int = 0
    modified: int = 0
    deleted: int = 0

    def to_wire(self) -> dict[str, int]:
        return {"created": self.created, "modified": self.modified, "deleted": self.deleted}


@dataclass(slots=True)
class PatchMetrics:
    by_entity: dict[str, EntityCounts] = field(
        default_factory=lambda: {entity: EntityCounts() for entity in ENTITIES}
    )
    overrides_applied: int = 0

    @property
    def records_created(self) -> int:
        return sum(counts.created for counts in self.by_entity.values())

    @property
    def records_modified(self) -> int:
        return sum(counts.modified for counts in self.by_entity.values())

    @property
    def records_deleted(self) -> int:
        return sum(counts.deleted for counts in self.by_entity.values())

    def to_wire(self) -> dict[str, Any]:
        return {
            "recordsCreated": self.records_created,
            "recordsModified": self.records_modified,
            "recordsDeleted": self.records_deleted,
            "metricOverridesApplied": self.overrides_applied,
            "byEntity": {entity: counts.to_wire() for entity, counts in self.by_entity.items()},
        }


@dataclass(slots=True)
class PatchContext:
    tenant_id: int
    country: str
    currency: str
    industry: str
    user_ids: list[int]
    stages: StageIds


def absolute_targets(
    plan: PatchPlan, patch_month: PatchMonth, current: MonthlyKpiSnapshot
) -> dict[str, Number]:
    """The value each plan metric should end at for ``patch_month``."""

    if plan.plan_type is PlanType.TARGETS:
        return dict(patch_month.metrics)
    return {key: current.get(key) + value for key, value in patch_month.metrics.items()}


def shift_values(values: Sequence[Decimal], gap: Decimal) -> list[Decimal]:
    """Rescale ``values`` proportionally so their sum moves by ``gap``.

    The result keeps cent precision and sums exactly to ``sum(values) + gap``
    (never below zero).
    """

    cents = [to_cents(value) for value in values]
    if not cents:
        return []
    total = sum(cents)
    target = max(0, total + to_cents(gap))
    if total > 0:
        scaled = [value * target // total for value in cents]
    else:
        scaled = [target // len(cents)] * len(cents)
    remainder = target - sum(scaled)
    order = sorted(range(len(cents)), key=lambda index: cents[index], reverse=True)
    for position in range(remainder):
        scaled[order[position % len(order)]] += 1
    return [from_cents(value) for value in scaled]


class PatchEngine:
    def __init__(
        self,
        session: Session,
        job_id: int,
        *,
        now: Callable[[], datetime] = datetime.now,
        batch_size: Optional[int] = None,
    ) -> None:
        self.session = session
        self.job_id = job_id
        self.repository = DemoRepository(session)
        self.batch_size = batch_size or get_settings().generator.batch_size
        self._now = now
        self.metrics = PatchMetrics()

    # ------------------------------------------------------------------
    # execution

    def execute(self) -> DemoPatchJob:
        job = self._load()
        if job.status == JobStatus.COMPLETED.value:
            LOGGER.info("Patch job %s already completed", job.id)
            return job
        if job.status == JobStatus.RUNNING.value:
            LOGGER.info("Patch job %s is already running; nothing to do", job.id)
            return job

        with log_context.scoped(patch_job_id=job.id, tenant_id=job.tenant_id):
            self._mark_running(job)
            try:
                with timeit(f"patch job {job.id}", logger=LOGGER, unit="rows") as timer:
                    self._execute(job)
                    timer.add(self.metrics.records_created + self.metrics.records_deleted)
            except Exception as exc:
                self.session.rollback()
                LOGGER.exception("Patch job %s failed", self.job_id)
                self._fail(exc)
                raise
        return job

    def _execute(self, job: DemoPatchJob) -> None:
        plan = PatchPlan.from_wire(job.patch_plan)
        if job.tenant_id is None:
            raise TenantNotDemoError(f"Patch job {job.id} has no tenant")
        tenant_id = int(job.tenant_id)
        metrics_only = plan.mode is PatchMode.METRICS_ONLY
        aggregator = KpiAggregator(self.session, tenant_id)

        self._log(job, logging.INFO, "Taking KPI snapshot (before)")
        before = aggregator.query_monthly_kpis(
            job.range_start_month, job.range_end_month, include_overrides=metrics_only
        )
        job.before_kpis = [snapshot.to_wire() for snapshot in before]
        self._progress(job, 15, "Before snapshot complete")

        deltas, blockers = compute_deltas(plan, before)
        if blockers:
            raise PatchBlockedError(blockers)
        self._progress(job, 20, "Deltas computed")

        if metrics_only:
            self._apply_overrides(job, tenant_id, deltas)
        else:
            context = self._load_context(tenant_id)
            existing = sum(
                self.repository.count_patch_rows(model, tenant_id, job.id)
                for model in (Company, Contact, Deal, Activity)
            )
            if existing:
                self._log(
                    job, logging.WARNING, f"{existing} records already exist for this patch; skipping changes"
                )
            else:
                before_index = snapshot_index(before)
                if plan.mode is PatchMode.RECONCILE:
                    self._log(job, logging.INFO, "Reconcile mode: deleting surplus generated records")
                    self._reconcile_deletions(job, context, plan, before_index)
                    self._progress(job, 40, "Deletions complete")
                for index, month_delta in enumerate(deltas, start=1):
                    self._create_month(job, context, month_delta)
                    self._progress(job, 40 + int(index / len(deltas) * 35), f"Processed {index}/{len(deltas)} months")
                if plan.mode is PatchMode.RECONCILE:
                    self._correct_values(job, context, plan, before_index)
        self.session.flush()
        self._progress(job, 80, "Patch execution complete")

        self._log(job, logging.INFO, "Taking KPI snapshot (after)")
        after = aggregator.query_monthly_kpis(
            job.range_start_month, job.range_end_month, include_overrides=metrics_only
        )
        report = compute_diff(before, after, plan)

        job.after_kpis = [snapshot.to_wire() for snapshot in after]
        job.diff_report = report.to_wire()
        job.metrics = self.metrics.to_wire()
        job.status = JobStatus.COMPLETED.value
        job.progress = 100
        job.current_step = "Complete"
        job.completed_at = self._now()
        job.updated_at = job.completed_at
        if metrics_only:
            self._log(job, logging.INFO, f"Patch completed. {self.metrics.overrides_applied} month overrides written.")
        else:
            self._log(
                job,
                logging.INFO,
                f"Patch completed. {self.metrics.records_created} created, "
                f"{self.metrics.records_modified} modified, {self.metrics.records_deleted} deleted.",
            )
        if not report.overall_passed:
            failed = sum(1 for month in report.months for diff in month.metrics if not diff.passed)
            self._log(job, logging.WARNING, f"KPI verification: {failed} metrics outside tolerance")
        self.session.commit()

    # ------------------------------------------------------------------
    # job bookkeeping

    def _load(self) -> DemoPatchJob:
        job = self.repository.get_patch_job(self.job_id)
        if job is None:
            raise JobNotFoundError("Patch", self.job_id)
        return job

    def _log(self, job: DemoPatchJob, level: int, message: str) -> None:
        append_job_log(job, level, message, logger=LOGGER, now=self._now(), kind="patch")

    def _progress(self, job: DemoPatchJob, progress: int, step: str) -> None:
        job.progress = progress
        job.current_step = step

    def _mark_running(self, job: DemoPatchJob) -> None:
        job.status = JobStatus.RUNNING.value
        job.started_at = self._now()
        job.updated_at = job.started_at
        job.error_message = None
        job.error_stack = None
        self._progress(job, 0, "Initializing")
        self._log(job, logging.INFO, f"Starting patch job {job.id}")
        self.session.commit()

    def _fail(self, exc: BaseException) -> None:
        job = self._load()
        job.status = JobStatus.FAILED.value
        job.error_message = str(exc) or exc.__class__.__name__
        job.error_stack = traceback.format_exc()
        job.completed_at = self._now()
        job.updated_at = job.completed_at
        self._log(job, logging.ERROR, job.error_message)
        self.session.commit()

    def _load_context(self, tenant_id: int) -> PatchContext:
        metadata = self.repository.get_tenant_metadata(tenant_id)
        if metadata is None:
            raise TenantNotDemoError(f"Tenant {tenant_id} has no demo metadata")
        user_ids = self.repository.user_ids(tenant_id)
        if not user_ids:
            raise DemoGeneratorError("No active users found for tenant")
        stages = self.repository.stage_ids(tenant_id)
        if not stages.is_ready():
            raise DemoGeneratorError("No pipeline stages found for tenant")
        tenant = self.repository.get_tenant(tenant_id)
        return PatchContext(
            tenant_id=tenant_id,
            country=metadata.country,
            currency=(tenant.currency if tenant is not None else None) or "USD",
            industry=metadata.industry,
            user_ids=user_ids,
            stages=stages,
        )

    def _builder(self, job: DemoPatchJob, context: PatchContext, month: str) -> RecordBuilder:
        build_context = BuildContext(
            tenant_id=context.tenant_id,
            country=context.country,
            currency=context.currency,
            template=get_template(context.industry),
            user_ids=context.user_ids,
            stages=context.stages,
            reference_time=self._now().replace(microsecond=0),
            provenance=Provenance(patch_job_id=job.id),
        )
        return RecordBuilder(build_context, SeededRNG(job.seed).child(month))

    def _insert(self, model: type, planned: Sequence[PlannedRow], *, need_ids: bool = True) -> list[int]:
        ids: list[int] = []
        for batch in chunked(planned, self.batch_size):
            if need_ids:
                objects = [model(**row.values) for row in batch]
                self.session.add_all(objects)
                self.session.flush()
                ids.extend(obj.id for obj in objects)
            else:
                self.session.execute(insert(model), [row.values for row in batch])
        return ids

    # ------------------------------------------------------------------
    # metrics-only

    def _apply_overrides(self, job: DemoPatchJob, tenant_id: int, deltas: Sequence[PatchMonth]) -> None:
        store = MetricOverrideStore(self.session)
        for month_delta in deltas:
            values = {key: value for key, value in month_delta.metrics.items() if value}
            if not values:
                continue
            store.upsert(tenant_id, month_delta.month, values, patch_job_id=job.id, now=self._now())
            self.metrics.overrides_applied += 1
            self._log(job, logging.INFO, f"Override for {month_delta.month}: {sorted(values)}")

    # ------------------------------------------------------------------
    # creations

    def _create_month(self, job: DemoPatchJob, context: PatchContext, month_delta: PatchMonth) -> None:
        def positive(key: str) -> int:
            return max(0, int(month_delta.get(key) or 0))

        def positive_value(key: str) -> Decimal:
            return max(Decimal("0"), to_decimal(month_delta.get(key) or 0))

        month = month_delta.month
        tenant_id = context.tenant_id
        _, end = month_bounds(month)
        builder = self._builder(job, context, month)
        counts = self.metrics.by_entity

        new_company_ids: list[int] = []
        companies = positive(COMPANIES.key)
        if companies:
            planned = builder.companies(month, companies, self.repository.company_name_keys(tenant_id))
            new_company_ids = self._insert(Company, planned)
            counts["companies"].created += len(new_company_ids)

        leads = positive(LEADS.key)
        contacts = max(positive(CONTACTS.key), leads)
        if contacts:
            company_pool = new_company_ids or list(
                self.repository.company_names(tenant_id, created_before=end)
            )
            planned = builder.contacts(
                month, contacts, leads, company_pool, self.repository.contact_emails(tenant_id)
            )
            counts["contacts"].created += len(self._insert(Contact, planned))

        won = positive(WON_COUNT.key)
        deals = max(positive(DEALS.key), won)
        if deals:
            won_value = positive_value(WON_VALUE.key)
            if PIPELINE.key in month_delta.metrics:
                pipeline = positive_value(PIPELINE.key)
            else:
                # pipeline stays put: non-won deals are created lost
                pipeline = won_value
                builder.values.mixture = replace(builder.values.mixture, open_share=0.0)
            targets = MonthlyMetricTargets(
                deals_created=deals,
                closed_won_count=won,
                closed_won_value=won_value,
                pipeline_added_value=pipeline,
            )
            planned = builder.deals(
                month,
                targets,
                self.repository.contact_refs(tenant_id, created_before=end),
                self.repository.company_names(tenant_id, created_before=end),
            )
            counts["deals"].created += len(self._insert(Deal, planned))

        activities = positive(ACTIVITIES.key)
        if activities:
            planned = builder.month_activities(
                month,
                activities,
                self.repository.contact_refs(tenant_id, created_before=end),
                self.repository.deals_by_contact(tenant_id),
            )
            self._insert(Activity, planned, need_ids=False)
            counts["activities"].created += len(planned)

        self._log(job, logging.INFO, f"Processed month {month}")

    # ------------------------------------------------------------------
    # reconcile

    def _soft_delete(self, rows: Sequence[Any], entity: str) -> int:
        now = self._now()
        for row in rows:
            row.deleted_at = now
        self.session.flush()
        self.metrics.by_entity[entity].deleted += len(rows)
        return len(rows)

    def _reconcile_deletions(
        self,
        job: DemoPatchJob,
        context: PatchContext,
        plan: PatchPlan,
        before: Mapping[str, MonthlyKpiSnapshot],
    ) -> None:
        """Soft-delete generated rows of each month down to its targets.

        Order is activities, deals, contacts, companies. Only rows generated
        for that month are candidates; rows still referenced by live records
        are taken last.
        """

        tenant_id = context.tenant_id
        for patch_month in sorted(plan.months, key=lambda item: item.month):
            month = patch_month.month
            current = before.get(month) or MonthlyKpiSnapshot(month, {})
            targets = absolute_targets(plan, patch_month, current)

            def excess(key: str) -> int:
                if key not in targets:
                    return 0
                return max(0, int(current.get(key)) - int(targets[key]))

            removed: dict[str, int] = {}

            surplus = excess(ACTIVITIES.key)
            if surplus:
                rows = self.repository.demo_rows(Activity, tenant_id, month)[:surplus]
                removed["activities"] = self._soft_delete(rows, "activities")

            won_surplus = excess(WON_COUNT.key)
            deal_surplus = max(excess(DEALS.key), won_surplus)
            if deal_surplus:
                pairs = self.repository.demo_deals_with_stage(tenant_id, month)
                won = sorted((deal for deal, stage in pairs if stage.is_won), key=lambda deal: deal.value)
                chosen = won[:won_surplus]
                lost = {deal.id for deal, stage in pairs if stage.is_lost}
                others = [deal for deal, stage in pairs if not stage.is_won]
                others.sort(key=lambda deal: deal.id not in lost)
                chosen += others[: max(0, deal_surplus - len(chosen))]
                removed["deals"] = self._soft_delete(chosen, "deals")

            lead_surplus = excess(LEADS.key)
            contact_surplus = max(excess(CONTACTS.key), lead_surplus)
            if contact_surplus:
                referenced = self.repository.referenced_ids(
                    Deal.contact_id, tenant_id
                ) | self.repository.referenced_ids(Activity.contact_id, tenant_id)
                rows = sorted(
                    self.repository.demo_rows(Contact, tenant_id, month),
                    key=lambda contact: contact.id in referenced,
                )
                lead_rows = [row for row in rows if row.status == ContactStatus.LEAD.value]
                other_rows = [row for row in rows if row.status != ContactStatus.LEAD.value]
                chosen = lead_rows[:lead_surplus]
                chosen += other_rows[: max(0, contact_surplus - len(chosen))]
                removed["contacts"] = self._soft_delete(chosen, "contacts")

            surplus = excess(COMPANIES.key)
            if surplus:
                referenced = self.repository.referenced_ids(
                    Contact.company_id, tenant_id
                ) | self.repository.referenced_ids(Deal.company_id, tenant_id)
                rows = sorted(
                    self.repository.demo_rows(Company, tenant_id, month),
                    key=lambda company: company.id in referenced,
                )
                removed["companies"] = self._soft_delete(rows[:surplus], "companies")

            if removed:
                self._log(job, logging.INFO, f"Reconcile {month}: deleted {removed}")

    def _correct_values(
        self,
        job: DemoPatchJob,
        context: PatchContext,
        plan: PatchPlan,
        before: Mapping[str, MonthlyKpiSnapshot],
    ) -> None:
        """Move won and open deal values of each month onto the value targets."""

        aggregator = KpiAggregator(self.session, context.tenant_id)
        for patch_month in sorted(plan.months, key=lambda item: item.month):
            month = patch_month.month
            targets = absolute_targets(plan, patch_month, before.get(month) or MonthlyKpiSnapshot(month, {}))
            for key, wants_won in ((WON_VALUE.key, True), (PIPELINE.key, False)):
                if key not in targets:
                    continue
                self.session.flush()
                actual = aggregator.month_snapshot(month).get(key)
                gap = to_decimal(targets[key]) - to_decimal(actual)
                if gap == 0:
                    continue
                deals = [
                    deal
                    for deal, stage in self.repository.demo_deals_with_stage(context.tenant_id, month)
                    if (stage.is_won if wants_won else not (stage.is_won or stage.is_lost))
                ]
                if not deals:
                    self._log(job, logging.WARNING, f"Reconcile {month}: no deals to carry {key} change of {gap}")
                    continue
                modified = 0
                for deal, value in zip(deals, shift_values([deal.value for deal in deals], gap)):
                    if value != deal.value:
                        deal.value = value
                        modified += 1
                self.metrics.by_entity["deals"].modified += modified
                self._log(job, logging.INFO, f"Reconcile {month}: moved {key} by {gap} across {modified} deals")

