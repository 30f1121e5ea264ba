"""Checks and previews for patch plans against an existing demo tenant."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from crm_demo.domain.enums import PatchMode, PlanType
from crm_demo.domain.months import current_month_key, is_month_key, month_key
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
    Number,
    PatchMonth,
    PatchPlan,
    ValidationIssue,
    coerce_metric,
    metric_wire_name,
    snapshot_index,
    to_decimal,
)
from crm_demo.generator.overrides import OVERRIDABLE_METRICS
from crm_demo.repositories.demo_repository import DemoRepository

MAX_PATCH_MONTHS = 24
GROWTH_WARNING_PERCENT = 200
LARGE_PATCH_RECORDS = 10_000

ENTITY_METRICS = (
    ("companies", COMPANIES.key),
    ("contacts", CONTACTS.key),
    ("deals", DEALS.key),
    ("activities", ACTIVITIES.key),
)
# leads are contacts and won deals are deals
SUBSET_METRICS = {CONTACTS.key: LEADS.key, DEALS.key: WON_COUNT.key}


@dataclass(frozen=True, slots=True)
class PatchValidationResult:
    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [issue.to_wire() for issue in self.errors],
            "warnings": [issue.to_wire() for issue in self.warnings],
        }


@dataclass(frozen=True, slots=True)
class PatchPreview:
    """What applying a plan would do, without touching the tenant."""

    computed_deltas: list[PatchMonth]
    records_to_create: dict[str, int]
    records_to_delete: dict[str, int]
    overrides_to_write: int = 0
    warnings: list[str] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)

    @property
    def feasible(self) -> bool:
        return not self.blockers

    def to_wire(self) -> dict[str, Any]:
        return {
            "computedDeltas": [month.to_wire() for month in self.computed_deltas],
            "estimatedRecords": dict(self.records_to_create),
            "estimatedDeletions": dict(self.records_to_delete),
            "overridesToWrite": self.overrides_to_write,
            "warnings": list(self.warnings),
            "blockers": list(self.blockers),
            "feasible": self.feasible,
        }


def _month_checks(
    index: int,
    patch_month: PatchMonth,
    plan: PatchPlan,
    current: MonthlyKpiSnapshot,
    errors: list[ValidationIssue],
) -> None:
    base = f"months[{index}]"
    month = patch_month.month
    metrics = patch_month.metrics

    won_count = metrics.get(WON_COUNT.key)
    deals = metrics.get(DEALS.key)
    leads = metrics.get(LEADS.key)
    contacts = metrics.get(CONTACTS.key)
    won_value = metrics.get(WON_VALUE.key)
    pipeline = metrics.get(PIPELINE.key)

    if plan.plan_type is PlanType.TARGETS and plan.mode is not PatchMode.METRICS_ONLY:
        if won_count is not None and deals is not None and won_count > deals:
            errors.append(
                ValidationIssue(
                    f"{base}.metrics.closedWonCount",
                    f"{month}: closedWonCount ({won_count}) cannot exceed dealsCreated ({deals}).",
                )
            )
        if leads is not None and contacts is not None and leads > contacts:
            errors.append(
                ValidationIssue(
                    f"{base}.metrics.leadsCreated",
                    f"{month}: leadsCreated ({leads}) cannot exceed contactsCreated ({contacts}).",
                )
            )
        if won_value is not None and to_decimal(won_value) > 0:
            effective_count = won_count if won_count is not None else current.get(WON_COUNT.key)
            if not effective_count:
                errors.append(
                    ValidationIssue(
                        f"{base}.metrics.closedWonValue",
                        f"{month}: closedWonValue ({won_value}) requires closedWonCount > 0.",
                    )
                )
        if won_value is not None and pipeline is not None and to_decimal(pipeline) < to_decimal(won_value):
            errors.append(
                ValidationIssue(
                    f"{base}.metrics.pipelineAddedValue",
                    f"{month}: pipelineAddedValue ({pipeline}) cannot be below closedWonValue ({won_value}).",
                )
            )

    if plan.mode is PatchMode.ADDITIVE:
        for key, value in metrics.items():
            if value < 0:
                errors.append(
                    ValidationIssue(
                        f"{base}.metrics.{metric_wire_name(key)}",
                        f"{month}: {metric_wire_name(key)} cannot be negative ({value}) in additive mode.",
                    )
                )
            elif plan.plan_type is PlanType.TARGETS and value < current.get(key):
                errors.append(
                    ValidationIssue(
                        f"{base}.metrics.{metric_wire_name(key)}",
                        f"{month}: cannot reduce {metric_wire_name(key)} from {current.get(key)} to "
                        f"{value} in additive mode.",
                        "Use reconcile mode or raise the target.",
                    )
                )
    elif plan.plan_type is PlanType.TARGETS:
        for key, value in metrics.items():
            if value < 0:
                errors.append(
                    ValidationIssue(
                        f"{base}.metrics.{metric_wire_name(key)}",
                        f"{month}: target {metric_wire_name(key)} cannot be negative ({value}).",
                    )
                )

    if plan.mode is PatchMode.METRICS_ONLY:
        for key in metrics:
            if key not in OVERRIDABLE_METRICS:
                errors.append(
                    ValidationIssue(
                        f"{base}.metrics.{metric_wire_name(key)}",
                        f"{month}: {metric_wire_name(key)} cannot be overridden in metrics-only mode.",
                        "Use additive or reconcile mode for this metric.",
                    )
                )


def _growth_warnings(plan: PatchPlan, warnings: list[ValidationIssue]) -> None:
    ordered = sorted(plan.months, key=lambda item: item.month)
    for index in range(1, len(ordered)):
        previous, current = ordered[index - 1], ordered[index]
        for key in (CONTACTS.key, DEALS.key):
            before = previous.get(key) or 0
            after = current.get(key) or 0
            if before > 0 and after > 0:
                growth = float((to_decimal(after) - to_decimal(before)) / to_decimal(before) * 100)
                if growth > GROWTH_WARNING_PERCENT:
                    warnings.append(
                        ValidationIssue(
                            f"months.{current.month}.{metric_wire_name(key)}",
                            f"{current.month}: {metric_wire_name(key)} growth rate ({growth:.0f}%) is "
                            f"unusually high compared to {previous.month}.",
                        )
                    )


def validate_patch_plan(
    session: Session,
    tenant_id: int,
    plan: PatchPlan,
    current_kpis: Sequence[MonthlyKpiSnapshot],
    *,
    today: Optional[date] = None,
) -> PatchValidationResult:
    """Collect every problem with ``plan`` for ``tenant_id``.

    ``current_kpis`` are the tenant's snapshots for the plan's months; for
    metrics-only plans they should already include stored overrides.
    """

    metadata = DemoRepository(session).get_tenant_metadata(tenant_id)
    if metadata is None or not metadata.is_demo_generated:
        return PatchValidationResult(
            valid=False,
            errors=[
                ValidationIssue(
                    "tenantId", "Tenant is not a demo-generated tenant. Only demo tenants can be patched."
                )
            ],
        )

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    if not plan.months:
        errors.append(ValidationIssue("months", "At least one month must be specified in the patch plan."))
    if len(plan.months) > MAX_PATCH_MONTHS:
        errors.append(
            ValidationIssue("months", f"Patch plan cannot span more than {MAX_PATCH_MONTHS} months.")
        )

    current_month = current_month_key(today)
    start_month = month_key(metadata.start_date)
    snapshots = snapshot_index(current_kpis)
    seen: set[str] = set()
    for index, patch_month in enumerate(plan.months):
        month = patch_month.month
        if month in seen:
            errors.append(ValidationIssue(f"months[{index}].month", f"Duplicate month in plan: {month}"))
        seen.add(month)
        if not is_month_key(month):
            errors.append(
                ValidationIssue(f"months[{index}].month", f"Invalid month format: {month}. Expected YYYY-MM.")
            )
            continue
        if month > current_month:
            errors.append(
                ValidationIssue(
                    f"months[{index}].month", f"Month {month} is in the future. Cannot patch future months."
                )
            )
        if month < start_month:
            errors.append(
                ValidationIssue(
                    f"months[{index}].month",
                    f"Month {month} is before tenant creation date. Tenant was created in {start_month}.",
                )
            )
        if not patch_month.metrics:
            warnings.append(ValidationIssue(f"months[{index}].metrics", f"{month}: no metrics given."))
        current = snapshots.get(month) or MonthlyKpiSnapshot(month, {})
        _month_checks(index, patch_month, plan, current, errors)

    _growth_warnings(plan, warnings)
    return PatchValidationResult(valid=not errors, errors=errors, warnings=warnings)


def compute_deltas(
    plan: PatchPlan, current_kpis: Sequence[MonthlyKpiSnapshot]
) -> tuple[list[PatchMonth], list[str]]:
    """Per-month deltas to apply, plus blockers that forbid applying them.

    Targets plans subtract the current value; deltas plans pass through.
    Additive mode refuses reductions, and metrics-only mode refuses reductions
    and metrics that have no override column.
    """

    snapshots = snapshot_index(current_kpis)
    months: list[PatchMonth] = []
    blockers: list[str] = []
    for patch_month in plan.months:
        current = snapshots.get(patch_month.month) or MonthlyKpiSnapshot(patch_month.month, {})
        deltas: dict[str, Number] = {}
        for key, value in patch_month.metrics.items():
            wire = metric_wire_name(key)
            now_value = current.get(key)
            if plan.plan_type is PlanType.TARGETS:
                delta = to_decimal(value) - to_decimal(now_value)
            else:
                delta = to_decimal(value)

            if plan.mode is PatchMode.METRICS_ONLY and key not in OVERRIDABLE_METRICS:
                blockers.append(f"{patch_month.month}: {wire} cannot be overridden in metrics-only mode.")
                delta = Decimal("0")
            elif plan.mode is not PatchMode.RECONCILE and delta < 0:
                if plan.plan_type is PlanType.TARGETS:
                    blockers.append(
                        f"{patch_month.month}: Cannot reduce {wire} from {now_value} to {value} "
                        f"in {plan.mode.value} mode."
                    )
                else:
                    blockers.append(
                        f"{patch_month.month}: Negative delta ({value}) for {wire} not allowed "
                        f"in {plan.mode.value} mode."
                    )
                delta = Decimal("0")
            deltas[key] = coerce_metric(key, delta)
        months.append(PatchMonth(patch_month.month, deltas))
    return months, blockers


def generate_preview(
    plan: PatchPlan,
    current_kpis: Sequence[MonthlyKpiSnapshot],
    deltas: Optional[Sequence[PatchMonth]] = None,
) -> PatchPreview:
    blockers: list[str] = []
    if deltas is None:
        deltas, blockers = compute_deltas(plan, current_kpis)

    create = {entity: 0 for entity, _ in ENTITY_METRICS}
    delete = {entity: 0 for entity, _ in ENTITY_METRICS}
    overrides = 0
    warnings: list[str] = []

    if plan.mode is PatchMode.METRICS_ONLY:
        overrides = sum(1 for month in deltas if any(value for value in month.metrics.values()))
        if overrides:
            warnings.append(
                f"Metrics-only: overrides for {overrides} month(s) will change reported KPIs; "
                "underlying records are unchanged."
            )
    else:
        for month in deltas:
            for entity, key in ENTITY_METRICS:
                values = [int(month.get(key) or 0)]
                if key in SUBSET_METRICS:
                    values.append(int(month.get(SUBSET_METRICS[key]) or 0))
                create[entity] += max(0, *values)
                delete[entity] += max(0, *(-value for value in values))

    total_create = sum(create.values())
    total_delete = sum(delete.values())
    if plan.mode is not PatchMode.METRICS_ONLY and total_create == 0 and total_delete == 0:
        warnings.append(
            "This patch will not create or delete any records. All metrics are already at target levels."
        )
    if total_create > LARGE_PATCH_RECORDS:
        warnings.append(f"Large patch: {total_create} records will be created. This may take several minutes.")
    if total_delete > 0:
        warnings.append(f"Reconcile mode: {total_delete} demo-generated records will be deleted.")

    return PatchPreview(
        computed_deltas=list(deltas),
        records_to_create=create,
        records_to_delete=delete,
        overrides_to_write=overrides,
        warnings=warnings,
        blockers=list(blockers),
    )
