"""Monthly KPI aggregation, target verification and before/after patch diffs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from crm_demo.core.log import get_logger
from crm_demo.domain.enums import PlanType
from crm_demo.domain.months import month_bounds, month_keys
from crm_demo.domain.types import (
    METRICS_BY_KEY,
    TARGET_METRICS,
    MonthlyKpiSnapshot,
    MonthlyTarget,
    Number,
    PatchPlan,
    ToleranceConfig,
    snapshot_index,
    to_decimal,
)
from crm_demo.generator.overrides import MetricOverrideStore, fold_all
from crm_demo.repositories.kpi_repository import KpiRepository

LOGGER = get_logger(__name__)


def _wire_number(key: str, value: Number) -> Any:
    return float(value) if METRICS_BY_KEY[key].is_value else int(value)


def diff_percent(target: Number, actual: Number) -> float:
    target_value = to_decimal(target)
    if target_value == 0:
        return 0.0 if to_decimal(actual) == 0 else 100.0
    return float((to_decimal(actual) - target_value) / target_value * 100)


def within_tolerance(key: str, target: Number, actual: Number, tolerances: ToleranceConfig) -> bool:
    """Counts pass within ``count_tolerance``; values within ``value_tolerance`` of the target."""

    difference = abs(to_decimal(actual) - to_decimal(target))
    if METRICS_BY_KEY[key].is_value:
        return difference <= abs(to_decimal(target)) * to_decimal(tolerances.value_tolerance)
    return difference <= tolerances.count_tolerance


@dataclass(frozen=True, slots=True)
class MetricCheck:
    metric: str
    target: Number
    actual: Number
    passed: bool

    @property
    def diff(self) -> Number:
        return self.actual - self.target

    @property
    def diff_percent(self) -> float:
        return diff_percent(self.target, self.actual)

    def to_wire(self) -> dict[str, Any]:
        return {
            "metric": METRICS_BY_KEY[self.metric].wire,
            "target": _wire_number(self.metric, self.target),
            "actual": _wire_number(self.metric, self.actual),
            "diff": _wire_number(self.metric, self.diff),
            "diffPercent": round(self.diff_percent, 2),
            "passed": self.passed,
        }


def check_metric(key: str, target: Number, actual: Number, tolerances: ToleranceConfig) -> MetricCheck:
    return MetricCheck(key, target, actual, within_tolerance(key, target, actual, tolerances))


@dataclass(frozen=True, slots=True)
class MonthVerification:
    month: str
    metrics: tuple[MetricCheck, ...]

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.metrics)

    def to_wire(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "passed": self.passed,
            "metrics": [check.to_wire() for check in self.metrics],
        }


@dataclass(frozen=True, slots=True)
class VerificationReport:
    """Per-month and total target checks of one generation job."""

    job_id: Optional[int]
    tenant_id: int
    generated_at: datetime
    months: tuple[MonthVerification, ...]
    totals: tuple[MetricCheck, ...]
    tolerances: ToleranceConfig

    @property
    def _all_checks(self) -> list[MetricCheck]:
        return [check for month in self.months for check in month.metrics]

    @property
    def total_metrics(self) -> int:
        return len(self._all_checks)

    @property
    def passed_metrics(self) -> int:
        return sum(1 for check in self._all_checks if check.passed)

    @property
    def failed_metrics(self) -> int:
        return self.total_metrics - self.passed_metrics

    @property
    def overall_passed(self) -> bool:
        return self.failed_metrics == 0

    def failures(self) -> list[tuple[str, MetricCheck]]:
        return [
            (month.month, check)
            for month in self.months
            for check in month.metrics
            if not check.passed
        ]

    def to_wire(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "tenantId": self.tenant_id,
            "generatedAt": self.generated_at.isoformat(),
            "overallPassed": self.overall_passed,
            "totalMetrics": self.total_metrics,
            "passedMetrics": self.passed_metrics,
            "failedMetrics": self.failed_metrics,
            "months": [month.to_wire() for month in self.months],
            "totals": [check.to_wire() for check in self.totals],
            "tolerances": self.tolerances.to_wire(),
        }


def build_verification_report(
    targets: Sequence[MonthlyTarget],
    actuals: Mapping[str, MonthlyKpiSnapshot],
    tolerances: ToleranceConfig,
    *,
    tenant_id: int,
    job_id: Optional[int] = None,
    generated_at: Optional[datetime] = None,
) -> VerificationReport:
    months: list[MonthVerification] = []
    target_totals: dict[str, Decimal] = {metric.key: Decimal("0") for metric in TARGET_METRICS}
    actual_totals: dict[str, Decimal] = {metric.key: Decimal("0") for metric in TARGET_METRICS}
    for target in targets:
        snapshot = actuals.get(target.month) or MonthlyKpiSnapshot(target.month, {})
        checks = []
        for metric in TARGET_METRICS:
            expected = target.targets.get(metric.key)
            actual = snapshot.get(metric.key)
            target_totals[metric.key] += to_decimal(expected)
            actual_totals[metric.key] += to_decimal(actual)
            checks.append(check_metric(metric.key, expected, actual, tolerances))
        months.append(MonthVerification(target.month, tuple(checks)))
    totals = tuple(
        check_metric(
            metric.key,
            target_totals[metric.key] if metric.is_value else int(target_totals[metric.key]),
            actual_totals[metric.key] if metric.is_value else int(actual_totals[metric.key]),
            tolerances,
        )
        for metric in TARGET_METRICS
    )
    return VerificationReport(
        job_id=job_id,
        tenant_id=tenant_id,
        generated_at=generated_at or datetime.now(),
        months=tuple(months),
        totals=totals,
        tolerances=tolerances,
    )


class KpiAggregator:
    """Computes per-month KPIs of a tenant from its live CRM rows."""

    def __init__(self, session: Session, tenant_id: int) -> None:
        self.session = session
        self.tenant_id = tenant_id
        self.repository = KpiRepository(session)

    def month_snapshot(self, month: str) -> MonthlyKpiSnapshot:
        start, end = month_bounds(month)
        row = self.repository.month_counts(self.tenant_id, start, end)
        return MonthlyKpiSnapshot(
            month=month,
            metrics={
                "leads_created": row.leads,
                "contacts_created": row.contacts,
                "companies_created": row.companies,
                "deals_created": row.deals,
                "closed_won_count": row.closed_won_count,
                "closed_won_value": row.closed_won_value,
                "pipeline_added_value": row.pipeline_value,
                "activities_created": row.activities,
            },
        )

    def query_monthly_kpis(
        self, from_month: str, to_month: str, *, include_overrides: bool = False
    ) -> list[MonthlyKpiSnapshot]:
        snapshots = [self.month_snapshot(month) for month in month_keys(from_month, to_month)]
        if include_overrides:
            overrides = MetricOverrideStore(self.session).read(
                self.tenant_id, [snapshot.month for snapshot in snapshots]
            )
            snapshots = fold_all(snapshots, overrides)
        return snapshots

    def snapshots_for(
        self, months: Sequence[str], *, include_overrides: bool = False
    ) -> list[MonthlyKpiSnapshot]:
        if not months:
            return []
        ordered = sorted(months)
        wanted = set(ordered)
        return [
            snapshot
            for snapshot in self.query_monthly_kpis(
                ordered[0], ordered[-1], include_overrides=include_overrides
            )
            if snapshot.month in wanted
        ]


class KpiVerifier:
    def __init__(self, session: Session) -> None:
        self.session = session

    def verify(
        self,
        job_id: Optional[int],
        tenant_id: int,
        targets: Sequence[MonthlyTarget],
        tolerances: ToleranceConfig,
    ) -> VerificationReport:
        aggregator = KpiAggregator(self.session, tenant_id)
        actuals = snapshot_index(aggregator.snapshots_for([target.month for target in targets]))
        report = build_verification_report(
            targets, actuals, tolerances, tenant_id=tenant_id, job_id=job_id
        )
        LOGGER.info(
            "Verification %s: %s/%s metrics within tolerance",
            "passed" if report.overall_passed else "failed",
            report.passed_metrics,
            report.total_metrics,
        )
        return report


# ---------------------------------------------------------------------------
# Patch diffs


@dataclass(frozen=True, slots=True)
class MetricDiff:
    metric: str
    before: Number
    after: Number
    expected: Number
    passed: bool

    @property
    def delta(self) -> Number:
        return self.after - self.before

    @property
    def delta_percent(self) -> float:
        before = to_decimal(self.before)
        if before > 0:
            return float(to_decimal(self.delta) / before * 100)
        return 100.0 if to_decimal(self.after) > 0 else 0.0

    def to_wire(self) -> dict[str, Any]:
        return {
            "metric": METRICS_BY_KEY[self.metric].wire,
            "before": _wire_number(self.metric, self.before),
            "after": _wire_number(self.metric, self.after),
            "expected": _wire_number(self.metric, self.expected),
            "delta": _wire_number(self.metric, self.delta),
            "deltaPercent": round(self.delta_percent, 2),
            "passed": self.passed,
        }


@dataclass(frozen=True, slots=True)
class MonthDiff:
    month: str
    metrics: tuple[MetricDiff, ...]

    @property
    def passed(self) -> bool:
        return all(diff.passed for diff in self.metrics)

    def to_wire(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "passed": self.passed,
            "metrics": [diff.to_wire() for diff in self.metrics],
        }


@dataclass(frozen=True, slots=True)
class PatchDiffReport:
    months: tuple[MonthDiff, ...]
    tolerances: ToleranceConfig = field(default_factory=ToleranceConfig)
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def overall_passed(self) -> bool:
        return all(month.passed for month in self.months)

    def to_wire(self) -> dict[str, Any]:
        return {
            "generatedAt": self.generated_at.isoformat(),
            "overallPassed": self.overall_passed,
            "months": [month.to_wire() for month in self.months],
            "tolerances": self.tolerances.to_wire(),
        }


def compute_diff(
    before: Sequence[MonthlyKpiSnapshot],
    after: Sequence[MonthlyKpiSnapshot],
    plan: PatchPlan,
) -> PatchDiffReport:
    """Compare before/after snapshots for every metric the plan touches.

    In ``deltas`` plans the expected value is ``before + delta``; in
    ``targets`` plans it is the absolute target.
    """

    before_index = snapshot_index(before)
    after_index = snapshot_index(after)
    months: list[MonthDiff] = []
    for patch_month in sorted(plan.months, key=lambda item: item.month):
        previous = before_index.get(patch_month.month) or MonthlyKpiSnapshot(patch_month.month, {})
        current = after_index.get(patch_month.month) or MonthlyKpiSnapshot(patch_month.month, {})
        diffs: list[MetricDiff] = []
        for key, value in patch_month.metrics.items():
            before_value = previous.get(key)
            after_value = current.get(key)
            if plan.plan_type is PlanType.DELTAS:
                expected = before_value + value
            else:
                expected = value
            diffs.append(
                MetricDiff(
                    metric=key,
                    before=before_value,
                    after=after_value,
                    expected=expected,
                    passed=within_tolerance(key, expected, after_value, plan.tolerances),
                )
            )
        months.append(MonthDiff(patch_month.month, tuple(diffs)))
    return PatchDiffReport(months=tuple(months), tolerances=plan.tolerances)
