"""Reported tenant metrics, with stored metric overrides folded in."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from crm_demo.core.errors import PlanValidationError, TenantNotFoundError
from crm_demo.domain.months import is_month_key, month_key
from crm_demo.domain.types import KPI_METRICS, MonthlyKpiSnapshot, Number, ValidationIssue
from crm_demo.generator.kpi import KpiAggregator
from crm_demo.generator.overrides import MetricOverrideStore, fold_overrides
from crm_demo.repositories.demo_repository import DemoRepository


@dataclass(frozen=True)
class PeriodMetrics:
    tenant_id: int
    start_month: str
    end_month: str
    months: list[MonthlyKpiSnapshot]
    totals: MonthlyKpiSnapshot


def total_snapshot(label: str, snapshots: list[MonthlyKpiSnapshot]) -> MonthlyKpiSnapshot:
    totals: dict[str, Number] = {}
    for metric in KPI_METRICS:
        if metric.is_value:
            totals[metric.key] = sum((Decimal(snapshot.get(metric.key)) for snapshot in snapshots), Decimal("0"))
        else:
            totals[metric.key] = sum(int(snapshot.get(metric.key)) for snapshot in snapshots)
    return MonthlyKpiSnapshot(month=label, metrics=totals)


class ReportingService:
    """Feeds dashboards the same numbers a metrics-only patch promised."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def period_metrics(self, tenant_id: int, start: str | date, end: str | date) -> PeriodMetrics:
        if DemoRepository(self._session).get_tenant(tenant_id) is None:
            raise TenantNotFoundError(tenant_id)
        start_month = start if isinstance(start, str) else month_key(start)
        end_month = end if isinstance(end, str) else month_key(end)
        issues = [
            ValidationIssue(name, f"Invalid month format: {value}. Expected YYYY-MM.")
            for name, value in (("start", start_month), ("end", end_month))
            if not is_month_key(value)
        ]
        if issues:
            raise PlanValidationError(issues)

        base = KpiAggregator(self._session, tenant_id).query_monthly_kpis(start_month, end_month)
        overrides = MetricOverrideStore(self._session).read(tenant_id, [snapshot.month for snapshot in base])
        months = [fold_overrides(snapshot, overrides.get(snapshot.month)) for snapshot in base]
        return PeriodMetrics(
            tenant_id=tenant_id,
            start_month=start_month,
            end_month=end_month,
            months=months,
            totals=total_snapshot(f"{start_month}..{end_month}", months),
        )
